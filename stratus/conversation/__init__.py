"""Conversation domain: per-session protocol handlers and the session router."""

from stratus.conversation.enums import ConversationState, HandlerEvent, RecordStatus
from stratus.conversation.handler import (
    ConversationHandler,
    ConversationStream,
    NegotiatedSession,
)
from stratus.conversation.registry import ConversationRecord, SessionRegistry
from stratus.conversation.router import (
    HandlerFactory,
    SessionRouter,
    SubmitResult,
    TerminateAck,
)
from stratus.conversation.signals import Signal

__all__ = [
    "ConversationHandler",
    "ConversationRecord",
    "ConversationState",
    "ConversationStream",
    "HandlerEvent",
    "HandlerFactory",
    "NegotiatedSession",
    "RecordStatus",
    "SessionRegistry",
    "SessionRouter",
    "Signal",
    "SubmitResult",
    "TerminateAck",
]
