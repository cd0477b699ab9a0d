"""Enums for the conversation domain."""

from enum import Enum


class ConversationState(str, Enum):
    """Protocol state of a single conversation."""

    UNINITIALIZED = "uninitialized"
    NEGOTIATING = "negotiating"
    READY = "ready"
    CLOSED = "closed"


class HandlerEvent(str, Enum):
    """Inputs that drive ConversationState transitions."""

    INITIALIZE = "initialize"
    ACKNOWLEDGE = "acknowledge"
    OPERATE = "operate"
    CLOSE = "close"


class RecordStatus(str, Enum):
    """Registry-level status of a conversation record, written only by the router."""

    ACTIVE = "active"
    CLOSING = "closing"
