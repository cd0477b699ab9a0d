"""Test factories for creating test data."""

from tests.factories.conversation import (
    CrashingTool,
    EchoTool,
    FailingTool,
    MessageFactory,
    SlowTool,
)

__all__ = [
    "CrashingTool",
    "EchoTool",
    "FailingTool",
    "MessageFactory",
    "SlowTool",
]
