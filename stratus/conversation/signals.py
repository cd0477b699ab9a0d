"""Minimal async publish/subscribe signal."""

from collections.abc import Awaitable, Callable
from typing import Any

from stratus.observability.logging import get_logger

logger = get_logger(__name__)

Listener = Callable[..., Awaitable[None]]


class Signal:
    """Named event that awaits its listeners in registration order.

    A failing listener is logged and does not prevent later listeners
    from running.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[Listener] = []

    def connect(self, listener: Listener) -> Callable[[], None]:
        """Subscribe a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def disconnect() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return disconnect

    async def emit(self, *args: Any) -> None:
        for listener in list(self._listeners):
            try:
                await listener(*args)
            except Exception as e:
                logger.exception(
                    "signal_listener_failed",
                    signal=self.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    def __len__(self) -> int:
        return len(self._listeners)
