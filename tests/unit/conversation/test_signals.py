"""Tests for Signal."""

import pytest

from stratus.conversation import Signal


class TestSignal:
    """Tests for connect/emit."""

    @pytest.mark.asyncio
    async def test_emit_calls_listeners_in_order(self) -> None:
        signal = Signal("closed")
        calls: list[tuple[str, object]] = []

        async def first(value: object) -> None:
            calls.append(("first", value))

        async def second(value: object) -> None:
            calls.append(("second", value))

        signal.connect(first)
        signal.connect(second)
        await signal.emit("payload")

        assert calls == [("first", "payload"), ("second", "payload")]

    @pytest.mark.asyncio
    async def test_disconnect(self) -> None:
        signal = Signal("closed")
        calls: list[object] = []

        async def listener(value: object) -> None:
            calls.append(value)

        disconnect = signal.connect(listener)
        disconnect()
        disconnect()
        await signal.emit(1)

        assert calls == []
        assert len(signal) == 0

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_others(self) -> None:
        signal = Signal("closed")
        calls: list[object] = []

        async def broken(value: object) -> None:
            raise RuntimeError("boom")

        async def healthy(value: object) -> None:
            calls.append(value)

        signal.connect(broken)
        signal.connect(healthy)
        await signal.emit("x")

        assert calls == ["x"]
