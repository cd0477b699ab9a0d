"""In-memory registry of live conversations."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from stratus.conversation.enums import RecordStatus
from stratus.conversation.handler import ConversationHandler


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class ConversationRecord(BaseModel):
    """Registry entry binding a session identifier to its handler."""

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=True)

    session_id: str = Field(..., description="Session identifier")
    handler: ConversationHandler = Field(..., description="Handler serving this session")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    status: RecordStatus = Field(default=RecordStatus.ACTIVE, description="Registry status")


class SessionRegistry:
    """Mapping of session identifier to ConversationRecord.

    Mutations go through `create` (insert only if absent) and `remove`
    (remove only if present) under a single asyncio lock. Reads are plain
    dict lookups, which are atomic on the event loop.
    """

    def __init__(self) -> None:
        self._records: dict[str, ConversationRecord] = {}
        self._lock = asyncio.Lock()

    def get(self, session_id: str) -> ConversationRecord | None:
        return self._records.get(session_id)

    async def create(
        self,
        session_id: str,
        factory: Callable[[str], ConversationHandler],
    ) -> tuple[ConversationRecord, bool]:
        """Insert a record for session_id unless one already exists.

        The handler is built inside the critical section, so a caller that
        loses the race never constructs a handler.

        Returns:
            The record now registered under session_id and whether this
            call created it
        """
        async with self._lock:
            existing = self._records.get(session_id)
            if existing is not None:
                return existing, False
            record = ConversationRecord(session_id=session_id, handler=factory(session_id))
            self._records[session_id] = record
            return record, True

    async def remove(
        self,
        session_id: str,
        handler: ConversationHandler | None = None,
    ) -> ConversationRecord | None:
        """Remove and return the record, or None if absent.

        When handler is given, the record is removed only if it still
        belongs to that handler.
        """
        async with self._lock:
            record = self._records.get(session_id)
            if record is None:
                return None
            if handler is not None and record.handler is not handler:
                return None
            del self._records[session_id]
            return record

    async def clear(self) -> list[ConversationRecord]:
        """Remove every record, returning what was removed."""
        async with self._lock:
            records = list(self._records.values())
            self._records.clear()
            return records

    def snapshot(self) -> list[ConversationRecord]:
        return list(self._records.values())

    def session_ids(self) -> list[str]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._records
