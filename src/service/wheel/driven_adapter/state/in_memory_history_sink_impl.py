import time
from typing import Callable, Dict, List, Optional

import attrs

from src.service.wheel.app.interface.i_history_sink import IHistorySink
from src.service.wheel.domain.entity.history_entry_entity import HistoryEntry


class InMemoryHistorySinkImpl(IHistorySink):
    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: Dict[str, List[HistoryEntry]] = {}
        self._idempotency: Dict[str, str] = {}

    async def append_history_entry(self, *, entry: HistoryEntry) -> str:
        if existing_id := self._idempotency.get(entry.idempotency_key):
            return existing_id
        stored = attrs.evolve(entry, recorded_at=self._clock())
        self._entries.setdefault(entry.session_id, []).append(stored)
        self._idempotency[entry.idempotency_key] = entry.id
        return entry.id

    async def list_history(self, *, session_id: str) -> List[HistoryEntry]:
        return list(reversed(self._entries.get(session_id, [])))

    async def get_entry(self, *, session_id: str, entry_id: str) -> Optional[HistoryEntry]:
        for entry in self._entries.get(session_id, []):
            if entry.id == entry_id:
                return entry
        return None

    async def find_by_idempotency_key(
        self, *, session_id: str, idempotency_key: str
    ) -> Optional[HistoryEntry]:
        entry_id = self._idempotency.get(idempotency_key)
        if entry_id is None:
            return None
        return await self.get_entry(session_id=session_id, entry_id=entry_id)

    async def find_successor(self, *, session_id: str, entry_id: str) -> Optional[HistoryEntry]:
        for entry in self._entries.get(session_id, []):
            if entry.preceding_history_entry_id == entry_id:
                return entry
        return None
