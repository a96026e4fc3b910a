from abc import ABC, abstractmethod
from typing import List, Optional

from src.service.wheel.domain.entity.history_entry_entity import HistoryEntry


class IHistorySink(ABC):
    """Append-only draw history"""

    @abstractmethod
    async def append_history_entry(self, *, entry: HistoryEntry) -> str:
        """
        Append an entry, idempotent by entry.idempotency_key.

        Returns:
            The stored entry id. When the key was already used this is the id
            of the earlier entry, not entry.id.
        """
        pass

    @abstractmethod
    async def list_history(self, *, session_id: str) -> List[HistoryEntry]:
        """Newest first"""
        pass

    @abstractmethod
    async def get_entry(self, *, session_id: str, entry_id: str) -> Optional[HistoryEntry]:
        pass

    @abstractmethod
    async def find_by_idempotency_key(
        self, *, session_id: str, idempotency_key: str
    ) -> Optional[HistoryEntry]:
        """The entry stored under idempotency_key, e.g. the draw recorded for a spin_id"""
        pass

    @abstractmethod
    async def find_successor(self, *, session_id: str, entry_id: str) -> Optional[HistoryEntry]:
        """The re-spin entry that superseded entry_id, if any"""
        pass
