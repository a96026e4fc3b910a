from typing import Any, List, Optional

import orjson
from redis.asyncio import Redis as AsyncRedis

from src.platform.logging.loguru_io import Logger
from src.platform.state.kvrocks_client import kvrocks_client
from src.service.wheel.app.interface.i_history_sink import IHistorySink
from src.service.wheel.domain.entity.history_entry_entity import HistoryEntry
from src.service.wheel.driven_adapter.state.lua_script import APPEND_HISTORY_SCRIPT
from src.service.wheel.driven_adapter.state.spin_keys import (
    history_entries_key,
    history_idempotency_key,
    history_list_key,
)


class KvrocksHistorySinkImpl(IHistorySink):
    """
    Draw history in Kvrocks

    Layout:
    - spin:history:{session}          list of entry ids, append order
    - spin:history:{session}:entries  hash entry id → entry JSON
    - spin:history:idem:{key}         entry id already stored for an idempotency key
    """

    def __init__(self, *, redis_client: Optional[AsyncRedis] = None) -> None:
        self._redis_client = redis_client
        self._append_script: Any = None

    @property
    def _client(self) -> AsyncRedis:
        return self._redis_client or kvrocks_client.get_client()

    @Logger.io
    async def append_history_entry(self, *, entry: HistoryEntry) -> str:
        if self._append_script is None:
            self._append_script = self._client.register_script(APPEND_HISTORY_SCRIPT)
        stored_id = await self._append_script(
            keys=[
                history_idempotency_key(key=entry.idempotency_key),
                history_list_key(session_id=entry.session_id),
                history_entries_key(session_id=entry.session_id),
            ],
            args=[entry.id, orjson.dumps(entry.to_dict())],
        )
        return stored_id.decode() if isinstance(stored_id, bytes) else stored_id

    @Logger.io
    async def list_history(self, *, session_id: str) -> List[HistoryEntry]:
        entry_ids = await self._client.lrange(history_list_key(session_id=session_id), 0, -1)
        if not entry_ids:
            return []
        entry_ids.reverse()
        raw_entries = await self._client.hmget(
            history_entries_key(session_id=session_id), entry_ids
        )
        return [HistoryEntry.from_dict(orjson.loads(raw)) for raw in raw_entries if raw]

    @Logger.io
    async def get_entry(self, *, session_id: str, entry_id: str) -> Optional[HistoryEntry]:
        raw = await self._client.hget(history_entries_key(session_id=session_id), entry_id)
        return HistoryEntry.from_dict(orjson.loads(raw)) if raw else None

    @Logger.io
    async def find_by_idempotency_key(
        self, *, session_id: str, idempotency_key: str
    ) -> Optional[HistoryEntry]:
        entry_id = await self._client.get(history_idempotency_key(key=idempotency_key))
        if not entry_id:
            return None
        if isinstance(entry_id, bytes):
            entry_id = entry_id.decode()
        return await self.get_entry(session_id=session_id, entry_id=entry_id)

    @Logger.io
    async def find_successor(self, *, session_id: str, entry_id: str) -> Optional[HistoryEntry]:
        for entry in await self.list_history(session_id=session_id):
            if entry.preceding_history_entry_id == entry_id:
                return entry
        return None
