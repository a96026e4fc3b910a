from typing import List, Optional

import orjson
from redis.asyncio import Redis as AsyncRedis
import uuid_utils

from src.platform.logging.loguru_io import Logger
from src.platform.state.kvrocks_client import kvrocks_client
from src.service.wheel.app.interface.i_roster_provider import IRosterProvider
from src.service.wheel.domain.entity.participant_entity import (
    Participant,
    new_verification_code,
    roster_order_key,
)
from src.service.wheel.driven_adapter.state.spin_keys import (
    roster_index_key,
    roster_participants_key,
)


class KvrocksRosterProviderImpl(IRosterProvider):
    """
    Roster in Kvrocks

    Layout:
    - roster:{session}               sorted set, member = participant id, score = joined_at
    - roster:{session}:participants  hash participant id → participant JSON
    """

    def __init__(self, *, redis_client: Optional[AsyncRedis] = None) -> None:
        self._redis_client = redis_client

    @property
    def _client(self) -> AsyncRedis:
        return self._redis_client or kvrocks_client.get_client()

    @Logger.io
    async def fetch_roster(self, *, session_id: str) -> List[Participant]:
        participant_ids = await self._client.zrange(roster_index_key(session_id=session_id), 0, -1)
        if not participant_ids:
            return []
        raw_participants = await self._client.hmget(
            roster_participants_key(session_id=session_id), participant_ids
        )
        participants = [Participant.from_dict(orjson.loads(raw)) for raw in raw_participants if raw]
        # ZRANGE already orders by score then member; sort again for float ties across writers
        return sorted(participants, key=roster_order_key)

    @Logger.io
    async def remove_participant(self, *, session_id: str, participant_id: str) -> None:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.zrem(roster_index_key(session_id=session_id), participant_id)
            pipe.hdel(roster_participants_key(session_id=session_id), participant_id)
            await pipe.execute()

    @Logger.io
    async def add_participant(
        self, *, session_id: str, display_name: str, verification_code: Optional[str] = None
    ) -> Participant:
        seconds, microseconds = await self._client.time()
        participant = Participant(
            id=str(uuid_utils.uuid7()),
            display_name=display_name,
            joined_at=seconds + microseconds / 1_000_000,
            verification_code=verification_code or new_verification_code(),
        )
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.hset(
                roster_participants_key(session_id=session_id),
                participant.id,
                orjson.dumps(participant.to_dict()),
            )
            pipe.zadd(
                roster_index_key(session_id=session_id), {participant.id: participant.joined_at}
            )
            await pipe.execute()
        return participant

    @Logger.io
    async def is_empty(self, *, session_id: str) -> bool:
        return await self._client.zcard(roster_index_key(session_id=session_id)) == 0
