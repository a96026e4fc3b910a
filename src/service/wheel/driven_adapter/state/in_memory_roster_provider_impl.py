import time
from typing import Callable, Dict, List, Optional

import uuid_utils

from src.service.wheel.app.interface.i_roster_provider import IRosterProvider
from src.service.wheel.domain.entity.participant_entity import (
    Participant,
    new_verification_code,
    roster_order_key,
)


class InMemoryRosterProviderImpl(IRosterProvider):
    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._rosters: Dict[str, Dict[str, Participant]] = {}

    async def fetch_roster(self, *, session_id: str) -> List[Participant]:
        return sorted(self._rosters.get(session_id, {}).values(), key=roster_order_key)

    async def remove_participant(self, *, session_id: str, participant_id: str) -> None:
        self._rosters.get(session_id, {}).pop(participant_id, None)

    async def add_participant(
        self, *, session_id: str, display_name: str, verification_code: Optional[str] = None
    ) -> Participant:
        participant = Participant(
            id=str(uuid_utils.uuid7()),
            display_name=display_name,
            joined_at=self._clock(),
            verification_code=verification_code or new_verification_code(),
        )
        self._rosters.setdefault(session_id, {})[participant.id] = participant
        return participant

    async def is_empty(self, *, session_id: str) -> bool:
        return not self._rosters.get(session_id)
