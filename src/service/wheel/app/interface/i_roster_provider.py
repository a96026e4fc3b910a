from abc import ABC, abstractmethod
from typing import List, Optional

from src.service.wheel.domain.entity.participant_entity import Participant


class IRosterProvider(ABC):
    """Session roster, owned by an external collaborator"""

    @abstractmethod
    async def fetch_roster(self, *, session_id: str) -> List[Participant]:
        """Current roster ordered by joined_at ascending, ties broken by id"""
        pass

    @abstractmethod
    async def remove_participant(self, *, session_id: str, participant_id: str) -> None:
        """Idempotent: removing an absent participant succeeds"""
        pass

    @abstractmethod
    async def add_participant(
        self, *, session_id: str, display_name: str, verification_code: Optional[str] = None
    ) -> Participant:
        """
        Add a participant with a fresh id; joined_at comes from the store clock.

        A verification code is generated when none is supplied.
        """
        pass

    @abstractmethod
    async def is_empty(self, *, session_id: str) -> bool:
        pass
