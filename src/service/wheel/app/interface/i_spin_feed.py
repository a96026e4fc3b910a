"""
Spin Feed Interface

Read side of the spin state: an ordered, at-least-once stream of
snapshots per session. Subscribers never write.
"""

from abc import ABC, abstractmethod
from types import TracebackType
from typing import Optional, Self

from src.service.wheel.domain.entity.spin_record_entity import SpinSnapshot


class SpinFeedDisconnectedError(Exception):
    """Transport lost; the subscription reconnects and replays"""


class ISpinSubscription(ABC):
    """
    Async iterator of SpinSnapshot.

    The first snapshot after every (re)connect is the replay of the current
    state. After cancel() returns nothing else is yielded.
    """

    session_id: str

    def __aiter__(self) -> Self:
        return self

    @abstractmethod
    async def __anext__(self) -> SpinSnapshot:
        pass

    @abstractmethod
    def cancel(self) -> None:
        pass

    @abstractmethod
    async def aclose(self) -> None:
        """Cancel and wait until the transport subscription is released"""
        pass

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()


class ISpinFeed(ABC):
    @abstractmethod
    def subscribe(self, *, session_id: str) -> ISpinSubscription:
        pass
