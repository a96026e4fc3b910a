"""
Shared fixtures for the wheel service.

All in-memory adapters share one FakeClock standing in for the store clock,
so tests move time explicitly instead of sleeping.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Optional

import pytest
import uuid_utils

from src.service.wheel.domain.entity.participant_entity import Participant
from src.service.wheel.domain.entity.spin_record_entity import (
    SpinRecord,
    SpinSnapshot,
    WinnerRef,
)
from src.service.wheel.domain.winner_selector import WinnerSelector
from src.service.wheel.driven_adapter.feed.in_memory_spin_feed import InMemorySpinFeed
from src.service.wheel.driven_adapter.state.in_memory_history_sink_impl import (
    InMemoryHistorySinkImpl,
)
from src.service.wheel.driven_adapter.state.in_memory_roster_provider_impl import (
    InMemoryRosterProviderImpl,
)
from src.service.wheel.driven_adapter.state.in_memory_spin_state_handler_impl import (
    InMemorySpinStateHandlerImpl,
)


SERVER_EPOCH = 1_700_000_000.0


class FakeClock:
    def __init__(self, start: float = SERVER_EPOCH) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_id() -> str:
    return f'session-{uuid_utils.uuid7()}'


@pytest.fixture
def spin_feed(clock: FakeClock) -> InMemorySpinFeed:
    return InMemorySpinFeed(clock=clock, buffer_size=4, reconnect_delay=0.01)


@pytest.fixture
def spin_state_handler(
    spin_feed: InMemorySpinFeed, clock: FakeClock
) -> InMemorySpinStateHandlerImpl:
    return InMemorySpinStateHandlerImpl(feed=spin_feed, clock=clock)


@pytest.fixture
def roster_provider(clock: FakeClock) -> InMemoryRosterProviderImpl:
    return InMemoryRosterProviderImpl(clock=clock)


@pytest.fixture
def history_sink(clock: FakeClock) -> InMemoryHistorySinkImpl:
    return InMemoryHistorySinkImpl(clock=clock)


@pytest.fixture
def fixed_selector() -> WinnerSelector:
    """Always picks index 2 with 4 full rotations and a 4.0s spin"""
    return WinnerSelector(
        index_draw=lambda n: min(2, n - 1),
        rotation_draw=lambda low, high: 4,
        duration_draw=lambda low, high: 4.0,
    )


@pytest.fixture
def seed_roster(
    roster_provider: InMemoryRosterProviderImpl, clock: FakeClock
) -> Callable[..., Awaitable[list[Participant]]]:
    async def _seed(session_id: str, names: tuple[str, ...] = ('Ann', 'Ben', 'Cy', 'Di')):
        participants = []
        for name in names:
            participants.append(
                await roster_provider.add_participant(session_id=session_id, display_name=name)
            )
            clock.advance(0.001)
        return participants

    return _seed


@pytest.fixture
def make_record() -> Callable[..., SpinRecord]:
    def _make(
        *,
        session_id: str = 'session-1',
        spin_id: Optional[str] = None,
        is_active: bool = True,
        published_at: float = SERVER_EPOCH,
        duration_seconds: float = 4.0,
        target_angle: float = 1575.0,
        winner: Optional[WinnerRef] = WinnerRef(id='p-3', display_name='Cy'),
        **overrides: Any,
    ) -> SpinRecord:
        return SpinRecord(
            session_id=session_id,
            spin_id=spin_id or str(uuid_utils.uuid7()),
            is_active=is_active,
            winner=winner,
            target_angle=target_angle,
            duration_seconds=duration_seconds,
            published_at=published_at,
            participant_count_at_spin=overrides.pop('participant_count_at_spin', 4),
            **overrides,
        )

    return _make


@pytest.fixture
def make_snapshot() -> Callable[..., SpinSnapshot]:
    def _make(record: Optional[SpinRecord], *, server_time: float = SERVER_EPOCH) -> SpinSnapshot:
        return SpinSnapshot(record=record, server_time=server_time)

    return _make
