"""
In-memory Spin State Handler

Single-process store for the `memory` backend and tests. A per-session
anyio.Lock makes each operation atomic with respect to the others; the
injected clock stands in for the store clock.
"""

import time
from typing import Callable, Dict, Optional

import anyio
import attrs

from src.platform.logging.loguru_io import Logger
from src.service.wheel.app.interface.i_spin_state_handler import ISpinStateHandler, PublishResult
from src.service.wheel.domain.entity.spin_record_entity import SpinRecord, SpinSnapshot
from src.service.wheel.domain.enum.publish_outcome import PublishOutcome
from src.service.wheel.domain.enum.retire_reason import RetireReason
from src.service.wheel.driven_adapter.feed.in_memory_spin_feed import InMemorySpinFeed


class InMemorySpinStateHandlerImpl(ISpinStateHandler):
    def __init__(
        self, *, feed: InMemorySpinFeed, clock: Callable[[], float] = time.time
    ) -> None:
        self._feed = feed
        self._clock = clock
        self._records: Dict[str, SpinRecord] = {}
        self._locks: Dict[str, anyio.Lock] = {}

    def _lock(self, session_id: str) -> anyio.Lock:
        if session_id not in self._locks:
            self._locks[session_id] = anyio.Lock()
        return self._locks[session_id]

    @Logger.io
    async def publish_if_idle(
        self, *, draft: SpinRecord, cooldown_seconds: float, ttl_seconds: float
    ) -> PublishResult:
        session_id = draft.session_id
        async with self._lock(session_id):
            now = self._clock()
            current = self._records.get(session_id)
            if current is not None:
                if current.blocks_new_spin(now=now, ttl_seconds=ttl_seconds):
                    return PublishResult(outcome=PublishOutcome.ALREADY_SPINNING)
                if cooldown_seconds > 0 and current.elapsed(now=now) < cooldown_seconds:
                    return PublishResult(
                        outcome=PublishOutcome.COOLDOWN_ACTIVE,
                        retry_after_seconds=current.published_at + cooldown_seconds - now,
                    )

            record = attrs.evolve(
                draft, is_active=True, published_at=now, retired_at=None, retire_reason=None
            )
            self._records[session_id] = record
            await self._feed.publish(snapshot=SpinSnapshot(record=record, server_time=now))
            return PublishResult(outcome=PublishOutcome.PUBLISHED, record=record)

    @Logger.io
    async def get_current(self, *, session_id: str) -> SpinSnapshot:
        return SpinSnapshot(record=self._records.get(session_id), server_time=self._clock())

    @Logger.io
    async def retire(
        self, *, session_id: str, spin_id: str, reason: RetireReason
    ) -> Optional[SpinRecord]:
        async with self._lock(session_id):
            current = self._records.get(session_id)
            if current is None or not current.is_active or current.spin_id != spin_id:
                return None
            now = self._clock()
            retired = current.retire(reason=reason, retired_at=now)
            self._records[session_id] = retired
            await self._feed.publish(snapshot=SpinSnapshot(record=retired, server_time=now))
            return retired
