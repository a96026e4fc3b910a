"""
Spin State Handler Interface

Owns the single authoritative spin record per session. Every write is one
atomic step in the store, and every write that changes the record also
publishes the new snapshot to the session's feed.
"""

from abc import ABC, abstractmethod
from typing import Optional

import attrs

from src.service.wheel.domain.entity.spin_record_entity import SpinRecord, SpinSnapshot
from src.service.wheel.domain.enum.publish_outcome import PublishOutcome
from src.service.wheel.domain.enum.retire_reason import RetireReason


@attrs.define(frozen=True)
class PublishResult:
    outcome: PublishOutcome
    record: Optional[SpinRecord] = None  # Stored record with store-assigned published_at
    retry_after_seconds: Optional[float] = None


class ISpinStateHandler(ABC):
    @abstractmethod
    async def publish_if_idle(
        self, *, draft: SpinRecord, cooldown_seconds: float, ttl_seconds: float
    ) -> PublishResult:
        """
        Create the session's spin record only if no unexpired active record exists.

        In one atomic step: re-check the active record, check the cooldown
        measured from the previous record's published_at, stamp published_at
        with the store clock, write, and publish the snapshot.

        Returns:
            PublishResult with PUBLISHED and the stored record, ALREADY_SPINNING,
            or COOLDOWN_ACTIVE with retry_after_seconds
        """
        pass

    @abstractmethod
    async def get_current(self, *, session_id: str) -> SpinSnapshot:
        """Current record (or none) plus the store clock"""
        pass

    @abstractmethod
    async def retire(
        self, *, session_id: str, spin_id: str, reason: RetireReason
    ) -> Optional[SpinRecord]:
        """
        Compare-and-set on spin_id: mark the active record inactive and publish it.

        Returns:
            The retired record, or None when the current record is missing,
            already inactive, or carries a different spin_id
        """
        pass
