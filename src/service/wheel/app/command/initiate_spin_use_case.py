from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace
import uuid_utils

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.spin_metrics import metrics
from src.service.wheel.app.command.winner_removal import remove_winner_with_retry
from src.service.wheel.app.dto.spin_dto import InitiateSpinResult
from src.service.wheel.app.interface.i_history_sink import IHistorySink
from src.service.wheel.app.interface.i_roster_provider import IRosterProvider
from src.service.wheel.app.interface.i_spin_state_handler import ISpinStateHandler
from src.service.wheel.domain.entity.spin_record_entity import SpinRecord, WinnerRef
from src.service.wheel.domain.enum.publish_outcome import PublishOutcome
from src.service.wheel.domain.enum.retire_reason import RetireReason
from src.service.wheel.domain.spin_errors import (
    AlreadySpinningError,
    CooldownActiveError,
    EmptyRosterSpinError,
    SpinError,
    UnauthorizedSpinError,
)
from src.service.wheel.domain.winner_selector import EmptyRosterError, WinnerSelector


class InitiateSpinUseCase:
    """
    Start a spin for a session

    Flow:
    1. Privileged callers only
    2. Fail fast when an unexpired active record exists. An expired one whose
       draw is already in history is settled first (winner removed, record
       retired) so the winner cannot be drawn again
    3. Fetch the roster fresh and select winner + trajectory
    4. Atomic create-if-idle in the store (re-checks active and cooldown,
       stamps published_at with the store clock, publishes to the feed)

    The returned result is optimistic feedback for the caller; every
    observer, the caller's own wheel included, renders from the feed.
    """

    def __init__(
        self,
        *,
        spin_state_handler: ISpinStateHandler,
        roster_provider: IRosterProvider,
        history_sink: IHistorySink,
        winner_selector: WinnerSelector,
        cooldown_seconds: float = settings.SPIN_COOLDOWN_SECONDS,
        record_ttl_seconds: float = settings.SPIN_RECORD_TTL_SECONDS,
        removal_max_attempts: int = settings.ROSTER_REMOVAL_MAX_ATTEMPTS,
        removal_retry_delay: float = settings.ROSTER_REMOVAL_RETRY_DELAY_SECONDS,
    ) -> None:
        self.spin_state_handler = spin_state_handler
        self.roster_provider = roster_provider
        self.history_sink = history_sink
        self.winner_selector = winner_selector
        self.cooldown_seconds = cooldown_seconds
        self.record_ttl_seconds = record_ttl_seconds
        self.removal_max_attempts = removal_max_attempts
        self.removal_retry_delay = removal_retry_delay
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        spin_state_handler: ISpinStateHandler = Depends(Provide[Container.spin_state_handler]),
        roster_provider: IRosterProvider = Depends(Provide[Container.roster_provider]),
        history_sink: IHistorySink = Depends(Provide[Container.history_sink]),
        winner_selector: WinnerSelector = Depends(Provide[Container.winner_selector]),
    ) -> Self:
        return cls(
            spin_state_handler=spin_state_handler,
            roster_provider=roster_provider,
            history_sink=history_sink,
            winner_selector=winner_selector,
        )

    @Logger.io
    async def initiate_spin(
        self, *, session_id: str, caller_is_privileged: bool
    ) -> InitiateSpinResult:
        with self.tracer.start_as_current_span(
            'use_case.initiate_spin',
            attributes={'session.id': session_id},
        ) as span:
            try:
                result = await self._initiate(
                    session_id=session_id, caller_is_privileged=caller_is_privileged
                )
            except SpinError as e:
                metrics.record_initiate(result=e.kind)
                span.set_attribute('spin.rejected', str(e.kind))
                raise

            metrics.record_initiate(result='success', duration_seconds=result.duration_seconds)
            span.set_attribute('spin.id', result.spin_id)
            return result

    async def _initiate(self, *, session_id: str, caller_is_privileged: bool) -> InitiateSpinResult:
        if not caller_is_privileged:
            raise UnauthorizedSpinError()

        # Fail fast, the store re-checks atomically below
        snapshot = await self.spin_state_handler.get_current(session_id=session_id)
        current = snapshot.record
        if current and current.blocks_new_spin(
            now=snapshot.server_time, ttl_seconds=self.record_ttl_seconds
        ):
            raise AlreadySpinningError()
        if current and current.is_active:
            await self._settle_expired(current)

        roster = await self.roster_provider.fetch_roster(session_id=session_id)
        try:
            selection = self.winner_selector.select(roster)
        except EmptyRosterError as e:
            raise EmptyRosterSpinError() from e

        winner = roster[selection.winner_index]
        draft = SpinRecord(
            session_id=session_id,
            spin_id=str(uuid_utils.uuid7()),
            is_active=True,
            winner=WinnerRef(
                id=winner.id,
                display_name=winner.display_name,
                verification_code=winner.verification_code,
            ),
            target_angle=selection.target_angle,
            duration_seconds=selection.duration_seconds,
            published_at=0.0,  # Assigned by the store
            participant_count_at_spin=len(roster),
        )

        published = await self.spin_state_handler.publish_if_idle(
            draft=draft,
            cooldown_seconds=self.cooldown_seconds,
            ttl_seconds=self.record_ttl_seconds,
        )
        if published.outcome is PublishOutcome.ALREADY_SPINNING:
            raise AlreadySpinningError()
        if published.outcome is PublishOutcome.COOLDOWN_ACTIVE:
            raise CooldownActiveError(retry_after_seconds=published.retry_after_seconds or 0.0)

        Logger.base.info(
            f'🎡 [SPIN] Session {session_id} spin {draft.spin_id}: '
            f'{len(roster)} participants, angle={selection.target_angle:.1f}, '
            f'duration={selection.duration_seconds}s'
        )
        return InitiateSpinResult(
            spin_id=draft.spin_id,
            winner_id=winner.id,
            winner_display_name=winner.display_name,
            target_angle=selection.target_angle,
            duration_seconds=selection.duration_seconds,
            winner_verification_code=winner.verification_code,
        )

    async def _settle_expired(self, record: SpinRecord) -> None:
        """Finish a confirm that recorded the draw but never removed the winner"""
        entry = await self.history_sink.find_by_idempotency_key(
            session_id=record.session_id, idempotency_key=record.spin_id
        )
        if entry is None:
            return  # Abandoned reveal, the new spin simply replaces it

        await remove_winner_with_retry(
            roster_provider=self.roster_provider,
            session_id=record.session_id,
            participant_id=entry.winner_id,
            max_attempts=self.removal_max_attempts,
            retry_delay=self.removal_retry_delay,
        )
        await self.spin_state_handler.retire(
            session_id=record.session_id, spin_id=record.spin_id, reason=RetireReason.CONFIRMED
        )
        Logger.base.warning(
            f'🧹 [SPIN] Session {record.session_id} settled expired spin {record.spin_id}: '
            f'removed {entry.winner_id} (history {entry.id})'
        )
