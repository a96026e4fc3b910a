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
from src.service.wheel.app.dto.spin_dto import ConfirmWinnerResult
from src.service.wheel.app.interface.i_history_sink import IHistorySink
from src.service.wheel.app.interface.i_roster_provider import IRosterProvider
from src.service.wheel.app.interface.i_spin_state_handler import ISpinStateHandler
from src.service.wheel.domain.entity.history_entry_entity import HistoryEntry
from src.service.wheel.domain.enum.retire_reason import RetireReason
from src.service.wheel.domain.spin_errors import (
    HistoryWriteFailedError,
    SpinError,
    StaleConfirmationError,
    UnauthorizedSpinError,
)


class ConfirmWinnerUseCase:
    """
    Confirm the revealed winner of the current spin

    Steps run in order and each one is idempotent, so a retry after a
    partial failure converges:
    (a) append history entry (keyed by spin_id)
    (b) remove the winner from the roster
    (c) compare-and-set retire of the record, which publishes it

    Removal in (b) is retried with backoff because the draw is already in
    history. If (a) or (b) still fails the record stays active and the caller
    may retry.
    """

    def __init__(
        self,
        *,
        spin_state_handler: ISpinStateHandler,
        history_sink: IHistorySink,
        roster_provider: IRosterProvider,
        removal_max_attempts: int = settings.ROSTER_REMOVAL_MAX_ATTEMPTS,
        removal_retry_delay: float = settings.ROSTER_REMOVAL_RETRY_DELAY_SECONDS,
    ) -> None:
        self.spin_state_handler = spin_state_handler
        self.history_sink = history_sink
        self.roster_provider = roster_provider
        self.removal_max_attempts = removal_max_attempts
        self.removal_retry_delay = removal_retry_delay
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        spin_state_handler: ISpinStateHandler = Depends(Provide[Container.spin_state_handler]),
        history_sink: IHistorySink = Depends(Provide[Container.history_sink]),
        roster_provider: IRosterProvider = Depends(Provide[Container.roster_provider]),
    ) -> Self:
        return cls(
            spin_state_handler=spin_state_handler,
            history_sink=history_sink,
            roster_provider=roster_provider,
        )

    @Logger.io
    async def confirm_winner(
        self, *, session_id: str, spin_id: str, caller_is_privileged: bool
    ) -> ConfirmWinnerResult:
        with self.tracer.start_as_current_span(
            'use_case.confirm_winner',
            attributes={'session.id': session_id, 'spin.id': spin_id},
        ):
            try:
                result = await self._confirm(
                    session_id=session_id,
                    spin_id=spin_id,
                    caller_is_privileged=caller_is_privileged,
                )
            except SpinError as e:
                metrics.record_confirm(result=e.kind)
                raise
            metrics.record_confirm(result='success')
            return result

    async def _confirm(
        self, *, session_id: str, spin_id: str, caller_is_privileged: bool
    ) -> ConfirmWinnerResult:
        if not caller_is_privileged:
            raise UnauthorizedSpinError()

        snapshot = await self.spin_state_handler.get_current(session_id=session_id)
        record = snapshot.record
        if record is None or not record.is_active or record.spin_id != spin_id:
            raise StaleConfirmationError()
        winner = record.winner
        if winner is None:
            raise StaleConfirmationError('Spin has no winner to confirm')

        entry = HistoryEntry(
            id=str(uuid_utils.uuid7()),
            session_id=session_id,
            spin_id=spin_id,
            winner_id=winner.id,
            winner_display_name=winner.display_name,
            spun_at=record.published_at,
            is_re_spin=False,
            idempotency_key=spin_id,
            winner_verification_code=winner.verification_code,
        )

        # (a) history
        try:
            history_entry_id = await self.history_sink.append_history_entry(entry=entry)
        except Exception as e:
            raise HistoryWriteFailedError(f'Failed to record the draw: {e}') from e

        # (b) roster
        await remove_winner_with_retry(
            roster_provider=self.roster_provider,
            session_id=session_id,
            participant_id=winner.id,
            max_attempts=self.removal_max_attempts,
            retry_delay=self.removal_retry_delay,
        )

        # (c) retire, loses only if the record changed since the read above
        retired = await self.spin_state_handler.retire(
            session_id=session_id, spin_id=spin_id, reason=RetireReason.CONFIRMED
        )
        if retired is None:
            raise StaleConfirmationError()

        Logger.base.info(
            f'🏆 [SPIN] Session {session_id} confirmed {winner.display_name} '
            f'(spin {spin_id}, history {history_entry_id})'
        )
        return ConfirmWinnerResult(
            history_entry_id=history_entry_id,
            spin_id=spin_id,
            winner_id=winner.id,
            winner_display_name=winner.display_name,
            winner_verification_code=winner.verification_code,
        )
