from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace
import uuid_utils

from src.platform.config.di import Container
from src.platform.exception.exceptions import NotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.wheel.app.dto.spin_dto import RespinResult
from src.service.wheel.app.interface.i_history_sink import IHistorySink
from src.service.wheel.app.interface.i_roster_provider import IRosterProvider
from src.service.wheel.domain.entity.history_entry_entity import (
    HistoryEntry,
    respin_idempotency_key,
)
from src.service.wheel.domain.spin_errors import AlreadyRespunError, UnauthorizedSpinError


class RespinWinnerUseCase:
    """
    Return a confirmed winner to the roster

    The winner rejoins as a new participant (fresh id, joined now) and a
    re-spin entry pointing at the superseded one is appended. History is
    never rewritten, and each entry can be re-spun once.
    """

    def __init__(self, *, history_sink: IHistorySink, roster_provider: IRosterProvider) -> None:
        self.history_sink = history_sink
        self.roster_provider = roster_provider
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        history_sink: IHistorySink = Depends(Provide[Container.history_sink]),
        roster_provider: IRosterProvider = Depends(Provide[Container.roster_provider]),
    ) -> Self:
        return cls(history_sink=history_sink, roster_provider=roster_provider)

    @Logger.io
    async def respin(
        self, *, session_id: str, history_entry_id: str, caller_is_privileged: bool
    ) -> RespinResult:
        with self.tracer.start_as_current_span(
            'use_case.respin_winner',
            attributes={'session.id': session_id, 'history.entry_id': history_entry_id},
        ):
            if not caller_is_privileged:
                raise UnauthorizedSpinError()

            superseded = await self.history_sink.get_entry(
                session_id=session_id, entry_id=history_entry_id
            )
            if superseded is None:
                raise NotFoundError('History entry not found')
            if await self.history_sink.find_successor(
                session_id=session_id, entry_id=history_entry_id
            ):
                raise AlreadyRespunError()

            # The returning winner keeps their ticket
            participant = await self.roster_provider.add_participant(
                session_id=session_id,
                display_name=superseded.winner_display_name,
                verification_code=superseded.winner_verification_code or None,
            )
            entry = HistoryEntry(
                id=str(uuid_utils.uuid7()),
                session_id=session_id,
                spin_id=None,
                winner_id=superseded.winner_id,
                winner_display_name=superseded.winner_display_name,
                spun_at=participant.joined_at,
                is_re_spin=True,
                idempotency_key=respin_idempotency_key(history_entry_id=history_entry_id),
                preceding_history_entry_id=history_entry_id,
                winner_verification_code=participant.verification_code,
            )
            stored_id = await self.history_sink.append_history_entry(entry=entry)

            if stored_id != entry.id:
                # A concurrent re-spin of the same entry won; undo our roster add
                await self.roster_provider.remove_participant(
                    session_id=session_id, participant_id=participant.id
                )
                raise AlreadyRespunError()

            Logger.base.info(
                f'🔁 [SPIN] Session {session_id} re-spun {superseded.winner_display_name} '
                f'(history {history_entry_id} → {stored_id})'
            )
            return RespinResult(
                history_entry_id=stored_id,
                preceding_history_entry_id=history_entry_id,
                participant_id=participant.id,
                display_name=participant.display_name,
                verification_code=participant.verification_code,
            )
