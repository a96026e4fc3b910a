from collections.abc import AsyncIterator
from typing import Any

import anyio
from fastapi import APIRouter, Depends, status
import orjson
from sse_starlette.sse import EventSourceResponse

from src.platform.config.core_setting import settings
from src.platform.config.di import container
from src.platform.logging.loguru_io import Logger
from src.service.wheel.app.command.cancel_spin_use_case import CancelSpinUseCase
from src.service.wheel.app.command.confirm_winner_use_case import ConfirmWinnerUseCase
from src.service.wheel.app.command.initiate_spin_use_case import InitiateSpinUseCase
from src.service.wheel.app.command.respin_winner_use_case import RespinWinnerUseCase
from src.service.wheel.app.query.get_current_spin_use_case import GetCurrentSpinUseCase
from src.service.wheel.app.query.list_spin_history_use_case import ListSpinHistoryUseCase
from src.service.wheel.driving_adapter.http_controller.auth.session_auth import (
    caller_is_privileged,
)
from src.service.wheel.driving_adapter.http_controller.schema.wheel_schema import (
    ConfirmWinnerResponse,
    HistoryEntryResponse,
    HistoryListResponse,
    InitiateSpinResponse,
    RespinResponse,
    SpinRecordSchema,
    SpinSnapshotResponse,
)


router = APIRouter()


@router.post(
    '/{session_id}/spin',
    status_code=status.HTTP_201_CREATED,
    response_model=InitiateSpinResponse,
)
@Logger.io
async def initiate_spin(
    session_id: str,
    is_privileged: bool = Depends(caller_is_privileged),
    use_case: InitiateSpinUseCase = Depends(InitiateSpinUseCase.depends),
) -> InitiateSpinResponse:
    result = await use_case.initiate_spin(
        session_id=session_id, caller_is_privileged=is_privileged
    )
    return InitiateSpinResponse(
        spin_id=result.spin_id,
        winner_id=result.winner_id,
        winner_display_name=result.winner_display_name,
        target_angle=result.target_angle,
        duration_seconds=result.duration_seconds,
        winner_verification_code=result.winner_verification_code,
    )


@router.post(
    '/{session_id}/spin/{spin_id}/confirm',
    status_code=status.HTTP_200_OK,
    response_model=ConfirmWinnerResponse,
)
@Logger.io
async def confirm_winner(
    session_id: str,
    spin_id: str,
    is_privileged: bool = Depends(caller_is_privileged),
    use_case: ConfirmWinnerUseCase = Depends(ConfirmWinnerUseCase.depends),
) -> ConfirmWinnerResponse:
    result = await use_case.confirm_winner(
        session_id=session_id, spin_id=spin_id, caller_is_privileged=is_privileged
    )
    return ConfirmWinnerResponse(
        history_entry_id=result.history_entry_id,
        spin_id=result.spin_id,
        winner_id=result.winner_id,
        winner_display_name=result.winner_display_name,
        winner_verification_code=result.winner_verification_code,
    )


@router.post(
    '/{session_id}/spin/{spin_id}/cancel',
    status_code=status.HTTP_200_OK,
    response_model=SpinRecordSchema,
)
@Logger.io
async def cancel_spin(
    session_id: str,
    spin_id: str,
    is_privileged: bool = Depends(caller_is_privileged),
    use_case: CancelSpinUseCase = Depends(CancelSpinUseCase.depends),
) -> SpinRecordSchema:
    record = await use_case.cancel_spin(
        session_id=session_id, spin_id=spin_id, caller_is_privileged=is_privileged
    )
    return SpinRecordSchema.model_validate(record.to_dict())


@router.get('/{session_id}/spin', response_model=SpinSnapshotResponse)
@Logger.io
async def get_current_spin(
    session_id: str,
    use_case: GetCurrentSpinUseCase = Depends(GetCurrentSpinUseCase.depends),
) -> SpinSnapshotResponse:
    snapshot = await use_case.get_current(session_id=session_id)
    return SpinSnapshotResponse.model_validate(snapshot.to_dict())


@router.get('/{session_id}/history', response_model=HistoryListResponse)
@Logger.io
async def list_spin_history(
    session_id: str,
    use_case: ListSpinHistoryUseCase = Depends(ListSpinHistoryUseCase.depends),
) -> HistoryListResponse:
    entries = await use_case.list_history(session_id=session_id)
    return HistoryListResponse(
        entries=[HistoryEntryResponse.model_validate(entry.to_dict()) for entry in entries]
    )


@router.post(
    '/{session_id}/history/{entry_id}/respin',
    status_code=status.HTTP_201_CREATED,
    response_model=RespinResponse,
)
@Logger.io
async def respin_winner(
    session_id: str,
    entry_id: str,
    is_privileged: bool = Depends(caller_is_privileged),
    use_case: RespinWinnerUseCase = Depends(RespinWinnerUseCase.depends),
) -> RespinResponse:
    result = await use_case.respin(
        session_id=session_id, history_entry_id=entry_id, caller_is_privileged=is_privileged
    )
    return RespinResponse(
        history_entry_id=result.history_entry_id,
        preceding_history_entry_id=result.preceding_history_entry_id,
        participant_id=result.participant_id,
        display_name=result.display_name,
        verification_code=result.verification_code,
    )


@router.get('/{session_id}/sse')
async def stream_spin_feed(session_id: str) -> EventSourceResponse:
    """
    SSE spin feed for one session

    Architecture: store write → feed (Kvrocks pub/sub or in-memory) → SSE → observer

    The first event is always the current snapshot (replay), followed by every
    published snapshot in order. Duplicates are possible after a reconnect;
    observers dedupe by spin_id.
    """
    subscription = container.spin_feed().subscribe(session_id=session_id)
    Logger.base.info(f'📡 [SSE] Observer subscribing to session {session_id}')

    async def event_generator() -> AsyncIterator[dict[str, Any]]:
        try:
            async with subscription:
                async for snapshot in subscription:
                    yield {
                        'event': 'spin_snapshot',
                        'data': orjson.dumps(snapshot.to_dict()).decode(),
                    }
        except anyio.get_cancelled_exc_class():
            Logger.base.info(f'🔌 [SSE] Observer disconnected from session {session_id}')
            raise

    return EventSourceResponse(event_generator(), ping=settings.SSE_PING_SECONDS)
