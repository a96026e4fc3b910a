from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.di import Container
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.spin_metrics import metrics
from src.service.wheel.app.interface.i_spin_state_handler import ISpinStateHandler
from src.service.wheel.domain.entity.spin_record_entity import SpinRecord
from src.service.wheel.domain.enum.retire_reason import RetireReason
from src.service.wheel.domain.spin_errors import StaleConfirmationError, UnauthorizedSpinError


class CancelSpinUseCase:
    """Force-retire the active spin without recording a draw or touching the roster"""

    def __init__(self, *, spin_state_handler: ISpinStateHandler) -> None:
        self.spin_state_handler = spin_state_handler
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        spin_state_handler: ISpinStateHandler = Depends(Provide[Container.spin_state_handler]),
    ) -> Self:
        return cls(spin_state_handler=spin_state_handler)

    @Logger.io
    async def cancel_spin(
        self, *, session_id: str, spin_id: str, caller_is_privileged: bool
    ) -> SpinRecord:
        with self.tracer.start_as_current_span(
            'use_case.cancel_spin',
            attributes={'session.id': session_id, 'spin.id': spin_id},
        ):
            if not caller_is_privileged:
                raise UnauthorizedSpinError()

            retired = await self.spin_state_handler.retire(
                session_id=session_id, spin_id=spin_id, reason=RetireReason.CANCELLED
            )
            if retired is None:
                raise StaleConfirmationError()

            metrics.spin_cancelled.inc()
            Logger.base.info(f'🛑 [SPIN] Session {session_id} cancelled spin {spin_id}')
            return retired
