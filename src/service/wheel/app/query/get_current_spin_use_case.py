from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.logging.loguru_io import Logger
from src.service.wheel.app.interface.i_spin_state_handler import ISpinStateHandler
from src.service.wheel.domain.entity.spin_record_entity import SpinSnapshot


class GetCurrentSpinUseCase:
    def __init__(self, *, spin_state_handler: ISpinStateHandler) -> None:
        self.spin_state_handler = spin_state_handler

    @classmethod
    @inject
    def depends(
        cls,
        spin_state_handler: ISpinStateHandler = Depends(Provide[Container.spin_state_handler]),
    ) -> Self:
        return cls(spin_state_handler=spin_state_handler)

    @Logger.io
    async def get_current(self, *, session_id: str) -> SpinSnapshot:
        return await self.spin_state_handler.get_current(session_id=session_id)
