from typing import List, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.logging.loguru_io import Logger
from src.service.wheel.app.interface.i_history_sink import IHistorySink
from src.service.wheel.domain.entity.history_entry_entity import HistoryEntry


class ListSpinHistoryUseCase:
    def __init__(self, *, history_sink: IHistorySink) -> None:
        self.history_sink = history_sink

    @classmethod
    @inject
    def depends(
        cls,
        history_sink: IHistorySink = Depends(Provide[Container.history_sink]),
    ) -> Self:
        return cls(history_sink=history_sink)

    @Logger.io
    async def list_history(self, *, session_id: str) -> List[HistoryEntry]:
        """Newest first"""
        return await self.history_sink.list_history(session_id=session_id)
