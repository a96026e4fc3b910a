"""
Restartable spin feed subscription.

Wraps a transport connection factory. Every (re)connect starts with a
replay of the current snapshot, so a subscriber that lost messages while
disconnected converges on the next receive.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

import anyio

from src.platform.logging.loguru_io import Logger
from src.platform.metrics.spin_metrics import metrics
from src.service.wheel.app.interface.i_spin_feed import (
    ISpinSubscription,
    SpinFeedDisconnectedError,
)
from src.service.wheel.domain.entity.spin_record_entity import (
    MalformedSpinRecordError,
    SpinSnapshot,
    decode_spin_snapshot,
)


class FeedConnection(ABC):
    """One live transport subscription for one session"""

    @abstractmethod
    async def receive(self) -> Any:
        """
        Next raw payload (snapshot, dict or JSON).

        Raises:
            SpinFeedDisconnectedError: transport lost or closed
        """
        pass

    @abstractmethod
    def close_nowait(self) -> None:
        """Stop delivery without awaiting; wakes a pending receive()"""
        pass

    @abstractmethod
    async def aclose(self) -> None:
        pass


class SpinSubscription(ISpinSubscription):
    def __init__(
        self,
        *,
        session_id: str,
        connect: Callable[[], Awaitable[FeedConnection]],
        reconnect_delay: float,
        transport: str,
    ) -> None:
        self.session_id = session_id
        self._connect = connect
        self._reconnect_delay = reconnect_delay
        self._transport = transport
        self._connection: Optional[FeedConnection] = None
        self._cancelled = False
        metrics.feed_subscribers.inc()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def __anext__(self) -> SpinSnapshot:
        while not self._cancelled:
            if self._connection is None:
                try:
                    self._connection = await self._connect()
                except SpinFeedDisconnectedError as e:
                    await self._wait_before_reconnect(e)
                    continue
                Logger.base.debug(
                    f'📡 [SPIN FEED] {self._transport} connected for session {self.session_id}'
                )
                if self._cancelled:
                    break

            try:
                payload = await self._connection.receive()
            except SpinFeedDisconnectedError as e:
                await self._release()
                await self._wait_before_reconnect(e)
                continue

            # Nothing is yielded once cancel() has returned
            if self._cancelled:
                break

            try:
                return decode_spin_snapshot(payload)
            except MalformedSpinRecordError as e:
                metrics.feed_malformed_snapshots.inc()
                Logger.base.warning(
                    f'⚠️ [SPIN FEED] Dropped malformed snapshot for session {self.session_id}: {e}'
                )

        await self._release()
        raise StopAsyncIteration

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        metrics.feed_subscribers.dec()
        if self._connection is not None:
            self._connection.close_nowait()
        Logger.base.debug(f'📡 [SPIN FEED] Subscription cancelled for session {self.session_id}')

    async def aclose(self) -> None:
        self.cancel()
        await self._release()

    async def _release(self) -> None:
        connection, self._connection = self._connection, None
        if connection is not None:
            await connection.aclose()

    async def _wait_before_reconnect(self, error: Exception) -> None:
        if self._cancelled:
            return
        Logger.base.warning(
            f'🔄 [SPIN FEED] {self._transport} feed for session {self.session_id} lost ({error}), '
            f'reconnecting in {self._reconnect_delay}s'
        )
        await anyio.sleep(self._reconnect_delay)
