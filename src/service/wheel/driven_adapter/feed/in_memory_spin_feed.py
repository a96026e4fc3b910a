"""
In-memory Spin Feed Implementation

Single-process fan-out of spin snapshots over anyio memory object streams.
Used for the `memory` backend and in tests.

Memory Management:
- Each connection owns a bounded stream (SPIN_FEED_BUFFER_SIZE)
- A full stream is closed instead of dropping snapshots silently; the
  subscription then reconnects and receives a fresh replay
"""

import time
from functools import partial
from typing import Callable, Dict, List, Optional

from anyio import (
    BrokenResourceError,
    ClosedResourceError,
    EndOfStream,
    WouldBlock,
    create_memory_object_stream,
)
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger
from src.service.wheel.app.interface.i_spin_feed import ISpinFeed, SpinFeedDisconnectedError
from src.service.wheel.domain.entity.spin_record_entity import SpinRecord, SpinSnapshot
from src.service.wheel.driven_adapter.feed.spin_subscription import (
    FeedConnection,
    SpinSubscription,
)


class _InMemoryConnection(FeedConnection):
    def __init__(
        self,
        *,
        feed: 'InMemorySpinFeed',
        session_id: str,
        send_stream: MemoryObjectSendStream[SpinSnapshot],
        receive_stream: MemoryObjectReceiveStream[SpinSnapshot],
    ) -> None:
        self.session_id = session_id
        self._feed = feed
        self._send_stream = send_stream
        self._receive_stream = receive_stream

    def offer(self, snapshot: SpinSnapshot) -> bool:
        try:
            self._send_stream.send_nowait(snapshot)
            return True
        except WouldBlock:
            return False
        except (BrokenResourceError, ClosedResourceError):
            return True  # Already closing, unregister happens in close_nowait

    async def receive(self) -> SpinSnapshot:
        try:
            return await self._receive_stream.receive()
        except (EndOfStream, ClosedResourceError, BrokenResourceError) as e:
            raise SpinFeedDisconnectedError('in-memory stream closed') from e

    def close_nowait(self) -> None:
        self._feed._unregister(self)
        # Closing the send side wakes a pending receive() with EndOfStream
        self._send_stream.close()

    async def aclose(self) -> None:
        self.close_nowait()
        self._receive_stream.close()


class InMemorySpinFeed(ISpinFeed):
    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        buffer_size: int = settings.SPIN_FEED_BUFFER_SIZE,
        reconnect_delay: float = settings.SPIN_FEED_RECONNECT_DELAY,
    ) -> None:
        if buffer_size < 1:
            raise ValueError('buffer_size must be >= 1 (the replay needs a slot)')
        self._clock = clock
        self._buffer_size = buffer_size
        self._reconnect_delay = reconnect_delay
        # session_id → open connections
        self._connections: Dict[str, List[_InMemoryConnection]] = {}
        # session_id → last published record (replay source)
        self._latest: Dict[str, SpinRecord] = {}

    def subscribe(self, *, session_id: str) -> SpinSubscription:
        return SpinSubscription(
            session_id=session_id,
            connect=partial(self._connect, session_id=session_id),
            reconnect_delay=self._reconnect_delay,
            transport='memory',
        )

    def subscriber_count(self, *, session_id: str) -> int:
        return len(self._connections.get(session_id, []))

    def latest_snapshot(self, *, session_id: str) -> SpinSnapshot:
        return SpinSnapshot(record=self._latest.get(session_id), server_time=self._clock())

    async def publish(self, *, snapshot: SpinSnapshot) -> int:
        """
        Record the snapshot as the replay source and fan it out.

        Returns:
            Number of connections that received it
        """
        record: Optional[SpinRecord] = snapshot.record
        if record is None:
            raise ValueError('published snapshot must carry a record')
        session_id = record.session_id
        self._latest[session_id] = record

        delivered = 0
        for connection in list(self._connections.get(session_id, [])):
            if connection.offer(snapshot):
                delivered += 1
                continue
            # Slow consumer: force a reconnect so it catches up through the replay
            Logger.base.warning(
                f'⚠️ [SPIN FEED] Buffer full for session {session_id}, closing stream'
            )
            connection.close_nowait()

        Logger.base.debug(
            f'📡 [SPIN FEED] Published spin {record.spin_id} to session {session_id}: '
            f'delivered={delivered}'
        )
        return delivered

    async def _connect(self, *, session_id: str) -> _InMemoryConnection:
        send_stream, receive_stream = create_memory_object_stream[SpinSnapshot](
            max_buffer_size=self._buffer_size
        )
        connection = _InMemoryConnection(
            feed=self,
            session_id=session_id,
            send_stream=send_stream,
            receive_stream=receive_stream,
        )
        self._connections.setdefault(session_id, []).append(connection)
        # Replay goes first so it precedes every live snapshot on this connection
        send_stream.send_nowait(self.latest_snapshot(session_id=session_id))
        return connection

    def _unregister(self, connection: _InMemoryConnection) -> None:
        connections = self._connections.get(connection.session_id)
        if not connections:
            return
        if connection in connections:
            connections.remove(connection)
        if not connections:
            del self._connections[connection.session_id]
