"""
Kvrocks Spin Feed Implementation

Channel: spin:feed:{session_id}. Snapshots are PUBLISHed by the state Lua
scripts in the same step as the write. Each connection subscribes first and
reads the current state second, so nothing published in between is missed
(at worst it arrives twice).
"""

import contextlib
from functools import partial
from typing import Any, Optional

from redis.asyncio import Redis as AsyncRedis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger
from src.platform.state.kvrocks_client import kvrocks_client
from src.service.wheel.app.interface.i_spin_feed import ISpinFeed, SpinFeedDisconnectedError
from src.service.wheel.app.interface.i_spin_state_handler import ISpinStateHandler
from src.service.wheel.domain.entity.spin_record_entity import (
    MalformedSpinRecordError,
    SpinSnapshot,
)
from src.service.wheel.driven_adapter.feed.spin_subscription import (
    FeedConnection,
    SpinSubscription,
)
from src.service.wheel.driven_adapter.state.spin_keys import spin_feed_channel


class _KvrocksConnection(FeedConnection):
    def __init__(
        self,
        *,
        pubsub_client: AsyncRedis,
        pubsub: PubSub,
        channel: str,
        replay: Optional[SpinSnapshot],
        poll_timeout: float,
    ) -> None:
        self._pubsub_client = pubsub_client
        self._pubsub = pubsub
        self._channel = channel
        self._replay: Optional[SpinSnapshot] = replay
        self._poll_timeout = poll_timeout
        self._closed = False

    async def receive(self) -> Any:
        if self._replay is not None:
            replay, self._replay = self._replay, None
            return replay

        # Poll with a timeout so close_nowait() takes effect without a message arriving
        while not self._closed:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=self._poll_timeout
                )
            except (RedisError, OSError) as e:
                raise SpinFeedDisconnectedError(str(e)) from e
            if message and message['type'] == 'message':
                return message['data']
        raise SpinFeedDisconnectedError('connection closed')

    def close_nowait(self) -> None:
        self._closed = True

    async def aclose(self) -> None:
        self._closed = True
        with contextlib.suppress(RedisError, OSError):
            await self._pubsub.unsubscribe(self._channel)
        with contextlib.suppress(RedisError, OSError):
            await self._pubsub.aclose()
        with contextlib.suppress(RedisError, OSError):
            await self._pubsub_client.aclose()
        Logger.base.info(f'📡 [KVROCKS] Unsubscribed from channel: {self._channel}')


class KvrocksSpinFeed(ISpinFeed):
    def __init__(
        self,
        *,
        state_handler: ISpinStateHandler,
        reconnect_delay: float = settings.SPIN_FEED_RECONNECT_DELAY,
        poll_timeout: float = 1.0,
    ) -> None:
        self._state_handler = state_handler
        self._reconnect_delay = reconnect_delay
        self._poll_timeout = poll_timeout

    def subscribe(self, *, session_id: str) -> SpinSubscription:
        return SpinSubscription(
            session_id=session_id,
            connect=partial(self._connect, session_id=session_id),
            reconnect_delay=self._reconnect_delay,
            transport='kvrocks',
        )

    async def _connect(self, *, session_id: str) -> _KvrocksConnection:
        channel = spin_feed_channel(session_id=session_id)
        pubsub_client: Optional[AsyncRedis] = None
        pubsub: Optional[PubSub] = None
        try:
            # Dedicated client with no socket timeout for pub/sub
            pubsub_client = await kvrocks_client.create_pubsub_client()
            pubsub = pubsub_client.pubsub()
            await pubsub.subscribe(channel)
            replay = await self._read_replay(session_id=session_id)
        except (RedisError, OSError) as e:
            if pubsub is not None:
                with contextlib.suppress(RedisError, OSError):
                    await pubsub.aclose()
            if pubsub_client is not None:
                with contextlib.suppress(RedisError, OSError):
                    await pubsub_client.aclose()
            raise SpinFeedDisconnectedError(str(e)) from e

        Logger.base.info(f'📡 [KVROCKS] Subscribed to channel: {channel}')
        return _KvrocksConnection(
            pubsub_client=pubsub_client,
            pubsub=pubsub,
            channel=channel,
            replay=replay,
            poll_timeout=self._poll_timeout,
        )

    async def _read_replay(self, *, session_id: str) -> Optional[SpinSnapshot]:
        try:
            return await self._state_handler.get_current(session_id=session_id)
        except MalformedSpinRecordError as e:
            # Live snapshots still flow; the next valid write replaces the stored record
            Logger.base.warning(f'⚠️ [KVROCKS] Skipping replay for session {session_id}: {e}')
            return None
