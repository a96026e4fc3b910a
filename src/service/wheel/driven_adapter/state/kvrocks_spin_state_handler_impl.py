"""
Kvrocks Spin State Handler

The session record lives in one string key. Each mutation is a Lua script,
so the check, the clock read, the write and the PUBLISH happen as one step
that no other writer can interleave with.
"""

from typing import Any, Optional

from opentelemetry import trace
import orjson
from redis.asyncio import Redis as AsyncRedis

from src.platform.logging.loguru_io import Logger
from src.platform.state.kvrocks_client import kvrocks_client
from src.service.wheel.app.interface.i_spin_state_handler import ISpinStateHandler, PublishResult
from src.service.wheel.domain.entity.spin_record_entity import SpinRecord, SpinSnapshot
from src.service.wheel.domain.enum.publish_outcome import PublishOutcome
from src.service.wheel.domain.enum.retire_reason import RetireReason
from src.service.wheel.driven_adapter.state.lua_script import (
    PUBLISH_IF_IDLE_SCRIPT,
    READ_SPIN_STATE_SCRIPT,
    RETIRE_SPIN_SCRIPT,
)
from src.service.wheel.driven_adapter.state.spin_keys import spin_feed_channel, spin_state_key


def _text(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


class KvrocksSpinStateHandlerImpl(ISpinStateHandler):
    def __init__(self, *, redis_client: Optional[AsyncRedis] = None) -> None:
        self._redis_client = redis_client
        self._scripts: dict[str, Any] = {}
        self.tracer = trace.get_tracer(__name__)

    @property
    def _client(self) -> AsyncRedis:
        # Resolved lazily: the pool is created in the app lifespan, after wiring
        return self._redis_client or kvrocks_client.get_client()

    def _script(self, source: str) -> Any:
        # redis-py Script falls back from EVALSHA to EVAL on NoScriptError
        if source not in self._scripts:
            self._scripts[source] = self._client.register_script(source)
        return self._scripts[source]

    @Logger.io
    async def publish_if_idle(
        self, *, draft: SpinRecord, cooldown_seconds: float, ttl_seconds: float
    ) -> PublishResult:
        session_id = draft.session_id
        with self.tracer.start_as_current_span(
            'kvrocks.spin.publish_if_idle',
            attributes={'session.id': session_id, 'spin.id': draft.spin_id},
        ):
            keys = [spin_state_key(session_id=session_id), spin_feed_channel(session_id=session_id)]
            outcome, payload = await self._script(PUBLISH_IF_IDLE_SCRIPT)(
                keys=keys,
                args=[orjson.dumps(draft.to_dict()), cooldown_seconds, ttl_seconds],
            )
            outcome = PublishOutcome(_text(outcome))

            if outcome is PublishOutcome.PUBLISHED:
                record = SpinRecord.from_dict(orjson.loads(payload))
                Logger.base.info(
                    f'🎡 [SPIN STATE] Published spin {record.spin_id} for session {session_id}'
                )
                return PublishResult(outcome=outcome, record=record)

            if outcome is PublishOutcome.COOLDOWN_ACTIVE:
                return PublishResult(outcome=outcome, retry_after_seconds=float(_text(payload)))

            return PublishResult(outcome=outcome)

    @Logger.io
    async def get_current(self, *, session_id: str) -> SpinSnapshot:
        state_key = spin_state_key(session_id=session_id)
        result = await self._script(READ_SPIN_STATE_SCRIPT)(keys=[state_key])
        server_time = float(_text(result[0]))
        record = SpinRecord.from_dict(orjson.loads(result[1])) if len(result) > 1 else None
        return SpinSnapshot(record=record, server_time=server_time)

    @Logger.io
    async def retire(
        self, *, session_id: str, spin_id: str, reason: RetireReason
    ) -> Optional[SpinRecord]:
        with self.tracer.start_as_current_span(
            'kvrocks.spin.retire',
            attributes={'session.id': session_id, 'spin.id': spin_id, 'retire.reason': str(reason)},
        ):
            keys = [spin_state_key(session_id=session_id), spin_feed_channel(session_id=session_id)]
            payload = await self._script(RETIRE_SPIN_SCRIPT)(
                keys=keys,
                args=[spin_id, str(reason)],
            )
            if payload is None:
                Logger.base.info(
                    f'⚠️ [SPIN STATE] Retire lost CAS for spin {spin_id} in session {session_id}'
                )
                return None
            return SpinRecord.from_dict(orjson.loads(payload))
