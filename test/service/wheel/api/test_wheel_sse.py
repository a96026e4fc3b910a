"""
SSE spin feed tests

The EventSourceResponse is driven as a raw ASGI app with our own
receive/send, so the stream can be read incrementally and the client
disconnect is a real `http.disconnect` message.
"""

import re

import anyio
import orjson
import pytest
from sse_starlette.sse import AppStatus
import uuid_utils

from src.platform.config.di import container
from src.service.wheel.domain.entity.spin_record_entity import SpinRecord, WinnerRef
from src.service.wheel.domain.enum.retire_reason import RetireReason
from src.service.wheel.driving_adapter.http_controller.wheel_controller import (
    stream_spin_feed,
)


@pytest.fixture(autouse=True)
def fresh_sse_app_status():
    # The exit event binds to the loop that created it
    AppStatus.should_exit_event = None
    yield
    AppStatus.should_exit_event = None


class SseClient:
    def __init__(self) -> None:
        self.messages: list[dict] = []
        self.disconnected = anyio.Event()

    async def receive(self) -> dict:
        await self.disconnected.wait()
        return {'type': 'http.disconnect'}

    async def send(self, message: dict) -> None:
        self.messages.append(message)

    @property
    def status(self) -> int:
        return next(m['status'] for m in self.messages if m['type'] == 'http.response.start')

    def events(self) -> list[tuple[str, dict]]:
        body = b''.join(
            m.get('body', b'') for m in self.messages if m['type'] == 'http.response.body'
        )
        events = []
        for block in re.split(rb'\r?\n\r?\n', body):
            lines = [line.rstrip(b'\r') for line in block.split(b'\n')]
            names = [line[len(b'event: ') :] for line in lines if line.startswith(b'event: ')]
            data = [line[len(b'data: ') :] for line in lines if line.startswith(b'data: ')]
            if data:
                events.append((names[0].decode() if names else 'message', orjson.loads(data[0])))
        return events

    async def wait_for_events(self, count: int) -> list[tuple[str, dict]]:
        with anyio.fail_after(2.0):
            while len(self.events()) < count:
                await anyio.sleep(0.005)
        return self.events()


def _draft(session_id: str) -> SpinRecord:
    return SpinRecord(
        session_id=session_id,
        spin_id=str(uuid_utils.uuid7()),
        is_active=True,
        winner=WinnerRef(id='p-3', display_name='Cy', verification_code='K7QX2M'),
        target_angle=1575.0,
        duration_seconds=4.0,
        published_at=0.0,
        participant_count_at_spin=4,
    )


def _scope(session_id: str) -> dict:
    return {
        'type': 'http',
        'asgi': {'version': '3.0'},
        'http_version': '1.1',
        'method': 'GET',
        'scheme': 'http',
        'path': f'/api/wheel/{session_id}/sse',
        'raw_path': f'/api/wheel/{session_id}/sse'.encode(),
        'query_string': b'',
        'headers': [],
        'client': ('testclient', 50000),
        'server': ('testserver', 80),
    }


class TestSpinFeedSse:
    @pytest.mark.asyncio
    async def test_replay_first_then_live_snapshots_in_order(self):
        session_id = f'session-{uuid_utils.uuid7()}'
        state_handler = container.spin_state_handler()
        spin_feed = container.spin_feed()
        client = SseClient()

        response = await stream_spin_feed(session_id)
        async with anyio.create_task_group() as tg:
            tg.start_soon(response, _scope(session_id), client.receive, client.send)

            # Replay of an empty session
            [(name, replay)] = await client.wait_for_events(1)
            assert name == 'spin_snapshot'
            assert replay['record'] is None
            assert replay['server_time'] > 0

            published = await state_handler.publish_if_idle(
                draft=_draft(session_id), cooldown_seconds=0, ttl_seconds=300
            )
            spin_id = published.record.spin_id
            await state_handler.retire(
                session_id=session_id, spin_id=spin_id, reason=RetireReason.CONFIRMED
            )

            events = await client.wait_for_events(3)
            assert client.status == 200
            live = [payload['record'] for _, payload in events[1:]]
            assert [r['spin_id'] for r in live] == [spin_id, spin_id]
            assert [r['is_active'] for r in live] == [True, False]
            assert live[1]['retire_reason'] == 'confirmed'
            assert live[0]['winner']['verification_code'] == 'K7QX2M'

            client.disconnected.set()

        assert spin_feed.subscriber_count(session_id=session_id) == 0

    @pytest.mark.asyncio
    async def test_late_subscriber_replays_current_spin(self):
        session_id = f'session-{uuid_utils.uuid7()}'
        state_handler = container.spin_state_handler()
        published = await state_handler.publish_if_idle(
            draft=_draft(session_id), cooldown_seconds=0, ttl_seconds=300
        )
        client = SseClient()

        response = await stream_spin_feed(session_id)
        async with anyio.create_task_group() as tg:
            tg.start_soon(response, _scope(session_id), client.receive, client.send)

            [(_, replay)] = await client.wait_for_events(1)
            assert replay['record']['spin_id'] == published.record.spin_id
            assert replay['record']['is_active'] is True
            assert replay['server_time'] >= replay['record']['published_at']

            client.disconnected.set()

        assert container.spin_feed().subscriber_count(session_id=session_id) == 0
