#!/usr/bin/env python3
"""
Spin feed watcher
Follow a session's SSE spin feed and print what an observer's wheel shows

Every `spin_snapshot` event goes through SpinReconciler, so the output is the
same state sequence a browser client renders (late-join catch-up, dedupe,
reveal timers). The watcher reconnects when the stream drops, and the
replayed snapshot is deduped like any browser reconnect. With --token for a
privileged caller and --auto-confirm, the watcher confirms each revealed
winner like an admin clicking OK.

Usage:
    python -m script.watch_spin_feed <session_id> [--url http://localhost:8000]
"""

import argparse
import asyncio
from typing import Optional

import anyio
import httpx

from src.platform.config.core_setting import settings
from src.service.wheel.app.observer.spin_reconciler import SpinReconciler, WheelView
from src.service.wheel.domain.enum.reconciler_state import ReconcilerState


def _print_view(view: WheelView) -> None:
    if view.state is ReconcilerState.ANIMATING:
        print(
            f'🎡 ANIMATING spin={view.spin_id} angle={view.target_angle} '
            f'remaining={view.remaining_seconds:.2f}s'
        )
    elif view.state is ReconcilerState.REVEALING:
        winner = view.winner.display_name if view.winner else '?'
        ticket = view.winner.verification_code if view.winner else ''
        print(f'🏆 REVEALING {winner} (Ticket #{ticket or "N/A"}, spin={view.spin_id})')
    else:
        print(f'💤 {view.state.upper()} resting={view.resting} spin={view.spin_id}')


async def _follow(client: httpx.AsyncClient, feed_url: str, reconciler: SpinReconciler) -> None:
    async with client.stream('GET', feed_url) as response:
        response.raise_for_status()
        print(f'✅ Connected! Status: {response.status_code}')
        async for line in response.aiter_lines():
            if line.startswith('data: '):
                await reconciler.on_snapshot(line[6:])


async def follow_with_reconnect(
    client: httpx.AsyncClient,
    feed_url: str,
    reconciler: SpinReconciler,
    *,
    reconnect_delay: float,
) -> None:
    """Follow the feed until cancelled, reconnecting whenever the stream ends"""
    while True:
        try:
            await _follow(client, feed_url, reconciler)
            print('🔌 Feed closed by server')
        except httpx.HTTPError as e:
            print(f'❌ Feed error: {e}')
        # The replay after reconnect goes through the reconciler's dedupe
        print(f'🔄 Reconnecting in {reconnect_delay}s...')
        await anyio.sleep(reconnect_delay)


async def watch(
    *,
    base_url: str,
    session_id: str,
    token: Optional[str],
    auto_confirm: bool,
    reconnect_delay: float = settings.SPIN_FEED_RECONNECT_DELAY,
) -> None:
    cookies = {settings.AUTH_COOKIE_NAME: token} if token else {}
    feed_url = f'{base_url}/api/wheel/{session_id}/sse'

    async with httpx.AsyncClient(timeout=None, cookies=cookies) as client:

        async def confirm(spin_id: str) -> None:
            confirm_url = f'{base_url}/api/wheel/{session_id}/spin/{spin_id}/confirm'
            response = await client.post(confirm_url)
            print(f'✅ Confirm {spin_id}: {response.status_code} {response.text}')

        async with anyio.create_task_group() as tg:

            async def on_view_change(view: WheelView) -> None:
                _print_view(view)
                if auto_confirm and view.state is ReconcilerState.REVEALING:
                    tg.start_soon(reconciler.acknowledge)

            reconciler = SpinReconciler(
                task_group=tg,
                is_privileged=auto_confirm,
                on_view_change=on_view_change,
                confirm=confirm,
            )

            print(f'🔗 Connecting to spin feed: {feed_url}')
            try:
                await follow_with_reconnect(
                    client, feed_url, reconciler, reconnect_delay=reconnect_delay
                )
            finally:
                reconciler.close()


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Watch a wheel session spin feed')
    parser.add_argument('session_id')
    parser.add_argument('--url', default='http://localhost:8000')
    parser.add_argument('--token', help=f'{settings.AUTH_COOKIE_NAME} cookie value')
    parser.add_argument('--auto-confirm', action='store_true')
    parser.add_argument(
        '--reconnect-delay', type=float, default=settings.SPIN_FEED_RECONNECT_DELAY
    )
    args = parser.parse_args()
    try:
        asyncio.run(
            watch(
                base_url=args.url,
                session_id=args.session_id,
                token=args.token,
                auto_confirm=args.auto_confirm,
                reconnect_delay=args.reconnect_delay,
            )
        )
    except KeyboardInterrupt:
        print('\n🛑 Stopped by user')
