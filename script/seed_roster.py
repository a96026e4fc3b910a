#!/usr/bin/env python3
"""
Roster Seed Script
Populate a session roster in Kvrocks for local runs

The roster is owned by the session service, so the wheel API has no write
endpoint for it. This script writes through the same adapter the API reads
from and prints a session-admin token for the auth cookie.

Usage:
    python -m script.seed_roster <session_id> Ann Ben Cy Di
"""

import argparse
import asyncio

import jwt

from src.platform.config.core_setting import settings
from src.platform.state.kvrocks_client import kvrocks_client
from src.service.wheel.driven_adapter.state.kvrocks_roster_provider_impl import (
    KvrocksRosterProviderImpl,
)


def _admin_token(session_id: str) -> str:
    payload = {'sub': 'local-admin', 'admin_session_ids': [session_id]}
    return jwt.encode(payload, settings.SECRET_KEY.get_secret_value(), algorithm=settings.ALGORITHM)


async def main(session_id: str, names: list[str]) -> None:
    print(f'🌱 Seeding roster for session {session_id}...')
    print('=' * 50)

    try:
        await kvrocks_client.initialize()
        roster = KvrocksRosterProviderImpl()
        for name in names:
            participant = await roster.add_participant(session_id=session_id, display_name=name)
            print(
                f'   ➕ {participant.display_name} ({participant.id}) '
                f'Ticket #{participant.verification_code}'
            )

        total = len(await roster.fetch_roster(session_id=session_id))
        print('=' * 50)
        print(f'🌱 Roster now has {total} participants')
        print(f'🔑 Admin cookie {settings.AUTH_COOKIE_NAME}={_admin_token(session_id)}')
    except Exception as e:
        print(f'❌ Seeding failed: {e}')
        exit(1)
    finally:
        await kvrocks_client.disconnect()


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Seed a wheel session roster')
    parser.add_argument('session_id')
    parser.add_argument('names', nargs='+')
    args = parser.parse_args()
    asyncio.run(main(args.session_id, args.names))
