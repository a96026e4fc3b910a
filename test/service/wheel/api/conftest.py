"""
Test FastAPI application for the wheel API

Same routes and exception handlers as production, with the in-memory
backend and no Kvrocks or tracing exporter in the lifespan.
"""

from collections.abc import AsyncIterator, Callable, Generator
from contextlib import asynccontextmanager
from functools import partial
from typing import Any, Optional

import anyio
from fastapi import FastAPI
from fastapi.testclient import TestClient
import jwt
import pytest

from src.platform.app_factory import create_app
from src.platform.config.core_setting import settings
from src.platform.config.di import container
from src.platform.config.wire_modules import WIRE_MODULES
from src.platform.logging.loguru_io import Logger
from src.service.wheel.domain.entity.participant_entity import Participant

# BDD steps for wheel_spin.feature
from steps.spin.fixtures import *  # noqa: E402, F403
from steps.spin.given import *  # noqa: E402, F403
from steps.spin.then import *  # noqa: E402, F403
from steps.spin.when import *  # noqa: E402, F403


@asynccontextmanager
async def lifespan_for_tests(app: FastAPI) -> AsyncIterator[None]:
    Logger.base.info('🧪 [Test App] Starting up...')
    container.wire(modules=WIRE_MODULES)
    Logger.base.info('🔌 [Test App] Dependency injection wired')

    yield

    container.unwire()
    Logger.base.info('🛑 [Test App] Shut down')


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    app = create_app(lifespan=lifespan_for_tests, title_suffix=' (Test)')
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def mint_token() -> Callable[..., str]:
    def _mint(
        *, user_id: str = 'user-1', role: Optional[str] = None, admin_session_ids: tuple = ()
    ) -> str:
        payload: dict[str, Any] = {'sub': user_id, 'admin_session_ids': list(admin_session_ids)}
        if role:
            payload['role'] = role
        return jwt.encode(
            payload, settings.SECRET_KEY.get_secret_value(), algorithm=settings.ALGORITHM
        )

    return _mint


@pytest.fixture
def login(client: TestClient, mint_token: Callable[..., str]) -> Callable[..., None]:
    def _login(**claims: Any) -> None:
        client.cookies.set(settings.AUTH_COOKIE_NAME, mint_token(**claims))

    return _login


@pytest.fixture
def add_participants() -> Callable[..., list[Participant]]:
    """Seed the in-memory roster the API reads from (roster writes are not an API concern)"""

    def _add(session_id: str, *names: str) -> list[Participant]:
        roster = container.roster_provider()
        return [
            anyio.run(partial(roster.add_participant, session_id=session_id, display_name=name))
            for name in names
        ]

    return _add
