"""
Production FastAPI Application

Spin coordinator HTTP API plus the SSE spin feed.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from src.platform.app_factory import create_app
from src.platform.config.core_setting import settings
from src.platform.config.di import cleanup, container, setup
from src.platform.config.wire_modules import WIRE_MODULES
from src.platform.logging.loguru_io import Logger
from src.platform.observability.tracing import TracingConfig
from src.platform.state.kvrocks_client import kvrocks_client


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan: startup and shutdown."""
    Logger.base.info('🚀 [Wheel Service] Starting up...')

    tracing = TracingConfig(service_name='wheel-service')
    tracing.setup()
    Logger.base.info('📊 [Wheel Service] OpenTelemetry tracing configured')

    setup()
    container.wire(modules=WIRE_MODULES)
    Logger.base.info('🔌 [Wheel Service] Dependency injection wired')

    if settings.SPIN_STATE_BACKEND == 'kvrocks':
        tracing.instrument_redis()
        # Fail-fast: spin state lives in Kvrocks
        await kvrocks_client.initialize()
        Logger.base.info('📡 [Wheel Service] Kvrocks initialized')
    else:
        Logger.base.warning('⚠️ [Wheel Service] In-memory spin state, single process only')

    Logger.base.info('✅ [Wheel Service] Ready to serve requests')

    yield

    Logger.base.info('🛑 [Wheel Service] Shutting down...')
    await kvrocks_client.disconnect()
    cleanup()
    tracing.shutdown()


app = create_app(lifespan=lifespan)


@app.get('/')
async def root() -> RedirectResponse:
    return RedirectResponse(url='/docs')
