"""
Test Configuration

Environment setup MUST happen before any application import: settings,
the loguru sinks and the DI container read it at import time.

Layout:
- Unit tests (test/**/unit/): in-memory adapters and AsyncMock collaborators
- API tests (test/**/api/): FastAPI TestClient against the in-memory backend
- Integration tests (test/**/integration/): real Kvrocks, skipped when unreachable
"""

import os
from pathlib import Path


def _early_setup_test_environment() -> None:
    worker_id = os.environ.get('PYTEST_XDIST_WORKER', 'master')
    if worker_id == 'master':
        os.environ['KVROCKS_KEY_PREFIX'] = 'test_'
    else:
        os.environ['KVROCKS_KEY_PREFIX'] = f'test_{worker_id}_'

    test_log_dir = Path(__file__).parent / 'test_log'
    test_log_dir.mkdir(exist_ok=True)
    os.environ['TEST_LOG_DIR'] = str(test_log_dir)

    os.environ['SPIN_STATE_BACKEND'] = 'memory'
    os.environ.setdefault('SECRET_KEY', 'test_secret_key_change_in_production')


# Call immediately to set env vars before any imports
_early_setup_test_environment()

from collections.abc import Generator  # noqa: E402

import pytest  # noqa: E402

from src.platform.config.di import container  # noqa: E402


@pytest.fixture(autouse=True)
def reset_container_singletons() -> Generator[None, None, None]:
    """In-memory adapters are container singletons; every test starts empty"""
    container.reset_singletons()
    yield
    container.reset_singletons()
