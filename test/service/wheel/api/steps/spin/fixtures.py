from collections.abc import Generator
from typing import Any

from dependency_injector import providers
import pytest

from src.platform.config.di import container


class StoreClock:
    """Stands in for the store clock; only moves when a step advances it"""

    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store_clock() -> Generator[StoreClock, None, None]:
    clock = StoreClock(now=1_700_000_000.0)
    container.clock.override(providers.Object(clock))
    # Adapters built before the override would keep the real clock
    container.reset_singletons()
    yield clock
    container.clock.reset_override()


@pytest.fixture
def wheel_state() -> dict[str, Any]:
    return {
        'session_id': None,
        'participants': [],
        'response': None,
        'spin': None,
        'confirmed': None,
        'respin': None,
    }
