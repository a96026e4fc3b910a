"""
https://python-dependency-injector.ets-labs.org/index.html
https://python-dependency-injector.ets-labs.org/examples/fastapi-sqlalchemy.html
"""

import time

from dependency_injector import containers, providers

from src.platform.config.core_setting import Settings, settings
from src.service.wheel.domain.winner_selector import WinnerSelector
from src.service.wheel.driven_adapter.auth.role_authorization_provider_impl import (
    RoleAuthorizationProviderImpl,
)
from src.service.wheel.driven_adapter.feed.in_memory_spin_feed import InMemorySpinFeed
from src.service.wheel.driven_adapter.feed.kvrocks_spin_feed import KvrocksSpinFeed
from src.service.wheel.driven_adapter.state.in_memory_history_sink_impl import (
    InMemoryHistorySinkImpl,
)
from src.service.wheel.driven_adapter.state.in_memory_roster_provider_impl import (
    InMemoryRosterProviderImpl,
)
from src.service.wheel.driven_adapter.state.in_memory_spin_state_handler_impl import (
    InMemorySpinStateHandlerImpl,
)
from src.service.wheel.driven_adapter.state.kvrocks_history_sink_impl import (
    KvrocksHistorySinkImpl,
)
from src.service.wheel.driven_adapter.state.kvrocks_roster_provider_impl import (
    KvrocksRosterProviderImpl,
)
from src.service.wheel.driven_adapter.state.kvrocks_spin_state_handler_impl import (
    KvrocksSpinStateHandlerImpl,
)


class Container(containers.DeclarativeContainer):
    # Configuration
    config_service = providers.Singleton(Settings)

    # Store clock for the in-memory backend (Kvrocks uses its own TIME)
    clock = providers.Object(time.time)

    # In-memory backend (single process, tests)
    in_memory_spin_feed = providers.Singleton(
        InMemorySpinFeed,
        clock=clock,
        buffer_size=settings.SPIN_FEED_BUFFER_SIZE,
        reconnect_delay=settings.SPIN_FEED_RECONNECT_DELAY,
    )
    in_memory_spin_state_handler = providers.Singleton(
        InMemorySpinStateHandlerImpl, feed=in_memory_spin_feed, clock=clock
    )

    # Kvrocks backend (client resolved lazily, pool is created in lifespan)
    kvrocks_spin_state_handler = providers.Singleton(KvrocksSpinStateHandlerImpl)
    kvrocks_spin_feed = providers.Singleton(
        KvrocksSpinFeed,
        state_handler=kvrocks_spin_state_handler,
        reconnect_delay=settings.SPIN_FEED_RECONNECT_DELAY,
    )

    # Ports, switched on SPIN_STATE_BACKEND
    spin_state_handler = providers.Selector(
        config_service.provided.SPIN_STATE_BACKEND,
        kvrocks=kvrocks_spin_state_handler,
        memory=in_memory_spin_state_handler,
    )
    spin_feed = providers.Selector(
        config_service.provided.SPIN_STATE_BACKEND,
        kvrocks=kvrocks_spin_feed,
        memory=in_memory_spin_feed,
    )
    history_sink = providers.Selector(
        config_service.provided.SPIN_STATE_BACKEND,
        kvrocks=providers.Singleton(KvrocksHistorySinkImpl),
        memory=providers.Singleton(InMemoryHistorySinkImpl, clock=clock),
    )
    roster_provider = providers.Selector(
        config_service.provided.SPIN_STATE_BACKEND,
        kvrocks=providers.Singleton(KvrocksRosterProviderImpl),
        memory=providers.Singleton(InMemoryRosterProviderImpl, clock=clock),
    )

    # Domain services
    winner_selector = providers.Singleton(
        WinnerSelector,
        min_rotations=settings.SPIN_MIN_ROTATIONS,
        max_rotations=settings.SPIN_MAX_ROTATIONS,
        min_duration_seconds=settings.SPIN_MIN_DURATION_SECONDS,
        max_duration_seconds=settings.SPIN_MAX_DURATION_SECONDS,
    )

    # Auth
    authorization_provider = providers.Singleton(RoleAuthorizationProviderImpl)


container = Container()


def setup() -> None:
    container.config_service()


def cleanup() -> None:
    container.reset_singletons()
