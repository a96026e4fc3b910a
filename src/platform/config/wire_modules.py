"""
Wire Modules Configuration

Defines the modules that need dependency injection wiring.
Shared between production and test environments.
"""

from types import ModuleType

from src.service.wheel.app.command import (
    cancel_spin_use_case,
    confirm_winner_use_case,
    initiate_spin_use_case,
    respin_winner_use_case,
)
from src.service.wheel.app.query import get_current_spin_use_case, list_spin_history_use_case


WIRE_MODULES: list[ModuleType] = [
    initiate_spin_use_case,
    confirm_winner_use_case,
    cancel_spin_use_case,
    respin_winner_use_case,
    get_current_spin_use_case,
    list_spin_history_use_case,
]
