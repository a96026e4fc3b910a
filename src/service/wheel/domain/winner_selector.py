"""
Winner selection and wheel trajectory.

All randomness lives here, on the coordinator side. Observers only replay
the angle and duration they are given.
"""

import secrets
from typing import Callable, Sequence

import attrs

from src.platform.config.core_setting import settings
from src.service.wheel.domain.entity.participant_entity import Participant


class EmptyRosterError(ValueError):
    pass


@attrs.define(frozen=True)
class SpinSelection:
    winner_index: int
    target_angle: float
    duration_seconds: float
    full_rotations: int


def segment_landing_offset(*, winner_index: int, participant_count: int) -> float:
    """
    Rotation that brings the winner's segment midpoint under the pointer.

    Segment i spans [i*seg, (i+1)*seg) clockwise from the top, so rotating by
    (360 - midpoint) mod 360 lands its midpoint at 0 degrees.
    """
    segment = 360 / participant_count
    midpoint = winner_index * segment + segment / 2
    return (360 - midpoint) % 360


def _default_index_draw(n: int) -> int:
    return secrets.randbelow(n)


_system_random = secrets.SystemRandom()


def _default_rotation_draw(low: int, high: int) -> int:
    return low + secrets.randbelow(high - low + 1)


def _default_duration_draw(low: float, high: float) -> float:
    return _system_random.uniform(low, high)


class WinnerSelector:
    def __init__(
        self,
        *,
        min_rotations: int = settings.SPIN_MIN_ROTATIONS,
        max_rotations: int = settings.SPIN_MAX_ROTATIONS,
        min_duration_seconds: float = settings.SPIN_MIN_DURATION_SECONDS,
        max_duration_seconds: float = settings.SPIN_MAX_DURATION_SECONDS,
        index_draw: Callable[[int], int] = _default_index_draw,
        rotation_draw: Callable[[int, int], int] = _default_rotation_draw,
        duration_draw: Callable[[float, float], float] = _default_duration_draw,
    ) -> None:
        if min_rotations < 1 or max_rotations < min_rotations:
            raise ValueError('rotation range must satisfy 1 <= min <= max')
        if min_duration_seconds <= 0 or max_duration_seconds < min_duration_seconds:
            raise ValueError('duration range must satisfy 0 < min <= max')
        self.min_rotations = min_rotations
        self.max_rotations = max_rotations
        self.min_duration_seconds = min_duration_seconds
        self.max_duration_seconds = max_duration_seconds
        self._index_draw = index_draw
        self._rotation_draw = rotation_draw
        self._duration_draw = duration_draw

    def select(self, roster: Sequence[Participant]) -> SpinSelection:
        n = len(roster)
        if n == 0:
            raise EmptyRosterError('roster is empty')

        winner_index = self._index_draw(n)
        if not 0 <= winner_index < n:
            raise ValueError(f'index draw returned {winner_index} outside [0, {n})')

        full_rotations = self._rotation_draw(self.min_rotations, self.max_rotations)
        base_offset = segment_landing_offset(winner_index=winner_index, participant_count=n)
        duration = self._duration_draw(self.min_duration_seconds, self.max_duration_seconds)

        return SpinSelection(
            winner_index=winner_index,
            target_angle=full_rotations * 360 + base_offset,
            duration_seconds=round(duration, 3),
            full_rotations=full_rotations,
        )
