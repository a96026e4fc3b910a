from typing import Any, Optional

import attrs
import orjson

from src.service.wheel.domain.enum.retire_reason import RetireReason


class MalformedSpinRecordError(ValueError):
    """Raised when a stored or delivered spin record cannot be parsed"""


@attrs.define(frozen=True)
class WinnerRef:
    id: str
    display_name: str
    verification_code: str = ''

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'display_name': self.display_name,
            'verification_code': self.verification_code,
        }


@attrs.define(frozen=True)
class SpinRecord:
    """
    Authoritative state of the current spin for one session.

    At most one active record exists per session. `published_at` is epoch
    seconds taken from the store clock at write time; a draft built by the
    coordinator carries 0.0 until the store assigns it.
    """

    session_id: str
    spin_id: str
    is_active: bool
    winner: Optional[WinnerRef]
    target_angle: float
    duration_seconds: float
    published_at: float
    participant_count_at_spin: int
    retired_at: Optional[float] = None
    retire_reason: Optional[RetireReason] = None

    def elapsed(self, *, now: float) -> float:
        return now - self.published_at

    def is_expired(self, *, now: float, ttl_seconds: float) -> bool:
        if ttl_seconds <= 0:
            return False
        return self.elapsed(now=now) >= ttl_seconds

    def blocks_new_spin(self, *, now: float, ttl_seconds: float) -> bool:
        return self.is_active and not self.is_expired(now=now, ttl_seconds=ttl_seconds)

    def retire(self, *, reason: RetireReason, retired_at: float) -> 'SpinRecord':
        # Winner stays on the record for audit
        return attrs.evolve(self, is_active=False, retired_at=retired_at, retire_reason=reason)

    def to_dict(self) -> dict[str, Any]:
        return {
            'session_id': self.session_id,
            'spin_id': self.spin_id,
            'is_active': self.is_active,
            'winner': self.winner.to_dict() if self.winner else None,
            'target_angle': self.target_angle,
            'duration_seconds': self.duration_seconds,
            'published_at': self.published_at,
            'participant_count_at_spin': self.participant_count_at_spin,
            'retired_at': self.retired_at,
            'retire_reason': str(self.retire_reason) if self.retire_reason else None,
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'SpinRecord':
        if not isinstance(data, dict):
            raise MalformedSpinRecordError(f'spin record must be an object: {type(data).__name__}')

        try:
            is_active = data['is_active']
            if not isinstance(is_active, bool):
                raise MalformedSpinRecordError('is_active must be a boolean')

            winner = _parse_winner(data.get('winner'))
            if is_active and winner is None:
                raise MalformedSpinRecordError('active spin record has no winner')

            retire_reason = data.get('retire_reason')
            retired_at = data.get('retired_at')
            return cls(
                session_id=_require_str(data, 'session_id'),
                spin_id=_require_str(data, 'spin_id'),
                is_active=is_active,
                winner=winner,
                target_angle=_require_number(data, 'target_angle'),
                duration_seconds=_require_number(data, 'duration_seconds'),
                published_at=_require_number(data, 'published_at'),
                participant_count_at_spin=int(_require_number(data, 'participant_count_at_spin')),
                retired_at=float(retired_at) if retired_at is not None else None,
                retire_reason=RetireReason(retire_reason) if retire_reason else None,
            )
        except MalformedSpinRecordError:
            raise
        except KeyError as e:
            raise MalformedSpinRecordError(f'spin record missing field {e}') from e
        except (TypeError, ValueError) as e:
            raise MalformedSpinRecordError(f'spin record has invalid field: {e}') from e


@attrs.define(frozen=True)
class SpinSnapshot:
    """What the feed delivers: the current record (or none) plus the store clock"""

    record: Optional[SpinRecord]
    server_time: float

    @property
    def spin_id(self) -> Optional[str]:
        return self.record.spin_id if self.record else None

    def to_dict(self) -> dict[str, Any]:
        return {
            'record': self.record.to_dict() if self.record else None,
            'server_time': self.server_time,
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'SpinSnapshot':
        if not isinstance(data, dict):
            raise MalformedSpinRecordError('snapshot must be an object')
        if 'server_time' not in data:
            raise MalformedSpinRecordError('snapshot missing server_time')
        raw_record = data.get('record')
        return cls(
            record=SpinRecord.from_dict(raw_record) if raw_record is not None else None,
            server_time=_require_number(data, 'server_time'),
        )


def _parse_winner(raw: Any) -> Optional[WinnerRef]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise MalformedSpinRecordError('winner must be an object')
    verification_code = raw.get('verification_code')
    if verification_code is None:
        verification_code = ''
    if not isinstance(verification_code, str):
        raise MalformedSpinRecordError('winner.verification_code must be a string')
    return WinnerRef(
        id=_require_str(raw, 'id'),
        display_name=_require_str(raw, 'display_name', allow_empty=True),
        verification_code=verification_code,
    )


def _require_str(data: dict[str, Any], key: str, *, allow_empty: bool = False) -> str:
    value = data[key]
    if not isinstance(value, str) or (not value and not allow_empty):
        raise MalformedSpinRecordError(f'{key} must be a non-empty string')
    return value


def _require_number(data: dict[str, Any], key: str) -> float:
    value = data[key]
    # bool is an int subclass and never a valid number here
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise MalformedSpinRecordError(f'{key} must be a number')
    return float(value)


def decode_spin_snapshot(payload: Any) -> SpinSnapshot:
    """Parse a snapshot from the wire (JSON bytes/str), a dict, or pass one through"""
    if isinstance(payload, SpinSnapshot):
        return payload
    if isinstance(payload, bytes | str):
        try:
            payload = orjson.loads(payload)
        except orjson.JSONDecodeError as e:
            raise MalformedSpinRecordError(f'snapshot is not valid JSON: {e}') from e
    return SpinSnapshot.from_dict(payload)
