from typing import Any, Optional

import attrs


@attrs.define(frozen=True)
class HistoryEntry:
    """
    Append-only record of a confirmed draw.

    A re-spin never mutates the superseded entry; it appends a new entry with
    `is_re_spin=True` pointing back through `preceding_history_entry_id`.
    """

    id: str
    session_id: str
    spin_id: Optional[str]
    winner_id: str
    winner_display_name: str
    spun_at: float
    is_re_spin: bool
    idempotency_key: str
    preceding_history_entry_id: Optional[str] = None
    recorded_at: float = 0.0
    winner_verification_code: str = ''

    def to_dict(self) -> dict[str, Any]:
        return attrs.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'HistoryEntry':
        return cls(
            id=data['id'],
            session_id=data['session_id'],
            spin_id=data.get('spin_id'),
            winner_id=data['winner_id'],
            winner_display_name=data['winner_display_name'],
            spun_at=float(data['spun_at']),
            is_re_spin=bool(data['is_re_spin']),
            idempotency_key=data['idempotency_key'],
            preceding_history_entry_id=data.get('preceding_history_entry_id'),
            recorded_at=float(data.get('recorded_at', 0.0)),
            winner_verification_code=str(data.get('winner_verification_code') or ''),
        )


def respin_idempotency_key(*, history_entry_id: str) -> str:
    return f'respin:{history_entry_id}'
