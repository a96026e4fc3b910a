import secrets
from typing import Any

import attrs


# No 0/O or 1/I, codes are read aloud at the venue
VERIFICATION_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
VERIFICATION_CODE_LENGTH = 6


def new_verification_code() -> str:
    return ''.join(
        secrets.choice(VERIFICATION_CODE_ALPHABET) for _ in range(VERIFICATION_CODE_LENGTH)
    )


@attrs.define(frozen=True)
class Participant:
    """
    Roster member eligible to win.

    Identity is `id` only. `display_name` is opaque text and may collide.
    `joined_at` is epoch seconds and orders the roster (ties broken by id).
    `verification_code` is the ticket the winner shows to claim the prize.
    """

    id: str
    display_name: str
    joined_at: float
    verification_code: str = ''

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'display_name': self.display_name,
            'joined_at': self.joined_at,
            'verification_code': self.verification_code,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'Participant':
        return cls(
            id=str(data['id']),
            display_name=str(data['display_name']),
            joined_at=float(data['joined_at']),
            verification_code=str(data.get('verification_code') or ''),
        )


def roster_order_key(participant: Participant) -> tuple[float, str]:
    return (participant.joined_at, participant.id)
