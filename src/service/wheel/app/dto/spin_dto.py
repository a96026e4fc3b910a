"""
Spin DTOs

Results returned to the privileged caller. The initiate result is
optimistic feedback only; observers render from the feed.
"""

import attrs


@attrs.define(frozen=True)
class InitiateSpinResult:
    spin_id: str
    winner_id: str
    winner_display_name: str
    target_angle: float
    duration_seconds: float
    winner_verification_code: str = ''


@attrs.define(frozen=True)
class ConfirmWinnerResult:
    history_entry_id: str
    spin_id: str
    winner_id: str
    winner_display_name: str
    winner_verification_code: str = ''


@attrs.define(frozen=True)
class RespinResult:
    history_entry_id: str
    preceding_history_entry_id: str
    participant_id: str  # Fresh roster id; the returning winner is a new participant
    display_name: str
    verification_code: str = ''
