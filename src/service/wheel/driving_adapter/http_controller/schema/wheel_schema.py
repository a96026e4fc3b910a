from typing import List, Optional

from pydantic import BaseModel


class InitiateSpinResponse(BaseModel):
    model_config = {
        'json_schema_extra': {
            'example': {
                'spin_id': '01936d8f-5e73-7c4e-a9c5-123456789abc',  # UUID7
                'winner_id': '01936d8f-1111-7c4e-a9c5-123456789abc',
                'winner_display_name': 'Alice',
                'winner_verification_code': 'K7QX2M',
                'target_angle': 1575.0,
                'duration_seconds': 4.213,
            }
        },
    }

    spin_id: str
    winner_id: str
    winner_display_name: str
    target_angle: float
    duration_seconds: float
    winner_verification_code: str = ''


class ConfirmWinnerResponse(BaseModel):
    history_entry_id: str
    spin_id: str
    winner_id: str
    winner_display_name: str
    winner_verification_code: str = ''


class WinnerSchema(BaseModel):
    id: str
    display_name: str
    verification_code: str = ''


class SpinRecordSchema(BaseModel):
    session_id: str
    spin_id: str
    is_active: bool
    winner: Optional[WinnerSchema] = None
    target_angle: float
    duration_seconds: float
    published_at: float
    participant_count_at_spin: int
    retired_at: Optional[float] = None
    retire_reason: Optional[str] = None


class SpinSnapshotResponse(BaseModel):
    record: Optional[SpinRecordSchema] = None
    server_time: float


class HistoryEntryResponse(BaseModel):
    id: str
    session_id: str
    spin_id: Optional[str] = None
    winner_id: str
    winner_display_name: str
    winner_verification_code: str = ''
    spun_at: float
    is_re_spin: bool
    preceding_history_entry_id: Optional[str] = None
    recorded_at: float


class HistoryListResponse(BaseModel):
    entries: List[HistoryEntryResponse]


class RespinResponse(BaseModel):
    history_entry_id: str
    preceding_history_entry_id: str
    participant_id: str
    display_name: str
    verification_code: str = ''
