from enum import StrEnum


class SpinErrorKind(StrEnum):
    UNAUTHORIZED = 'Unauthorized'
    ALREADY_SPINNING = 'AlreadySpinning'
    EMPTY_ROSTER = 'EmptyRoster'
    COOLDOWN_ACTIVE = 'CooldownActive'
    STALE_CONFIRMATION = 'StaleConfirmation'
    HISTORY_WRITE_FAILED = 'HistoryWriteFailed'
    ROSTER_REMOVAL_FAILED = 'RosterRemovalFailed'
    ALREADY_RESPUN = 'AlreadyRespun'
