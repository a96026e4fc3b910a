from typing import Optional

from src.platform.exception.exceptions import (
    ConflictError,
    CustomBaseError,
    ForbiddenError,
    ServiceUnavailableError,
    TooManyRequestsError,
)
from src.service.wheel.domain.enum.spin_error_kind import SpinErrorKind


class SpinError(CustomBaseError):
    """Typed spin failure; `kind` is exposed to callers next to the message"""

    kind: SpinErrorKind


class UnauthorizedSpinError(SpinError, ForbiddenError):
    kind = SpinErrorKind.UNAUTHORIZED

    def __init__(self, message: str = 'Only the session admin can control the wheel') -> None:
        ForbiddenError.__init__(self, message)


class AlreadySpinningError(SpinError, ConflictError):
    kind = SpinErrorKind.ALREADY_SPINNING

    def __init__(self, message: str = 'A spin is already in progress') -> None:
        ConflictError.__init__(self, message)


class EmptyRosterSpinError(SpinError, ConflictError):
    kind = SpinErrorKind.EMPTY_ROSTER

    def __init__(self, message: str = 'No participants to spin') -> None:
        ConflictError.__init__(self, message)


class CooldownActiveError(SpinError, TooManyRequestsError):
    kind = SpinErrorKind.COOLDOWN_ACTIVE

    def __init__(self, *, retry_after_seconds: float, message: Optional[str] = None) -> None:
        self.retry_after_seconds = round(max(retry_after_seconds, 0.0), 3)
        TooManyRequestsError.__init__(
            self, message or f'Cooldown active, retry in {self.retry_after_seconds:.1f}s'
        )


class StaleConfirmationError(SpinError, ConflictError):
    kind = SpinErrorKind.STALE_CONFIRMATION

    def __init__(self, message: str = 'Spin is no longer current') -> None:
        ConflictError.__init__(self, message)


class HistoryWriteFailedError(SpinError, ServiceUnavailableError):
    kind = SpinErrorKind.HISTORY_WRITE_FAILED

    def __init__(self, message: str = 'Failed to record the draw') -> None:
        ServiceUnavailableError.__init__(self, message)


class RosterRemovalFailedError(SpinError, ServiceUnavailableError):
    kind = SpinErrorKind.ROSTER_REMOVAL_FAILED

    def __init__(self, message: str = 'Failed to remove the winner from the roster') -> None:
        ServiceUnavailableError.__init__(self, message)


class AlreadyRespunError(SpinError, ConflictError):
    kind = SpinErrorKind.ALREADY_RESPUN

    def __init__(self, message: str = 'This draw has already been re-spun') -> None:
        ConflictError.__init__(self, message)
