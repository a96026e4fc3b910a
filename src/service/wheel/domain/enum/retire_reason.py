from enum import StrEnum


class RetireReason(StrEnum):
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
