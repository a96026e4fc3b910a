from enum import StrEnum


class PublishOutcome(StrEnum):
    """Result of the atomic create-if-idle write"""

    PUBLISHED = 'published'
    ALREADY_SPINNING = 'already_spinning'
    COOLDOWN_ACTIVE = 'cooldown_active'
