from enum import StrEnum


class ReconcilerState(StrEnum):
    UNKNOWN = 'unknown'  # Subscribed, no snapshot received yet
    IDLE = 'idle'
    ANIMATING = 'animating'
    REVEALING = 'revealing'
