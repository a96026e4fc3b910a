from typing import Protocol

from src.service.wheel.domain.entity.caller_identity_entity import CallerIdentity


class IAuthorizationProvider(Protocol):
    def is_privileged(self, *, caller: CallerIdentity, session_id: str) -> bool: ...
