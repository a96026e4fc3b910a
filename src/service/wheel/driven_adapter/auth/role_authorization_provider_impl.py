from src.service.wheel.app.interface.i_authorization_provider import IAuthorizationProvider
from src.service.wheel.domain.entity.caller_identity_entity import CallerIdentity


ADMIN_ROLE = 'admin'


class RoleAuthorizationProviderImpl(IAuthorizationProvider):
    """
    Privileged = global admin role, or admin of this particular session
    (session ids listed in the token's `admin_session_ids` claim)
    """

    def __init__(self, *, admin_role: str = ADMIN_ROLE) -> None:
        self.admin_role = admin_role

    def is_privileged(self, *, caller: CallerIdentity, session_id: str) -> bool:
        return caller.role == self.admin_role or session_id in caller.session_ids
