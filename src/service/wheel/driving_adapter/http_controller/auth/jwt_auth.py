"""
Caller identity from the auth cookie.

Tokens are minted by the external auth service; this side only verifies
them with the shared SECRET_KEY.
"""

from typing import Any, Dict, Optional

from fastapi import Request
import jwt

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import AuthenticationError
from src.service.wheel.domain.entity.caller_identity_entity import CallerIdentity


class JwtAuth:
    def __init__(self) -> None:
        self.secret = settings.SECRET_KEY.get_secret_value()
        self.algorithm = settings.ALGORITHM

    def decode_jwt_token(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.PyJWTError:
            raise AuthenticationError('Invalid token')

    def get_caller_from_jwt(self, token: str) -> CallerIdentity:
        payload = self.decode_jwt_token(token)

        user_id = payload.get('user_id') or payload.get('sub')
        if not user_id:
            raise AuthenticationError('Invalid token')

        session_ids = payload.get('admin_session_ids') or []
        if not isinstance(session_ids, list):
            raise AuthenticationError('Invalid token')

        return CallerIdentity(
            user_id=str(user_id),
            role=payload.get('role'),
            session_ids=tuple(str(s) for s in session_ids),
        )


_jwt_auth = JwtAuth()


async def get_current_caller(request: Request) -> Optional[CallerIdentity]:
    """Anonymous callers get None and are treated as non-privileged observers"""
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        return None
    return _jwt_auth.get_caller_from_jwt(token)
