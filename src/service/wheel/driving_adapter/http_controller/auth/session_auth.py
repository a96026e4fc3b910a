from typing import Optional

from fastapi import Depends
from opentelemetry import trace

from src.platform.config.di import container
from src.service.wheel.domain.entity.caller_identity_entity import CallerIdentity
from src.service.wheel.driving_adapter.http_controller.auth.jwt_auth import get_current_caller


async def caller_is_privileged(
    session_id: str,
    caller: Optional[CallerIdentity] = Depends(get_current_caller),
) -> bool:
    """Resolve the caller's privilege for the session in the path; anonymous is never privileged"""
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span(
        'auth.caller_is_privileged',
        attributes={'session.id': session_id, 'user.id': caller.user_id if caller else ''},
    ):
        if caller is None:
            return False
        return container.authorization_provider().is_privileged(
            caller=caller, session_id=session_id
        )
