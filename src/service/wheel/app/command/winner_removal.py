"""
Winner removal

Once a draw is in history the winner must leave the roster, or they could
win again. Removal is idempotent, so it is retried with doubling backoff
before the caller gives up.
"""

import anyio

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger
from src.service.wheel.app.interface.i_roster_provider import IRosterProvider
from src.service.wheel.domain.spin_errors import RosterRemovalFailedError


async def remove_winner_with_retry(
    *,
    roster_provider: IRosterProvider,
    session_id: str,
    participant_id: str,
    max_attempts: int = settings.ROSTER_REMOVAL_MAX_ATTEMPTS,
    retry_delay: float = settings.ROSTER_REMOVAL_RETRY_DELAY_SECONDS,
) -> None:
    attempts = max(max_attempts, 1)
    for attempt in range(attempts):
        try:
            await roster_provider.remove_participant(
                session_id=session_id, participant_id=participant_id
            )
            return
        except Exception as e:
            if attempt < attempts - 1:
                Logger.base.warning(
                    f'⏳ [SPIN] Removing winner {participant_id} from session {session_id} '
                    f'failed, attempt {attempt + 1}/{attempts} | {e}'
                )
                await anyio.sleep(retry_delay * (2**attempt))
            else:
                raise RosterRemovalFailedError(
                    f'Failed to remove the winner from the roster: {e}'
                ) from e
