from typing import Optional

import attrs


@attrs.define(frozen=True)
class CallerIdentity:
    user_id: str
    role: Optional[str] = None
    session_ids: tuple[str, ...] = ()
