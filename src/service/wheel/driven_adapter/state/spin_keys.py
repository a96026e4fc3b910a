from src.platform.state.kvrocks_client import prefixed_key


def spin_state_key(*, session_id: str) -> str:
    return prefixed_key(f'spin:state:{session_id}')


def spin_feed_channel(*, session_id: str) -> str:
    return prefixed_key(f'spin:feed:{session_id}')


def history_list_key(*, session_id: str) -> str:
    return prefixed_key(f'spin:history:{session_id}')


def history_entries_key(*, session_id: str) -> str:
    return prefixed_key(f'spin:history:{session_id}:entries')


def history_idempotency_key(*, key: str) -> str:
    return prefixed_key(f'spin:history:idem:{key}')


def roster_index_key(*, session_id: str) -> str:
    return prefixed_key(f'roster:{session_id}')


def roster_participants_key(*, session_id: str) -> str:
    return prefixed_key(f'roster:{session_id}:participants')
