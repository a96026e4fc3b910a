"""Lua script loader for spin state Kvrocks operations"""

from pathlib import Path


def load_lua_script(*, script_name: str) -> str:
    """
    Load a Lua script from the lua_script directory

    Raises:
        FileNotFoundError: If the script file doesn't exist
    """
    script_path = Path(__file__).parent / f'{script_name}.lua'

    if not script_path.exists():
        raise FileNotFoundError(f'Lua script not found: {script_path}')

    return script_path.read_text(encoding='utf-8')


PUBLISH_IF_IDLE_SCRIPT = load_lua_script(script_name='publish_if_idle')
RETIRE_SPIN_SCRIPT = load_lua_script(script_name='retire_spin')
READ_SPIN_STATE_SCRIPT = load_lua_script(script_name='read_spin_state')
APPEND_HISTORY_SCRIPT = load_lua_script(script_name='append_history')
