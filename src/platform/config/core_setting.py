from pathlib import Path
from typing import Annotated, List, Literal

import orjson
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_ENV_PATH = _PROJECT_ROOT / '.env'
_ENV_FILE = _ENV_PATH if _ENV_PATH.exists() else (_PROJECT_ROOT / '.env.example')


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_ignore_empty=True,
        extra='ignore',
    )

    PROJECT_NAME: str = 'Prize Wheel Sync'
    VERSION: str = '0.1.0'
    DEBUG: bool = True  # Set to False in production

    # Security (tokens are minted by the external auth service, we only verify them)
    SECRET_KEY: SecretStr = SecretStr('test_secret_key_change_in_production')
    ALGORITHM: str = 'HS256'
    AUTH_COOKIE_NAME: str = 'fastapiusersauth'

    # CORS, comma separated or a JSON list
    BACKEND_CORS_ORIGINS: Annotated[List[str], NoDecode] = []

    @field_validator('BACKEND_CORS_ORIGINS', mode='before')
    @classmethod
    def assemble_cors_origins(cls, v: str | List[str]) -> List[str]:
        if isinstance(v, str) and v.strip().startswith('['):
            return [str(i) for i in orjson.loads(v)]
        if isinstance(v, str):
            return [i.strip() for i in v.split(',') if i.strip()]
        elif isinstance(v, list):
            return v
        return []

    # Kvrocks Configuration (Redis protocol + Kvrocks storage)
    KVROCKS_HOST: str = 'localhost'
    KVROCKS_PORT: int = 6666
    KVROCKS_DB: int = 0
    KVROCKS_PASSWORD: str = ''
    KVROCKS_KEY_PREFIX: str = ''
    REDIS_DECODE_RESPONSES: bool = True

    # Kvrocks Connection Pool Configuration
    KVROCKS_POOL_MAX_CONNECTIONS: int = 100  # Max connections in pool
    KVROCKS_POOL_SOCKET_TIMEOUT: int = 10  # Socket read/write timeout (seconds)
    KVROCKS_POOL_SOCKET_CONNECT_TIMEOUT: int = 10  # Connection timeout (seconds)
    KVROCKS_POOL_SOCKET_KEEPALIVE: bool = True  # Enable TCP keepalive
    KVROCKS_POOL_HEALTH_CHECK_INTERVAL: int = 30  # Health check interval (seconds)

    # Spin state backend: 'kvrocks' for deployments, 'memory' for single-process dev and tests
    SPIN_STATE_BACKEND: Literal['kvrocks', 'memory'] = 'kvrocks'

    # Spin policy
    SPIN_COOLDOWN_SECONDS: float = 30.0  # Measured from previous published_at, 0 disables
    SPIN_RECORD_TTL_SECONDS: float = 300.0  # Active record older than this no longer blocks
    SPIN_MIN_ROTATIONS: int = 3
    SPIN_MAX_ROTATIONS: int = 5
    SPIN_MIN_DURATION_SECONDS: float = 3.5
    SPIN_MAX_DURATION_SECONDS: float = 5.5

    # Winner removal after the draw is recorded, retried with doubling backoff
    ROSTER_REMOVAL_MAX_ATTEMPTS: int = 5
    ROSTER_REMOVAL_RETRY_DELAY_SECONDS: float = 0.2

    # Observer (reconciler) policy
    SPIN_FRESHNESS_WINDOW_SECONDS: float = 30.0
    REVEAL_SAFETY_MARGIN_SECONDS: float = 0.5
    REVEAL_DISPLAY_SECONDS: float = 8.0

    # Spin feed
    SPIN_FEED_RECONNECT_DELAY: float = 1.0
    SPIN_FEED_BUFFER_SIZE: int = 16
    SSE_PING_SECONDS: int = 15

    @field_validator('SPIN_MAX_ROTATIONS')
    @classmethod
    def validate_rotation_range(cls, v: int, info) -> int:
        min_rotations = info.data.get('SPIN_MIN_ROTATIONS', 1)
        if v < min_rotations:
            raise ValueError('SPIN_MAX_ROTATIONS must be >= SPIN_MIN_ROTATIONS')
        return v

    @field_validator('SPIN_MAX_DURATION_SECONDS')
    @classmethod
    def validate_duration_range(cls, v: float, info) -> float:
        min_duration = info.data.get('SPIN_MIN_DURATION_SECONDS', 0.0)
        if v < min_duration:
            raise ValueError('SPIN_MAX_DURATION_SECONDS must be >= SPIN_MIN_DURATION_SECONDS')
        return v


settings = Settings()  # type: ignore
