from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    APP_NAME: str = "Code Execution Backend"
    APP_VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: list[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None

    # Redis (optional). Without it records live in process memory only.
    REDIS_URL: str | None = None
    RECORD_KEY_PREFIX: str = "execution:"
    RECORD_TTL_SECONDS: int = 3600

    # Request limits
    MAX_CODE_LENGTH: int = 50_000
    MAX_INPUT_LENGTH: int = 10_000
    DEFAULT_TIMEOUT_S: int = 10
    MIN_TIMEOUT_S: int = 1

    # Sandbox defaults
    RUN_MEMORY: str = "128m"
    RUN_CPUS: str = "0.5"
    RUN_WORKDIR: str = "/app"
    RUN_SCRATCH_SIZE: str = "10m"
    LOG_TAIL_LINES: int = 100
    PULL_MISSING_IMAGES: bool = True
    WAIT_GRACE_S: float = 1.0
    CLEANUP_WORKERS: int = 4

    # None means unbounded
    MAX_CONCURRENT_EXECUTIONS: int | None = None
    SHUTDOWN_GRACE_S: float = 5.0

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
