from __future__ import annotations

import pytest

from codeexec.core.config import Settings


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        REDIS_URL=None,
        LOG_FILE=None,
        MAX_CONCURRENT_EXECUTIONS=None,
        PULL_MISSING_IMAGES=True,
        SHUTDOWN_GRACE_S=1.0,
    )
