"""Primary store with a per-call in-memory fallback."""

import logging
from typing import Optional

from codeexec.core.config import Settings
from codeexec.core.errors import StoreUnavailable
from codeexec.schemas.execution import ExecutionRecord
from codeexec.store.base import ExecutionStore
from codeexec.store.memory import MemoryExecutionStore
from codeexec.store.redis import RedisExecutionStore

logger = logging.getLogger(__name__)


class FallbackExecutionStore(ExecutionStore):
    """Tries the primary on every call and degrades to memory when it fails.

    The decision is made per call, so the primary is used again as soon as it
    recovers. Primary errors are logged and never reach the caller.
    """

    def __init__(self, primary: ExecutionStore, secondary: MemoryExecutionStore):
        self.primary = primary
        self.secondary = secondary
        self.name = f"{primary.name}+{secondary.name}"

    async def put(self, execution_id: str, record: ExecutionRecord, ttl: int) -> None:
        try:
            await self.primary.put(execution_id, record, ttl)
        except StoreUnavailable as e:
            logger.warning(
                "Primary store put failed, using memory: %s",
                e,
                extra={"execution_id": execution_id},
            )
            await self.secondary.put(execution_id, record, ttl)
            return
        # the primary copy is now the newest one
        self.secondary.discard(execution_id)

    async def get(self, execution_id: str) -> Optional[ExecutionRecord]:
        # a memory copy only exists while it is newer than the primary's
        record = await self.secondary.get(execution_id)
        if record is not None:
            return record
        try:
            return await self.primary.get(execution_id)
        except StoreUnavailable as e:
            logger.warning(
                "Primary store get failed: %s",
                e,
                extra={"execution_id": execution_id},
            )
            return None

    async def close(self) -> None:
        try:
            await self.primary.close()
        finally:
            await self.secondary.close()


def build_store(settings: Settings) -> ExecutionStore:
    if settings.REDIS_URL:
        primary = RedisExecutionStore(settings.REDIS_URL, settings.RECORD_KEY_PREFIX)
        return FallbackExecutionStore(primary, MemoryExecutionStore())
    return MemoryExecutionStore()


def describe_store(store: ExecutionStore) -> str:
    if isinstance(store, FallbackExecutionStore):
        return f"{store.primary.name} (fallback: {store.secondary.name})"
    return store.name
