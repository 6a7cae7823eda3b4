from redis import asyncio as aioredis
from redis.exceptions import RedisError
from pydantic import ValidationError
from codeexec.core.errors import StoreUnavailable
from codeexec.schemas.execution import ExecutionRecord
from codeexec.store.base import ExecutionStore

# transport failures surface as OSError subclasses before redis wraps them
_PRIMARY_ERRORS = (RedisError, OSError, ValidationError, ValueError)


class RedisExecutionStore(ExecutionStore):
    name = "redis"

    def __init__(self, url: str, key_prefix: str = "execution:", client=None):
        self._client = client or aioredis.from_url(url, decode_responses=False)
        self._prefix = key_prefix

    def key(self, execution_id: str) -> str:
        return f"{self._prefix}{execution_id}"

    async def put(self, execution_id: str, record: ExecutionRecord, ttl: int) -> None:
        try:
            await self._client.setex(self.key(execution_id), ttl, record.to_json())
        except _PRIMARY_ERRORS as e:
            raise StoreUnavailable(f"redis put failed: {e}") from e

    async def get(self, execution_id: str) -> ExecutionRecord | None:
        try:
            data = await self._client.get(self.key(execution_id))
            return ExecutionRecord.from_json(data) if data else None
        except _PRIMARY_ERRORS as e:
            raise StoreUnavailable(f"redis get failed: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except _PRIMARY_ERRORS as e:
            raise StoreUnavailable(f"redis ping failed: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()
