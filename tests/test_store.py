"""Unit tests for the execution record stores and their fallback."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from codeexec.core.config import Settings
from codeexec.core.errors import StoreUnavailable
from codeexec.schemas.enums import ExecutionStatus
from codeexec.schemas.execution import ExecutionOutcome, ExecutionRecord
from codeexec.store.fallback import FallbackExecutionStore, build_store, describe_store
from codeexec.store.memory import MemoryExecutionStore
from codeexec.store.redis import RedisExecutionStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _record(**overrides: object) -> ExecutionRecord:
    fields = {"language": "python", "code": "print('hi')", "timeout_seconds": 10}
    fields.update(overrides)
    return ExecutionRecord(**fields)


def _failing_redis(**errors: Exception) -> RedisExecutionStore:
    client = AsyncMock()
    for method, error in errors.items():
        getattr(client, method).side_effect = error
    return RedisExecutionStore("redis://unused", client=client)


@pytest.mark.asyncio
async def test_memory_store_round_trips_snapshots() -> None:
    store = MemoryExecutionStore()
    record = _record()

    await store.put(record.id, record, ttl=60)
    loaded = await store.get(record.id)

    assert loaded == record
    assert loaded is not record


@pytest.mark.asyncio
async def test_memory_store_expired_entry_reads_as_missing() -> None:
    clock = FakeClock()
    store = MemoryExecutionStore(clock=clock)
    record = _record()
    await store.put(record.id, record, ttl=3600)

    clock.now += 3599
    assert await store.get(record.id) is not None

    clock.now += 1
    assert await store.get(record.id) is None
    assert len(store) == 0


@pytest.mark.asyncio
async def test_memory_store_ttl_restarts_on_put() -> None:
    clock = FakeClock()
    store = MemoryExecutionStore(clock=clock)
    record = _record()
    await store.put(record.id, record, ttl=10)
    clock.now += 8
    await store.put(record.id, record, ttl=10)
    clock.now += 8

    assert await store.get(record.id) == record


def test_memory_store_purge_expired() -> None:
    clock = FakeClock()
    store = MemoryExecutionStore(clock=clock)
    store._entries = {"a": (clock.now - 1, b"{}"), "b": (clock.now + 10, b"{}")}

    assert store.purge_expired() == 1
    assert len(store) == 1


@pytest.mark.asyncio
async def test_redis_store_uses_setex_with_prefixed_key() -> None:
    client = AsyncMock()
    store = RedisExecutionStore("redis://unused", key_prefix="execution:", client=client)
    record = _record()

    await store.put(record.id, record, ttl=3600)

    client.setex.assert_awaited_once()
    key, ttl, payload = client.setex.await_args.args
    assert key == f"execution:{record.id}"
    assert ttl == 3600
    assert b'"timeoutSeconds":10' in payload


@pytest.mark.asyncio
async def test_redis_store_get_decodes_and_handles_missing() -> None:
    record = _record()
    client = AsyncMock()
    client.get.side_effect = [record.to_json(), None]
    store = RedisExecutionStore("redis://unused", client=client)

    assert await store.get(record.id) == record
    assert await store.get("missing") is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [RedisConnectionError("refused"), RedisTimeoutError("slow"), OSError("reset")],
)
async def test_redis_store_wraps_backend_errors(error: Exception) -> None:
    store = _failing_redis(setex=error, get=error)

    with pytest.raises(StoreUnavailable):
        await store.put("x", _record(), ttl=1)
    with pytest.raises(StoreUnavailable):
        await store.get("x")


@pytest.mark.asyncio
async def test_redis_store_wraps_corrupt_payload() -> None:
    client = AsyncMock()
    client.get.return_value = b"not json"
    store = RedisExecutionStore("redis://unused", client=client)

    with pytest.raises(StoreUnavailable):
        await store.get("x")


@pytest.mark.asyncio
async def test_fallback_serves_record_from_memory_after_primary_put_fails() -> None:
    primary = _failing_redis(
        setex=RedisConnectionError("down"), get=RedisConnectionError("down")
    )
    store = FallbackExecutionStore(primary, MemoryExecutionStore())
    record = _record()

    await store.put(record.id, record, ttl=60)

    assert await store.get(record.id) == record


@pytest.mark.asyncio
async def test_fallback_reads_memory_when_primary_recovers_without_the_record() -> None:
    client = AsyncMock()
    client.setex.side_effect = RedisConnectionError("down")
    client.get.return_value = None
    store = FallbackExecutionStore(
        RedisExecutionStore("redis://unused", client=client), MemoryExecutionStore()
    )
    record = _record()

    await store.put(record.id, record, ttl=60)

    assert await store.get(record.id) == record


@pytest.mark.asyncio
async def test_fallback_prefers_primary_and_evicts_stale_memory_copy() -> None:
    saved: dict[str, bytes] = {}

    async def setex(key: str, ttl: int, value: bytes) -> None:
        saved[key] = value

    async def get(key: str) -> bytes | None:
        return saved.get(key)

    client = AsyncMock()
    client.setex.side_effect = setex
    client.get.side_effect = get
    memory = MemoryExecutionStore()
    store = FallbackExecutionStore(
        RedisExecutionStore("redis://unused", client=client), memory
    )
    stale = _record()
    await memory.put(stale.id, stale, ttl=60)
    fresh = stale.model_copy(update={"code": "print('new')"})

    await store.put(fresh.id, fresh, ttl=60)

    assert len(memory) == 0
    assert (await store.get(fresh.id)).code == "print('new')"


@pytest.mark.asyncio
async def test_fallback_never_raises_primary_errors(caplog: pytest.LogCaptureFixture) -> None:
    primary = _failing_redis(setex=OSError("boom"), get=OSError("boom"))
    store = FallbackExecutionStore(primary, MemoryExecutionStore())

    await store.put("id-1", _record(), ttl=60)
    assert await store.get("id-2") is None
    assert "Primary store" in caplog.text


def test_build_store_without_redis_is_memory_only(settings: Settings) -> None:
    assert isinstance(build_store(settings), MemoryExecutionStore)


def test_build_store_with_redis_wraps_it_in_fallback(settings: Settings) -> None:
    settings = settings.model_copy(update={"REDIS_URL": "redis://localhost:6399/0"})

    store = build_store(settings)

    assert isinstance(store, FallbackExecutionStore)
    assert isinstance(store.primary, RedisExecutionStore)
    assert isinstance(store.secondary, MemoryExecutionStore)


@pytest.mark.asyncio
async def test_memory_store_reclaims_expired_entries_nobody_reads() -> None:
    clock = FakeClock()
    store = MemoryExecutionStore(clock=clock)
    for _ in range(1000):
        record = _record()
        await store.put(record.id, record, ttl=3600)

    clock.now += 10 * 3600
    latest = _record()
    await store.put(latest.id, latest, ttl=3600)

    assert len(store) == 1
    assert await store.get(latest.id) == latest


@pytest.mark.asyncio
async def test_memory_store_sweeps_at_most_once_per_interval() -> None:
    clock = FakeClock()
    store = MemoryExecutionStore(clock=clock, sweep_interval=60)
    old = _record()
    await store.put(old.id, old, ttl=1)

    clock.now += 30
    await store.put("b", _record(), ttl=3600)
    assert len(store) == 2

    clock.now += 30
    await store.put("c", _record(), ttl=3600)
    assert len(store) == 2
    assert old.id not in store._entries


@pytest.mark.asyncio
async def test_fallback_terminal_write_in_memory_wins_over_pending_in_primary() -> None:
    saved: dict[str, bytes] = {}
    down = False

    async def setex(key: str, ttl: int, value: bytes) -> None:
        if down:
            raise RedisConnectionError("down")
        saved[key] = value

    async def get(key: str) -> bytes | None:
        return saved.get(key)

    client = AsyncMock()
    client.setex.side_effect = setex
    client.get.side_effect = get
    store = FallbackExecutionStore(
        RedisExecutionStore("redis://unused", client=client), MemoryExecutionStore()
    )
    pending = _record()
    await store.put(pending.id, pending, ttl=60)

    down = True
    done = pending.finish(
        ExecutionOutcome(status=ExecutionStatus.completed, output="hi", error="")
    )
    await store.put(done.id, done, ttl=60)
    down = False

    loaded = await store.get(pending.id)

    assert loaded.status is ExecutionStatus.completed
    assert loaded.output == "hi"


@pytest.mark.asyncio
async def test_fallback_get_with_primary_down_and_no_memory_copy_is_missing() -> None:
    primary = _failing_redis(get=RedisConnectionError("down"))
    store = FallbackExecutionStore(primary, MemoryExecutionStore())

    assert await store.get("unknown") is None


def test_describe_store_names_the_backends(settings: Settings) -> None:
    assert describe_store(build_store(settings)) == "memory"
    redis_settings = settings.model_copy(update={"REDIS_URL": "redis://localhost:6399/0"})
    assert describe_store(build_store(redis_settings)) == "redis (fallback: memory)"
