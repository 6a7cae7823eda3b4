"""Process-local record store. Lost on restart."""

import time
from typing import Callable, Dict, Optional, Tuple

from codeexec.schemas.execution import ExecutionRecord
from codeexec.store.base import ExecutionStore

# seconds between sweeps of expired entries, triggered by writes
SWEEP_INTERVAL_S = 60.0


class MemoryExecutionStore(ExecutionStore):
    name = "memory"

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = SWEEP_INTERVAL_S,
    ):
        self._entries: Dict[str, Tuple[float, bytes]] = {}
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    async def put(self, execution_id: str, record: ExecutionRecord, ttl: int) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self.purge_expired()
            self._next_sweep = now + self._sweep_interval
        self._entries[execution_id] = (now + ttl, record.to_json())

    async def get(self, execution_id: str) -> Optional[ExecutionRecord]:
        entry = self._entries.get(execution_id)
        if entry is None:
            return None
        expires_at, data = entry
        if self._clock() >= expires_at:
            self._entries.pop(execution_id, None)
            return None
        return ExecutionRecord.from_json(data)

    def discard(self, execution_id: str) -> None:
        self._entries.pop(execution_id, None)

    def purge_expired(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [k for k, (exp, _) in self._entries.items() if now >= exp]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
