"""Execution record store interface."""

from abc import ABC, abstractmethod
from typing import Optional

from codeexec.schemas.execution import ExecutionRecord


class ExecutionStore(ABC):
    """Ephemeral key/value store of execution records keyed by execution id.

    Implementations persist serialized snapshots only; they enforce no
    lifecycle rules of their own.
    """

    name: str = "store"

    @abstractmethod
    async def put(self, execution_id: str, record: ExecutionRecord, ttl: int) -> None:
        """Store a snapshot that expires `ttl` seconds from now."""
        ...

    @abstractmethod
    async def get(self, execution_id: str) -> Optional[ExecutionRecord]:
        """Return the record, or None if it is missing or expired."""
        ...

    async def close(self) -> None:
        return None
