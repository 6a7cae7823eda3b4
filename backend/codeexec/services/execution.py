import asyncio
import logging
from typing import Any, Mapping
from codeexec.core.config import Settings
from codeexec.core.errors import ExecutionNotFound, StoreUnavailable
from codeexec.schemas.enums import ExecutionStatus
from codeexec.schemas.execution import (
    ExecuteAccepted,
    ExecuteRequest,
    ExecutionOutcome,
    ExecutionRecord,
)
from codeexec.services.sandbox import ContainerOrchestrator
from codeexec.services.validation import validate_request
from codeexec.store.base import ExecutionStore
from codeexec.store.redis import RedisExecutionStore

logger = logging.getLogger(__name__)


class ExecutionCoordinator:
    """Accepts execution requests and answers status lookups.

    `submit` returns as soon as the pending record is stored; the container
    runs in a background task that writes the terminal record itself. There is
    no queue: without MAX_CONCURRENT_EXECUTIONS every submission gets its own
    container immediately.
    """

    def __init__(
        self,
        store: ExecutionStore,
        orchestrator: ContainerOrchestrator,
        settings: Settings,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.settings = settings
        self._tasks: set[asyncio.Task] = set()
        limit = settings.MAX_CONCURRENT_EXECUTIONS
        self._slots = asyncio.Semaphore(limit) if limit else None

    async def initialize(self) -> None:
        primary = getattr(self.store, "primary", None)
        if isinstance(primary, RedisExecutionStore):
            try:
                await primary.ping()
                logger.info("Code execution service initialized with Redis")
            except StoreUnavailable as e:
                logger.warning(
                    "Redis initialization failed, using memory storage: %s", e
                )
        else:
            logger.info("Code execution service initialized with memory storage")

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def submit(self, payload: ExecuteRequest | Mapping[str, Any]) -> dict:
        request = validate_request(payload, self.settings)
        record = ExecutionRecord.from_request(request)
        logger.info(
            "Received execution request",
            extra={
                "execution_id": record.id,
                "language": record.language,
                "timeout": record.timeout_seconds,
                "code_length": len(record.code),
            },
        )
        try:
            await self._save(record)
        except Exception as e:
            failed = record.finish(
                ExecutionOutcome(status=ExecutionStatus.failed, error=str(e))
            )
            try:
                await self._save(failed)
            except Exception:
                logger.exception("Could not record failed execution %s", record.id)
            raise

        task = asyncio.create_task(self._execute(record), name=f"execution-{record.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return ExecuteAccepted(execution_id=record.id).model_dump(
            by_alias=True, mode="json"
        )

    async def status(self, execution_id: str) -> ExecutionRecord:
        record = await self.store.get(execution_id)
        if record is None:
            raise ExecutionNotFound(execution_id)
        return record

    async def _save(self, record: ExecutionRecord) -> None:
        await self.store.put(record.id, record, self.settings.RECORD_TTL_SECONDS)

    async def _execute(self, record: ExecutionRecord) -> None:
        try:
            if self._slots is None:
                outcome = await self._run(record)
            else:
                async with self._slots:
                    outcome = await self._run(record)
        except Exception as e:
            logger.exception("Execution %s crashed", record.id)
            outcome = ExecutionOutcome(status=ExecutionStatus.failed, error=str(e))

        final = record.finish(outcome)
        try:
            await self._save(final)
        except Exception:
            logger.exception("Could not store result of execution %s", record.id)
            return
        logger.info(
            "Execution result stored",
            extra={
                "execution_id": record.id,
                "status": final.status.value,
                "output_length": len(final.output or ""),
            },
        )

    async def _run(self, record: ExecutionRecord) -> ExecutionOutcome:
        return await self.orchestrator.run(
            record.id,
            record.language,
            record.code,
            record.input,
            record.timeout_seconds,
        )

    async def shutdown(self) -> None:
        if self._tasks:
            pending = list(self._tasks)
            _, still_running = await asyncio.wait(
                pending, timeout=self.settings.SHUTDOWN_GRACE_S
            )
            for task in still_running:
                task.cancel()
            if still_running:
                logger.warning(
                    "Cancelled %d executions still running at shutdown",
                    len(still_running),
                )
                await asyncio.gather(*still_running, return_exceptions=True)
        await self.orchestrator.close()
        await self.store.close()

