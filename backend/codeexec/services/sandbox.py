"""Runs one program in one throwaway docker container.

The docker SDK is synchronous; every call goes through a thread executor so
the event loop keeps serving other executions. Stop and remove get their own
pool: a timed-out run's wait only returns once its container is stopped.
"""

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

import docker
from docker.errors import DockerException, ImageNotFound
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import ReadTimeout

from codeexec.core.config import Settings
from codeexec.core.errors import ExecutionTimeout
from codeexec.core.languages import LanguageProfile, get_profile
from codeexec.schemas.enums import ExecutionStatus
from codeexec.schemas.execution import ExecutionOutcome
from codeexec.services.demux import LogOutput, demultiplex

logger = logging.getLogger(__name__)

CPU_PERIOD = 100_000
INPUT_FILE = "input.txt"


def shell_quote(text: str) -> str:
    """Wrap text in single quotes, closing and reopening around each quote."""
    return "'" + text.replace("'", "'\"'\"'") + "'"


def build_shell_command(
    profile: LanguageProfile, code: str, input: str | None = None
) -> str:
    # NOTE: the program text is embedded into a shell command line. Quoting is
    # the only barrier; the container's isolation is what contains abuse.
    filename = profile.source_file()
    command = f"echo {shell_quote(code)} > {filename}"
    run = profile.run_command(filename)
    if input:
        command += f" && printf '%s' {shell_quote(input)} > {INPUT_FILE}"
        run += f" < {INPUT_FILE}"
    return f"{command} && {run}"


def cpu_quota(cpus: str) -> int:
    return int(float(cpus) * CPU_PERIOD)


class ContainerOrchestrator:
    def __init__(
        self,
        settings: Settings,
        client_factory: Callable[[], "docker.DockerClient"] = docker.from_env,
    ):
        self.settings = settings
        self._client_factory = client_factory
        self._client = None
        self._cleanup_pool = ThreadPoolExecutor(
            max_workers=settings.CLEANUP_WORKERS,
            thread_name_prefix="container-cleanup",
        )

    async def _submit(self, executor, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(executor, functools.partial(fn, *args, **kwargs))

    async def _in_thread(self, fn, *args, **kwargs):
        return await self._submit(None, fn, *args, **kwargs)

    async def _in_cleanup_thread(self, fn, *args, **kwargs):
        return await self._submit(self._cleanup_pool, fn, *args, **kwargs)

    async def client(self) -> "docker.DockerClient":
        # created lazily so an unreachable engine fails executions, not startup
        if self._client is None:
            self._client = await self._in_thread(self._client_factory)
        return self._client

    def container_options(self, profile: LanguageProfile, command: str) -> dict:
        s = self.settings
        return {
            "image": profile.image,
            "command": ["sh", "-c", command],
            "working_dir": s.RUN_WORKDIR,
            "mem_limit": s.RUN_MEMORY,
            "cpu_period": CPU_PERIOD,
            "cpu_quota": cpu_quota(s.RUN_CPUS),
            "network_mode": "none",
            "read_only": True,
            "tmpfs": {s.RUN_WORKDIR: f"rw,size={s.RUN_SCRATCH_SIZE}"},
            # not detached: the container is created with stdout/stderr attached
            "detach": False,
        }

    async def run(
        self,
        execution_id: str,
        language: str,
        code: str,
        input: str | None,
        timeout_seconds: float,
    ) -> ExecutionOutcome:
        """Drive one container to a terminal outcome.

        Never raises for execution failures; they come back as a `failed`
        outcome carrying the error message.
        """
        log = {"execution_id": execution_id, "language": language}
        profile = get_profile(language)
        if profile is None:
            return ExecutionOutcome(
                status=ExecutionStatus.failed,
                error=f"Unsupported language: {language}",
            )

        container = None
        try:
            logger.info(
                "Starting %s execution with timeout: %ss",
                language,
                timeout_seconds,
                extra=log,
            )
            options = self.container_options(
                profile, build_shell_command(profile, code, input)
            )
            container = await self._create(options)
            logger.info("Container created for %s execution", language, extra=log)

            await self._in_thread(container.start)
            logger.info("Container started, waiting for execution...", extra=log)

            try:
                result = await asyncio.wait_for(
                    self._wait_and_collect(
                        container, log, timeout_seconds + self.settings.WAIT_GRACE_S
                    ),
                    timeout_seconds,
                )
            except asyncio.TimeoutError:
                raise ExecutionTimeout() from None
        except Exception as e:
            logger.error(
                "Execution failed for %s: %s", language, e, extra=log, exc_info=True
            )
            outcome = ExecutionOutcome(status=ExecutionStatus.failed, error=str(e))
        else:
            logger.info(
                "Execution completed for %s",
                language,
                extra={
                    **log,
                    "stdout_length": len(result.stdout),
                    "stderr_length": len(result.stderr),
                },
            )
            outcome = ExecutionOutcome(
                status=ExecutionStatus.completed,
                output=result.stdout,
                error=result.stderr,
            )
        finally:
            if container is not None:
                await self._cleanup(container, log)
        return outcome

    async def _create(self, options: dict):
        client = await self.client()
        try:
            return await self._in_thread(client.containers.create, **options)
        except ImageNotFound:
            if not self.settings.PULL_MISSING_IMAGES:
                raise
        logger.info("Image %s not present, pulling", options["image"])
        await self._in_thread(client.images.pull, options["image"])
        return await self._in_thread(client.containers.create, **options)

    async def _wait_and_collect(
        self, container, log: dict, wait_timeout: float
    ) -> LogOutput:
        # bounded on the engine side too; cancelling the task does not free
        # the thread blocked in wait
        try:
            status = await self._in_thread(container.wait, timeout=wait_timeout)
        except (ReadTimeout, RequestsConnectionError):
            raise ExecutionTimeout() from None
        exit_code = status.get("StatusCode") if isinstance(status, dict) else None
        return await self._collect_output(container, exit_code, log)

    def _fetch_logs(self, container) -> bytes:
        # container.logs() hands non-tty output to
        # APIClient._multiplexed_buffer_helper, which drops the 8-byte frame
        # headers and with them the stream selector. Read the raw body through
        # the same private helpers logs() uses so stdout and stderr can be told
        # apart.
        api = container.client.api
        url = api._url("/containers/{0}/logs", container.id)
        params = {
            "stdout": 1,
            "stderr": 1,
            "timestamps": 0,
            "follow": 0,
            "tail": self.settings.LOG_TAIL_LINES,
        }
        res = api._get(url, params=params)
        return api._result(res, binary=True)

    async def _collect_output(
        self, container, exit_code: int | None, log: dict
    ) -> LogOutput:
        try:
            try:
                raw = await self._in_thread(self._fetch_logs, container)
            except DockerException as e:
                logger.warning(
                    "Failed to get container logs, using exit code: %s", e, extra=log
                )
                if exit_code == 0:
                    return LogOutput("Program executed successfully", "")
                return LogOutput("", f"Container failed with exit code {exit_code}")
            logger.debug(
                "Raw container logs",
                extra={**log, "log_length": len(raw or b""), "exit_code": exit_code},
            )
            return demultiplex(raw or b"", exit_code)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Failed to get container output: %s", e, extra=log)
            return LogOutput("", f"Error capturing output: {e}")

    async def _cleanup(self, container, log: dict) -> None:
        try:
            await self._in_cleanup_thread(container.stop, timeout=0)
        except Exception as e:
            logger.debug("Container stop skipped or failed: %s", e, extra=log)
        try:
            await self._in_cleanup_thread(container.remove, force=True)
        except Exception as e:
            logger.warning("Failed to cleanup container: %s", e, extra=log)

    async def close(self) -> None:
        await self._in_thread(self._cleanup_pool.shutdown)
        if self._client is not None:
            await self._in_thread(self._client.close)
            self._client = None
