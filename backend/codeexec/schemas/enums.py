import enum


class ExecutionStatus(str, enum.Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"
    # documented but never persisted; timeouts are recorded as failed
    timeout = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ExecutionStatus.completed,
            ExecutionStatus.failed,
            ExecutionStatus.timeout,
        )
