from datetime import datetime, timezone
from uuid import uuid4
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from codeexec.schemas.enums import ExecutionStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def gen_id() -> str:
    return str(uuid4())


class ExecuteRequest(BaseModel):
    """Body of POST /execute, before any rule beyond types is applied."""

    language: str
    code: str
    input: str | None = None
    timeout: int | float | None = None

    @field_validator("timeout", mode="before")
    @classmethod
    def _reject_bool_timeout(cls, v):
        if isinstance(v, bool):
            raise ValueError("must be a number")
        return v


class ExecutionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    language: str
    code: str
    input: str | None = None
    timeout_seconds: int | float


class ExecuteAccepted(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    execution_id: str
    status: ExecutionStatus = ExecutionStatus.pending
    message: str = "Code execution started"


class ExecutionOutcome(BaseModel):
    status: ExecutionStatus
    output: str | None = None
    error: str | None = None


class ExecutionRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=gen_id)
    status: ExecutionStatus = ExecutionStatus.pending
    language: str
    code: str
    input: str | None = None
    timeout_seconds: int | float
    start_time: datetime = Field(default_factory=utcnow)
    end_time: datetime | None = None
    output: str | None = None
    error: str | None = None

    @classmethod
    def from_request(cls, req: ExecutionRequest) -> "ExecutionRecord":
        return cls(
            language=req.language,
            code=req.code,
            input=req.input,
            timeout_seconds=req.timeout_seconds,
        )

    def finish(self, outcome: ExecutionOutcome) -> "ExecutionRecord":
        """Return the terminal copy of this record.

        A record finishes at most once; finishing a terminal record is a bug
        in the caller.
        """
        if self.status.is_terminal:
            raise ValueError(f"execution {self.id} is already {self.status.value}")
        if not outcome.status.is_terminal:
            raise ValueError(f"{outcome.status.value} is not a terminal status")
        return self.model_copy(
            update={
                "status": outcome.status,
                "output": outcome.output,
                "error": outcome.error,
                "end_time": utcnow(),
            }
        )

    def to_json(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode()

    @classmethod
    def from_json(cls, data: bytes | str) -> "ExecutionRecord":
        return cls.model_validate_json(data)
