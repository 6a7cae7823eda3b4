import math
from typing import Any, Mapping
from pydantic import ValidationError
from codeexec.core.config import Settings, get_settings
from codeexec.core.errors import (
    CodeTooLarge,
    InputTooLarge,
    InvalidLanguage,
    InvalidRequest,
    InvalidTimeout,
)
from codeexec.core.languages import LANGUAGES
from codeexec.schemas.execution import ExecuteRequest, ExecutionRequest

# values above this are assumed to be milliseconds
MS_THRESHOLD = 1000


def normalize_timeout(value: int | float | None, default: int) -> int | float:
    if value is None:
        return default
    if value > MS_THRESHOLD:
        return math.ceil(value / 1000)
    return value


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ())) or "request"
    return f'"{field}" {err.get("msg", "is invalid")}'


def validate_request(
    payload: ExecuteRequest | Mapping[str, Any], settings: Settings | None = None
) -> ExecutionRequest:
    settings = settings or get_settings()
    if not isinstance(payload, ExecuteRequest):
        try:
            payload = ExecuteRequest.model_validate(payload)
        except ValidationError as exc:
            raise InvalidRequest(_first_error(exc)) from exc

    if payload.language not in LANGUAGES:
        allowed = ", ".join(LANGUAGES)
        raise InvalidLanguage(f'"language" must be one of [{allowed}]')
    if not payload.code:
        raise InvalidRequest('"code" is not allowed to be empty')
    if len(payload.code) > settings.MAX_CODE_LENGTH:
        raise CodeTooLarge(
            f'"code" length must be less than or equal to {settings.MAX_CODE_LENGTH} characters long'
        )
    if payload.input is not None and len(payload.input) > settings.MAX_INPUT_LENGTH:
        raise InputTooLarge(
            f'"input" length must be less than or equal to {settings.MAX_INPUT_LENGTH} characters long'
        )
    if payload.timeout is not None and not math.isfinite(payload.timeout):
        raise InvalidTimeout('"timeout" must be a number')
    timeout = normalize_timeout(payload.timeout, settings.DEFAULT_TIMEOUT_S)
    if timeout < settings.MIN_TIMEOUT_S:
        raise InvalidTimeout(
            f'"timeout" must be greater than or equal to {settings.MIN_TIMEOUT_S}'
        )

    return ExecutionRequest(
        language=payload.language,
        code=payload.code,
        input=payload.input,
        timeout_seconds=timeout,
    )
