class ExecutionError(Exception):
    """Base class for errors raised by the execution engine."""


class InvalidRequest(ExecutionError):
    """The request was rejected before any execution record was created."""

    def __init__(self, message: str):
        super().__init__(f"Validation error: {message}")


class InvalidLanguage(InvalidRequest):
    pass


class CodeTooLarge(InvalidRequest):
    pass


class InputTooLarge(InvalidRequest):
    pass


class InvalidTimeout(InvalidRequest):
    pass


class ExecutionNotFound(ExecutionError):
    def __init__(self, execution_id: str):
        super().__init__("Execution not found")
        self.execution_id = execution_id


class ExecutionTimeout(ExecutionError):
    def __init__(self, message: str = "Execution timeout"):
        super().__init__(message)


class StoreUnavailable(ExecutionError):
    """The primary record store could not serve a call."""
