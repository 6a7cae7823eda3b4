from fastapi import HTTPException, Request, status
from codeexec.services.execution import ExecutionCoordinator


def get_coordinator(request: Request) -> ExecutionCoordinator:
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Execution service not initialized",
        )
    return coordinator
