import logging
from typing import Any
from fastapi import APIRouter, Body, Depends, HTTPException
from codeexec.api.deps import get_coordinator
from codeexec.core.errors import ExecutionNotFound, InvalidRequest
from codeexec.services.execution import ExecutionCoordinator

router = APIRouter(tags=["execution"])
logger = logging.getLogger(__name__)


@router.post("/execute", status_code=202)
async def execute(
    payload: dict[str, Any] = Body(...),
    coordinator: ExecutionCoordinator = Depends(get_coordinator),
):
    try:
        return await coordinator.submit(payload)
    except InvalidRequest as e:
        logger.info("Rejected execution request: %s", e)
        raise HTTPException(
            400, detail={"error": "Code execution failed", "message": str(e)}
        )


@router.get("/status/{execution_id}")
async def get_status(
    execution_id: str,
    coordinator: ExecutionCoordinator = Depends(get_coordinator),
):
    try:
        record = await coordinator.status(execution_id)
    except ExecutionNotFound as e:
        raise HTTPException(
            404, detail={"error": "Execution not found", "message": str(e)}
        )
    return record.model_dump(by_alias=True, mode="json")
