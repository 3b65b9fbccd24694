from typing import Any

from fastapi import APIRouter, Request

from jobflow.v1.core.container import SchedulerDep
from jobflow.v1.core.exceptions import create_success_response
from jobflow.v1.scheduling.scheduler import Scheduler

router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.get("/triggers", response_model=dict)
async def list_triggers(
    request: Request, scheduler: Scheduler = SchedulerDep
) -> dict[str, Any]:
    return create_success_response(
        data={
            "running": scheduler.running,
            "triggers": [info.model_dump(mode="json") for info in scheduler.describe()],
        },
        request_id=request.state.request_id,
    )


@router.post("/triggers/{name}/fire", response_model=dict)
async def fire_trigger(
    name: str, request: Request, scheduler: Scheduler = SchedulerDep
) -> dict[str, Any]:
    """Run a trigger's action now. A failing action is reported, not raised."""
    result = await scheduler.fire(name)
    return create_success_response(
        data=result.model_dump(mode="json"),
        message="Trigger completed" if result.succeeded else "Trigger failed",
        request_id=request.state.request_id,
    )
