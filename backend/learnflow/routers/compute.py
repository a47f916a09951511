from __future__ import annotations
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from ..errors import InvalidRequestError, PolicyExceededError
from ..orchestrator import ComputeResponse, Orchestrator
from ..tasks import TaskKind

router = APIRouter(prefix="/compute", tags=["compute"])


class ComputeRequest(BaseModel):
	subject: str
	parameter: Optional[str] = None
	force_regenerate: bool = False
	payload: Dict[str, Any] = Field(default_factory=dict)


def get_orchestrator(request: Request) -> Orchestrator:
	orchestrator = getattr(request.app.state, "orchestrator", None)
	if orchestrator is None:
		raise HTTPException(status_code=503, detail="orchestrator not ready")
	return orchestrator


def _task_kind(value: str) -> TaskKind:
	try:
		return TaskKind(value)
	except ValueError:
		raise HTTPException(status_code=404, detail=f"unknown task kind: {value}")


@router.get("/stats")
def stats(orchestrator: Orchestrator = Depends(get_orchestrator)):
	return orchestrator.stats()


@router.delete("/cache/{subject}")
def clear_cache(subject: str, task_kind: Optional[str] = None, orchestrator: Orchestrator = Depends(get_orchestrator)):
	kind = _task_kind(task_kind) if task_kind else None
	try:
		removed = orchestrator.clear(subject, kind)
	except InvalidRequestError as e:
		raise HTTPException(status_code=400, detail=str(e))
	return {"removed": removed}


@router.post("/{task_kind}", response_model=ComputeResponse)
async def compute(task_kind: str, req: ComputeRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
	kind = _task_kind(task_kind)
	try:
		return await orchestrator.compute(
			req.subject,
			kind,
			req.parameter,
			force_regenerate=req.force_regenerate,
			payload=req.payload,
		)
	except PolicyExceededError as e:
		raise HTTPException(status_code=400, detail=str(e))
	except InvalidRequestError as e:
		raise HTTPException(status_code=400, detail=str(e))
