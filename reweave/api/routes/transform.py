"""Transform API routes.

  POST /transform                    - start a run (409 if the repository is busy)
  GET  /transform/stream/{job_id}    - SSE progress stream, ends on complete/error
  GET  /transform/result/{job_id}    - stored result (202 while running)
  GET  /locks                        - active repository locks

Finished jobs are forgotten after ``job_retention_seconds``; their result
then returns 404 and their stream 410 once the events have gone too.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from ...core.errors import PlanError
from ...core.transform.models import MigrationPlan, RepositoryRef, TransformOptions
from ..deps import get_emitter, get_lock, get_orchestrator, get_result_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["transform"])


# ── Request models ───────────────────────────────────────────────────────


class RepositoryRequest(BaseModel):
    owner: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    branch: Optional[str] = None
    path: Optional[str] = Field(None, description="Local checkout to read files from")


class OptionsRequest(BaseModel):
    aggressive: bool = Field(False, description="Passed to transformers as a hint")
    skip_tests: bool = Field(False, description="Passed to transformers as a hint")
    preserve_formatting: bool = True
    dry_run: bool = Field(False, description="Passed to transformers; runs never write to the repository")
    context_lines: int = Field(3, ge=0, description="Context lines in unified diffs")
    timeout: Optional[float] = Field(None, gt=0, description="Per-transformer timeout in seconds")
    project_path: Optional[str] = None
    use_pipeline: bool = True


class TransformRequest(BaseModel):
    repository: RepositoryRequest
    plan: Dict[str, Any]
    selected_task_ids: List[str] = Field(default_factory=list)
    options: Optional[OptionsRequest] = None


# ── Background run ───────────────────────────────────────────────────────


def _run_job(orchestrator, lock, store, job_id, repo, plan, selected_task_ids, options):
    """Execute a run and store its outcome. Releases the repository lock."""
    try:
        result = orchestrator.execute(job_id, repo, plan, selected_task_ids, options)
        outcome = {"status": "completed", "result": result.to_dict()}
    except Exception as e:
        logger.error(f"Transform job {job_id} failed: {e}")
        outcome = {"status": "failed", "error": str(e)}
    finally:
        lock.release(repo.key)

    store.finish(job_id, outcome)


# ── Routes ───────────────────────────────────────────────────────────────


@router.post("/transform")
async def start_transform(
    data: TransformRequest,
    background_tasks: BackgroundTasks,
    orchestrator=Depends(get_orchestrator),
    lock=Depends(get_lock),
    store=Depends(get_result_store),
):
    """Start executing the selected tasks of a plan (non-blocking).

    Poll GET /transform/result/{job_id} or follow GET /transform/stream/{job_id}.
    """
    try:
        plan = MigrationPlan.from_dict(data.plan)
    except PlanError as e:
        raise HTTPException(status_code=400, detail=str(e))

    repo = RepositoryRef(**data.repository.model_dump())
    options = TransformOptions(**(data.options or OptionsRequest()).model_dump())
    if options.project_path is None and repo.path:
        options.project_path = repo.path

    if not lock.acquire(repo.key):
        raise HTTPException(
            status_code=409,
            detail=f"An operation is already in progress for {repo.key}",
        )

    job_id = str(uuid.uuid4())
    store.start(job_id)

    background_tasks.add_task(
        _run_job, orchestrator, lock, store, job_id, repo, plan, data.selected_task_ids, options
    )
    logger.info(f"Transform job {job_id} started for {repo.key} ({len(data.selected_task_ids)} tasks)")
    return {"job_id": job_id, "status": "processing"}


@router.get("/transform/stream/{job_id}")
async def stream_transform(job_id: str, emitter=Depends(get_emitter), store=Depends(get_result_store)):
    """SSE stream of progress events for a job.

    Buffered events are replayed first; the stream ends after the
    ``complete`` or ``error`` event.
    """
    if not emitter.has_job(job_id):
        if store.is_finished(job_id):
            raise HTTPException(status_code=410, detail="Progress events for this job have expired")
        if job_id not in store:
            raise HTTPException(status_code=404, detail="Job not found")

    async def event_generator():
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        unsubscribe = emitter.subscribe(
            job_id, lambda event: loop.call_soon_threadsafe(queue.put_nowait, event)
        )
        try:
            while True:
                event = await queue.get()
                yield event.to_sse()
                if event.is_terminal:
                    break
        finally:
            unsubscribe()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/transform/result/{job_id}")
async def get_transform_result(job_id: str, store=Depends(get_result_store)):
    entry = store.get(job_id)

    if entry is None:
        raise HTTPException(status_code=404, detail="Job not found")
    if entry["status"] == "processing":
        return JSONResponse(status_code=202, content={"job_id": job_id, "status": "processing"})
    return {"job_id": job_id, **entry}


@router.get("/locks")
async def list_locks(lock=Depends(get_lock)):
    locks = [entry.to_dict() for entry in lock.get_active_locks()]
    return {"locks": locks, "count": len(locks)}
