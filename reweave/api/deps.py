"""FastAPI dependencies for Reweave.

Shared services live on ``app.state`` and are handed to routes through
``Depends()``.
"""

from fastapi import Request


async def get_orchestrator(request: Request):
    """Get TransformationOrchestrator from app state."""
    return request.app.state.orchestrator


async def get_lock(request: Request):
    """Get RepositoryLock from app state."""
    return request.app.state.lock


async def get_emitter(request: Request):
    """Get ProgressEmitter from app state."""
    return request.app.state.emitter


async def get_result_store(request: Request):
    """Get JobStore from app state."""
    return request.app.state.results
