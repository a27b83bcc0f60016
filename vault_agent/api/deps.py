"""Request dependencies."""

from fastapi import HTTPException, Request

from ..runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Agent runtime not initialized")
    return runtime
