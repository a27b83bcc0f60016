"""Tool catalog and vault path endpoints."""

from fastapi import APIRouter, Depends, Query

from ...runtime import Runtime
from ..deps import get_runtime
from ..schemas import ResolveResponse, ToolInfo, ToolListResponse

router = APIRouter()


@router.get(
    "/v1/tools",
    response_model=ToolListResponse,
    summary="List tools",
    description="List the tools currently discovered across all MCP servers.",
)
async def list_tools(runtime: Runtime = Depends(get_runtime)) -> ToolListResponse:
    snapshot = await runtime.catalog.get_tools()
    return ToolListResponse(
        tools=[
            ToolInfo(name=t.name, server=t.server, description=t.description)
            for t in snapshot.tools
        ],
        per_server_counts=dict(snapshot.per_server_counts),
    )


@router.post(
    "/v1/tools/invalidate",
    summary="Invalidate tool cache",
    description="Drop the cached tool catalog so the next request rediscovers tools.",
)
def invalidate_tools(runtime: Runtime = Depends(get_runtime)) -> dict:
    runtime.catalog.invalidate()
    return {"success": True}


@router.get(
    "/v1/vault/resolve",
    response_model=ResolveResponse,
    summary="Resolve a vault path",
    description="Match a loosely written note name to a real vault path.",
)
async def resolve_path(
    path: str = Query(..., min_length=1, description="Note name or path"),
    runtime: Runtime = Depends(get_runtime),
) -> ResolveResponse:
    resolved = await runtime.resolver.resolve(path)
    return ResolveResponse(
        candidate=path,
        normalized=runtime.resolver.normalize(path),
        resolved=resolved,
    )
