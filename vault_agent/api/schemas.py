"""
Pydantic schemas for the HTTP API.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response body for /health."""

    status: str = Field(..., description="Service health status")
    version: str = Field(..., description="API version")
    model: str = Field(..., description="Primary agent model")
    runtime_ready: bool = Field(..., description="Whether the agent runtime is attached")
    tracing_enabled: bool = Field(..., description="Whether Langfuse tracing is active")


class ChatRequest(BaseModel):
    """Request body for the chat endpoints."""

    message: str = Field(..., min_length=1, description="The user's message")
    conversation_id: Optional[str] = Field(
        default=None,
        pattern=r"^[A-Za-z0-9_-]{1,128}$",
        description="Conversation to continue; a new one is started when omitted",
    )


class ChatResponse(BaseModel):
    """Collected result of a non-streaming turn."""

    conversation_id: str = Field(..., description="Conversation the turn belonged to")
    text: str = Field(default="", description="Assistant text")
    tool_calls: list[dict[str, Any]] = Field(
        default_factory=list, description="Tool calls requested during the turn"
    )
    action_cards: list[dict[str, Any]] = Field(
        default_factory=list, description="Action cards awaiting confirmation"
    )
    usage: dict[str, Any] = Field(default_factory=dict, description="Token usage")
    error: Optional[str] = Field(default=None, description="Error that ended the turn")


class ActionCardResponse(BaseModel):
    """Result of confirming or cancelling an action card."""

    success: bool = Field(..., description="Whether the operation succeeded")
    message: str = Field(..., description="Human-readable outcome")
    function_name: str = Field(..., description="Tool the card was for")
    result: Optional[str] = Field(default=None, description="Tool output, if executed")
    card: Optional[dict[str, Any]] = Field(default=None, description="Card after the change")


class ToolInfo(BaseModel):
    name: str
    server: str
    description: str = ""


class ToolListResponse(BaseModel):
    """Current tool catalog."""

    tools: list[ToolInfo] = Field(default_factory=list)
    per_server_counts: dict[str, int] = Field(default_factory=dict)


class ResolveResponse(BaseModel):
    """Vault path resolution result."""

    candidate: str
    normalized: str
    resolved: str


class ErrorResponse(BaseModel):
    detail: str
