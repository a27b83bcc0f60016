"""
Action card endpoints: confirm or cancel a pending destructive operation.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ...errors import InvocationNotFoundError
from ...runtime import Runtime
from ..deps import get_runtime
from ..schemas import ActionCardResponse, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/actioncards")


@router.post(
    "/{reflection_key}/confirm",
    response_model=ActionCardResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Confirm an action card",
    description="Execute the operation held by a pending action card.",
)
async def confirm_action_card(
    reflection_key: str, runtime: Runtime = Depends(get_runtime)
) -> ActionCardResponse:
    try:
        result = await runtime.orchestrator.confirm(reflection_key)
    except InvocationNotFoundError:
        logger.info(f"Confirm for unknown or used key {reflection_key}")
        raise HTTPException(
            status_code=404, detail="Action card not found or already executed"
        )

    return ActionCardResponse(
        success=result.success,
        message=result.message,
        function_name=result.function_name,
        result=result.result,
        card=result.card.to_dict() if result.card else None,
    )


@router.post(
    "/{reflection_key}/cancel",
    response_model=ActionCardResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Cancel an action card",
    description="Discard a pending operation without executing it.",
)
def cancel_action_card(
    reflection_key: str, runtime: Runtime = Depends(get_runtime)
) -> ActionCardResponse:
    try:
        result = runtime.orchestrator.cancel(reflection_key)
    except InvocationNotFoundError:
        logger.info(f"Cancel for unknown or used key {reflection_key}")
        raise HTTPException(
            status_code=404, detail="Action card not found or already processed"
        )

    return ActionCardResponse(
        success=result.success,
        message=result.message,
        function_name=result.function_name,
        card=result.card.to_dict() if result.card else None,
    )


@router.get(
    "/{reflection_key}",
    responses={404: {"model": ErrorResponse}},
    summary="Get an action card",
)
def get_action_card(reflection_key: str, runtime: Runtime = Depends(get_runtime)) -> dict:
    card = runtime.gate.get_card(reflection_key)
    if card is None:
        raise HTTPException(status_code=404, detail="Action card not found")
    return card.to_dict()
