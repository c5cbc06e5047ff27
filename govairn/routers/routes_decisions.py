from typing import Literal, Optional

from fastapi import Depends, Query

from govairn.agent.decision.orchestrator import DecisionEngine
from govairn.exceptions import GovAIrnError
from govairn.presentation.decision_adapter import VIEW_MAPPERS
from govairn.utils.logger import logger

from .deps import get_engine, get_user_id, to_http_exception


async def get_decision(
    proposal_id: str,
    view: Optional[Literal["detail", "card", "factors", "reasoning"]] = Query(None),
    user_id: str = Depends(get_user_id),
    engine: DecisionEngine = Depends(get_engine),
) -> dict:
    """
    AI decision for the user's active persona on a proposal.

    With ?view=... the decision is returned in the matching dashboard prop
    shape instead of the raw record.
    """
    try:
        decision = await engine.get_decision(user_id, proposal_id)
    except GovAIrnError as e:
        logger.warning(f"Decision request failed for user {user_id}, proposal {proposal_id}: {e.message}")
        raise to_http_exception(e)

    if view:
        return VIEW_MAPPERS[view](decision).model_dump(by_alias=True)
    return decision.model_dump(mode="json")


async def recalculate_decision(
    proposal_id: str,
    user_id: str = Depends(get_user_id),
    engine: DecisionEngine = Depends(get_engine),
) -> dict:
    """Discard the stored decision and generate a new one."""
    try:
        decision = await engine.recalculate(user_id, proposal_id)
    except GovAIrnError as e:
        raise to_http_exception(e)
    return decision.model_dump(mode="json")
