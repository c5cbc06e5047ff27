from typing import Optional

from fastapi import Body, Depends

from govairn.agent.decision.orchestrator import DecisionEngine
from govairn.data_models.api_schemas import VoteRequest
from govairn.exceptions import GovAIrnError, ResourceNotFoundError
from govairn.utils.logger import logger

from .deps import get_engine, get_user_id, to_http_exception


async def cast_vote(
    proposal_id: str,
    body: Optional[VoteRequest] = Body(None),
    user_id: str = Depends(get_user_id),
    engine: DecisionEngine = Depends(get_engine),
) -> dict:
    """
    Cast the user's vote on a proposal.

    Without override_choice the AI decision is voted verbatim; with it the
    vote is recorded as a manual override.
    """
    override = body.override_choice if body else None
    try:
        vote = await engine.cast_vote_from_decision(user_id, proposal_id, override=override)
    except GovAIrnError as e:
        logger.error(f"Vote failed for user {user_id}, proposal {proposal_id}: {e.message}")
        raise to_http_exception(e)
    return vote.model_dump(mode="json")


async def get_vote(
    proposal_id: str,
    user_id: str = Depends(get_user_id),
    engine: DecisionEngine = Depends(get_engine),
) -> dict:
    """The user's recorded vote on a proposal, 404 if they have not voted."""
    try:
        vote = await engine.store.get_vote(user_id, proposal_id)
        if vote is None:
            raise ResourceNotFoundError("No vote recorded for this proposal")
    except GovAIrnError as e:
        raise to_http_exception(e)
    return vote.model_dump(mode="json")


async def list_votes(
    user_id: str = Depends(get_user_id),
    engine: DecisionEngine = Depends(get_engine),
) -> dict:
    try:
        votes = await engine.store.list_votes(user_id)
    except GovAIrnError as e:
        raise to_http_exception(e)
    return {"votes": [v.model_dump(mode="json") for v in votes]}
