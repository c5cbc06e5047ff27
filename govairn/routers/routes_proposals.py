from typing import Optional

from fastapi import Depends, HTTPException, Query

from govairn.agent.decision.orchestrator import DecisionEngine
from govairn.data_models.api_schemas import ProposalSyncRequest, QueueProcessRequest
from govairn.data_models.governance_schemas import ProposalStatus
from govairn.exceptions import GovAIrnError
from govairn.services.snapshot_client import SnapshotAPIError
from govairn.utils.logger import logger

from .deps import get_engine, to_http_exception


def _snapshot_http_error(error: SnapshotAPIError) -> HTTPException:
    logger.error(f"Snapshot request failed: {error}")
    return HTTPException(status_code=502, detail={
        "error_code": 502,
        "error_message": f"Snapshot API error: {error.message}",
        "retryable": True,
    })


async def list_proposals(
    dao_id: Optional[str] = Query(None),
    status: Optional[ProposalStatus] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    engine: DecisionEngine = Depends(get_engine),
) -> dict:
    try:
        proposals = await engine.store.list_proposals(dao_id=dao_id, status=status, limit=limit)
    except GovAIrnError as e:
        raise to_http_exception(e)
    return {"proposals": [p.model_dump(mode="json") for p in proposals]}


async def sync_proposals(
    body: ProposalSyncRequest,
    engine: DecisionEngine = Depends(get_engine),
) -> dict:
    """Pull a Snapshot space's proposals and queue new active ones for AI processing."""
    try:
        result = await engine.sync.sync_space(body.space_id, dao_id=body.dao_id, state=body.state, first=body.first)
    except SnapshotAPIError as e:
        raise _snapshot_http_error(e)
    except GovAIrnError as e:
        raise to_http_exception(e)
    return result.model_dump()


async def get_proposal_counts(
    space_id: str,
    engine: DecisionEngine = Depends(get_engine),
) -> dict:
    try:
        counts = await engine.sync.snapshot.get_proposal_counts(space_id)
    except SnapshotAPIError as e:
        raise _snapshot_http_error(e)
    return {**counts.model_dump(), "total": counts.total}


async def process_queue(
    body: Optional[QueueProcessRequest] = None,
    engine: DecisionEngine = Depends(get_engine),
) -> dict:
    """Drain up to `limit` entries of the AI processing queue."""
    limit = body.limit if body else None
    try:
        summary = await engine.queue.process_batch(limit)
    except GovAIrnError as e:
        raise to_http_exception(e)
    return summary.model_dump()
