from fastapi import APIRouter, Depends

from govairn.utils.logger import logger

from .deps import require_api_key
from .routes_decisions import get_decision, recalculate_decision
from .routes_personas import create_persona, get_active_persona, list_personas, update_persona
from .routes_proposals import get_proposal_counts, list_proposals, process_queue, sync_proposals
from .routes_votes import cast_vote, get_vote, list_votes

router = APIRouter(dependencies=[Depends(require_api_key)])

# Decisions
router.add_api_route("/decisions/{proposal_id}", get_decision, methods=["GET"], tags=["decisions"])
router.add_api_route("/decisions/{proposal_id}/recalculate",
                     recalculate_decision, methods=["POST"], tags=["decisions"])

# Personas
router.add_api_route("/personas", list_personas, methods=["GET"], tags=["personas"])
router.add_api_route("/personas", create_persona, methods=["POST"], tags=["personas"])
router.add_api_route("/personas/active", get_active_persona, methods=["GET"], tags=["personas"])
router.add_api_route("/personas/{persona_id}", update_persona, methods=["PUT"], tags=["personas"])

# Votes
router.add_api_route("/votes", list_votes, methods=["GET"], tags=["votes"])
router.add_api_route("/votes/{proposal_id}", get_vote, methods=["GET"], tags=["votes"])
router.add_api_route("/votes/{proposal_id}", cast_vote, methods=["POST"], tags=["votes"])

# Proposals and background processing
router.add_api_route("/proposals", list_proposals, methods=["GET"], tags=["proposals"])
router.add_api_route("/proposals/sync", sync_proposals, methods=["POST"], tags=["proposals"])
router.add_api_route("/proposals/counts/{space_id}", get_proposal_counts, methods=["GET"], tags=["proposals"])
router.add_api_route("/queue/process", process_queue, methods=["POST"], tags=["queue"])

logger.info("govAIrn API routes registered")
