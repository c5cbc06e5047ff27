# Decision engine: single entry point composing personas, cache, votes and queue
import logging
from typing import Optional, Union

from govairn.agent.decision.decision_generator import DecisionGenerator
from govairn.data_models.governance_schemas import AIDecision, DecisionChoice, Vote
from govairn.exceptions import ValidationError
from govairn.services.decision_cache import DecisionCacheService
from govairn.services.governance_store import GovernanceStore
from govairn.services.persona_service import PersonaService
from govairn.services.processing_queue import QueueProcessor
from govairn.services.proposal_sync import ProposalSyncService
from govairn.services.snapshot_client import SnapshotClient
from govairn.services.vote_dispatcher import VoteDispatcher, resolve_vote_choice

logger = logging.getLogger(__name__)


class DecisionEngine:
    """Injectable facade used by the HTTP layer.

    Resolves the user's active persona, serves or generates the decision for
    a proposal and turns decisions into recorded votes.
    """

    def __init__(
        self,
        store: GovernanceStore,
        generator: DecisionGenerator,
        snapshot_client: Optional[SnapshotClient] = None,
    ):
        self.store = store
        self.generator = generator
        self.personas = PersonaService(store)
        self.cache = DecisionCacheService(store, generator)
        self.votes = VoteDispatcher(store)
        self.queue = QueueProcessor(store, self.cache)
        self.snapshot_client = snapshot_client
        self._sync: Optional[ProposalSyncService] = None

    @property
    def sync(self) -> ProposalSyncService:
        if self._sync is None:
            self.snapshot_client = self.snapshot_client or SnapshotClient()
            self._sync = ProposalSyncService(self.store, self.snapshot_client)
        return self._sync

    async def get_decision(self, user_id: str, proposal_id: str) -> AIDecision:
        """Decision for the user's active persona on a proposal.

        Raises:
            ValidationError: Missing user or proposal id
            PersonaNotFoundError: The user has no active persona
            ProposalNotFoundError: Unknown proposal
        """
        if not user_id or not proposal_id:
            raise ValidationError("user_id and proposal_id are required")

        persona = await self.personas.require_active_persona(user_id)
        return await self.cache.get_or_create(user_id, proposal_id, persona.id)

    async def recalculate(self, user_id: str, proposal_id: str) -> AIDecision:
        """Force a fresh decision for the active persona."""
        if not user_id or not proposal_id:
            raise ValidationError("user_id and proposal_id are required")

        persona = await self.personas.require_active_persona(user_id)
        await self.cache.mark_for_recalculation(user_id, proposal_id, persona.id)
        return await self.cache.get_or_create(user_id, proposal_id, persona.id)

    async def cast_vote_from_decision(
        self,
        user_id: str,
        proposal_id: str,
        override: Union[str, DecisionChoice, None] = None,
    ) -> Vote:
        """Vote the AI decision, or the override when one is given."""
        if not user_id or not proposal_id:
            raise ValidationError("Cannot cast vote: Missing required information.")

        decision = await self.get_decision(user_id, proposal_id)
        intent = resolve_vote_choice(decision, override)
        return await self.votes.cast_intent(user_id, proposal_id, intent)

    async def close(self) -> None:
        if self.snapshot_client is not None:
            await self.snapshot_client.aclose()
        await self.store.close()
