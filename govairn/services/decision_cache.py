# Get-or-create cache for AI decisions keyed by (user, proposal, persona)
import logging
from typing import Tuple

from govairn.agent.decision.decision_generator import DecisionGenerator, DecisionOutcome
from govairn.data_models.governance_schemas import AIDecision, Persona, Proposal
from govairn.exceptions import PersonaNotFoundError, ProposalNotFoundError, ValidationError
from govairn.services.governance_store import GovernanceStore

logger = logging.getLogger(__name__)


class DecisionCacheService:
    """Serves stored decisions and regenerates only when missing or flagged.

    - fresh row: returned unchanged, no LLM call
    - flagged row: the flag is cleared by compare-and-swap before regenerating;
      a caller that loses the swap returns the stored row
    - no row: generated and upserted, so concurrent first requests converge
      on a single row

    A degraded (fallback) decision is stored flagged so the next read retries
    the LLM, and so is a decision whose persona was edited while it was being
    generated.
    """

    def __init__(self, store: GovernanceStore, generator: DecisionGenerator):
        self.store = store
        self.generator = generator

    async def get_or_create(self, user_id: str, proposal_id: str, persona_id: str) -> AIDecision:
        outcome = await self.get_or_create_outcome(user_id, proposal_id, persona_id)
        return outcome.decision

    async def get_or_create_outcome(self, user_id: str, proposal_id: str, persona_id: str) -> DecisionOutcome:
        """Like get_or_create, but reports whether a freshly generated decision is degraded."""
        if not user_id or not proposal_id or not persona_id:
            raise ValidationError("user_id, proposal_id and persona_id are required")

        cache_key = f"{user_id}:{proposal_id}:{persona_id}"
        existing = await self.store.get_decision(user_id, proposal_id, persona_id)

        if existing is not None and not existing.requires_recalculation:
            logger.info(f"Decision cache HIT for {cache_key}")
            return DecisionOutcome(status="ok", decision=existing)

        persona, proposal = await self._load_inputs(user_id, proposal_id, persona_id)

        if existing is not None:
            if not await self.store.claim_recalculation(existing.id):
                logger.info(f"Recalculation for {cache_key} already claimed, serving stored decision")
                current = await self.store.get_decision(user_id, proposal_id, persona_id)
                return DecisionOutcome(status="ok", decision=current or existing)
            logger.info(f"Decision cache STALE for {cache_key}, regenerating")
        else:
            logger.info(f"Decision cache MISS for {cache_key}")

        outcome = await self.generator.generate_outcome(persona, proposal)
        if outcome.is_degraded:
            logger.warning(f"Storing fallback decision for {cache_key} flagged for retry: {outcome.degraded_reason}")
        stored = await self.store.upsert_decision(
            outcome.decision,
            persona_values=persona.values,
            requires_recalculation=outcome.is_degraded,
        )
        return outcome.model_copy(update={"decision": stored})

    async def mark_for_recalculation(self, user_id: str, proposal_id: str, persona_id: str) -> bool:
        """Flag one decision so the next get_or_create regenerates it."""
        flagged = await self.store.mark_decision_for_recalculation(user_id, proposal_id, persona_id)
        logger.info(f"Marked decision {user_id}:{proposal_id}:{persona_id} for recalculation: {flagged}")
        return flagged

    async def mark_user_decisions_for_recalculation(self, user_id: str) -> int:
        count = await self.store.mark_user_decisions_for_recalculation(user_id)
        logger.info(f"Marked {count} decisions of user {user_id} for recalculation")
        return count

    async def _load_inputs(self, user_id: str, proposal_id: str, persona_id: str) -> Tuple[Persona, Proposal]:
        persona = await self.store.get_persona(persona_id)
        if persona is None or persona.user_id != user_id:
            raise PersonaNotFoundError(f"Persona {persona_id} not found for user {user_id}")

        proposal = await self.store.get_proposal(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(f"Proposal {proposal_id} not found")

        return persona, proposal
