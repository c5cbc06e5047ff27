# In-process GovernanceStore for tests and local runs without a database
import asyncio
import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from govairn.data_models.governance_schemas import (
    AIDecision,
    Persona,
    PersonaValues,
    ProcessingQueueEntry,
    Proposal,
    ProposalStatus,
    ProposalUpsert,
    QueueStatus,
    Vote,
    utc_now,
)
from govairn.exceptions import PersonaNotFoundError
from govairn.services.governance_store import GovernanceStore

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


class InMemoryGovernanceStore(GovernanceStore):
    """Dict-backed store. A single asyncio.Lock makes each method atomic."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self.personas: Dict[str, Persona] = {}
        self.proposals: Dict[str, Proposal] = {}
        self.decisions: Dict[Tuple[str, str, str], AIDecision] = {}
        self.votes: Dict[Tuple[str, str], Vote] = {}
        self.queue: Dict[str, ProcessingQueueEntry] = {}

    # Personas
    async def get_persona(self, persona_id: str) -> Optional[Persona]:
        async with self._lock:
            persona = self.personas.get(persona_id)
            return persona.model_copy(deep=True) if persona else None

    async def get_active_persona(self, user_id: str) -> Optional[Persona]:
        async with self._lock:
            for persona in self.personas.values():
                if persona.user_id == user_id and persona.is_active:
                    return persona.model_copy(deep=True)
            return None

    async def list_personas(self, user_id: str) -> List[Persona]:
        async with self._lock:
            personas = [p for p in self.personas.values() if p.user_id == user_id]
            return [p.model_copy(deep=True) for p in sorted(personas, key=lambda p: p.created_at)]

    async def list_active_personas(self) -> List[Persona]:
        async with self._lock:
            return [p.model_copy(deep=True) for p in self.personas.values() if p.is_active]

    async def create_persona(
        self, user_id: str, name: str, values: PersonaValues, is_active: bool = True
    ) -> Persona:
        async with self._lock:
            if is_active:
                self._deactivate_others(user_id, keep_id=None)
            persona = Persona(
                id=_new_id(), user_id=user_id, name=name, values=values.model_copy(), is_active=is_active
            )
            self.personas[persona.id] = persona
            return persona.model_copy(deep=True)

    async def update_persona(
        self,
        persona_id: str,
        name: Optional[str] = None,
        values: Optional[PersonaValues] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[Persona, int]:
        async with self._lock:
            persona = self.personas.get(persona_id)
            if persona is None:
                raise PersonaNotFoundError(f"Persona {persona_id} not found")

            flagged = 0
            if values is not None and values.differs_from(persona.values):
                for decision in self.decisions.values():
                    if decision.persona_id == persona_id:
                        decision.requires_recalculation = True
                        flagged += 1
            if values is not None:
                persona.values = values.model_copy()
            if name is not None:
                persona.name = name
            if is_active is not None:
                if is_active:
                    self._deactivate_others(persona.user_id, keep_id=persona_id)
                persona.is_active = is_active
            persona.updated_at = utc_now()
            return persona.model_copy(deep=True), flagged

    def _deactivate_others(self, user_id: str, keep_id: Optional[str]) -> None:
        for other in self.personas.values():
            if other.user_id == user_id and other.id != keep_id and other.is_active:
                other.is_active = False
                other.updated_at = utc_now()

    # Proposals
    async def get_proposal(self, proposal_id: str) -> Optional[Proposal]:
        async with self._lock:
            proposal = self.proposals.get(proposal_id)
            return proposal.model_copy(deep=True) if proposal else None

    async def list_proposals(
        self, dao_id: Optional[str] = None, status: Optional[ProposalStatus] = None, limit: int = 50
    ) -> List[Proposal]:
        async with self._lock:
            proposals = [
                p for p in self.proposals.values()
                if (dao_id is None or p.dao_id == dao_id) and (status is None or p.status == status)
            ]
            proposals.sort(key=lambda p: p.created_at, reverse=True)
            return [p.model_copy(deep=True) for p in proposals[:limit]]

    async def upsert_proposal(self, data: ProposalUpsert) -> Tuple[Proposal, Optional[ProposalStatus]]:
        async with self._lock:
            for proposal in self.proposals.values():
                if proposal.external_id == data.external_id:
                    updated = proposal.model_copy(update={**data.model_dump(), "updated_at": utc_now()})
                    self.proposals[proposal.id] = updated
                    return updated.model_copy(deep=True), proposal.status

            proposal = Proposal(id=_new_id(), **data.model_dump())
            self.proposals[proposal.id] = proposal
            return proposal.model_copy(deep=True), None

    # AI decisions
    async def get_decision(self, user_id: str, proposal_id: str, persona_id: str) -> Optional[AIDecision]:
        async with self._lock:
            decision = self.decisions.get((user_id, proposal_id, persona_id))
            return decision.model_copy(deep=True) if decision else None

    async def upsert_decision(
        self,
        decision: AIDecision,
        persona_values: Optional[PersonaValues] = None,
        requires_recalculation: bool = False,
    ) -> AIDecision:
        async with self._lock:
            key = decision.cache_key()
            now = utc_now()
            existing = self.decisions.get(key)
            persona = self.personas.get(decision.persona_id)
            if persona_values is not None and persona is not None and persona.values.differs_from(persona_values):
                logger.info(f"Persona {decision.persona_id} changed during generation, keeping decision flagged")
                requires_recalculation = True
            stored = decision.model_copy(deep=True, update={
                "id": existing.id if existing else _new_id(),
                "created_at": existing.created_at if existing else now,
                "updated_at": now,
                "requires_recalculation": requires_recalculation,
            })
            self.decisions[key] = stored
            return stored.model_copy(deep=True)

    async def claim_recalculation(self, decision_id: str) -> bool:
        async with self._lock:
            for decision in self.decisions.values():
                if decision.id == decision_id and decision.requires_recalculation:
                    decision.requires_recalculation = False
                    return True
            return False

    async def mark_decision_for_recalculation(self, user_id: str, proposal_id: str, persona_id: str) -> bool:
        async with self._lock:
            decision = self.decisions.get((user_id, proposal_id, persona_id))
            if decision is None:
                return False
            decision.requires_recalculation = True
            return True

    async def mark_user_decisions_for_recalculation(self, user_id: str) -> int:
        async with self._lock:
            flagged = 0
            for decision in self.decisions.values():
                if decision.user_id == user_id:
                    decision.requires_recalculation = True
                    flagged += 1
            return flagged

    # Votes
    async def record_vote(self, vote: Vote) -> Vote:
        async with self._lock:
            key = (vote.user_id, vote.proposal_id)
            existing = self.votes.get(key)
            now = utc_now()
            stored = vote.model_copy(update={
                "id": existing.id if existing else _new_id(),
                "created_at": existing.created_at if existing else now,
                "updated_at": now,
            })
            self.votes[key] = stored
            return stored.model_copy()

    async def get_vote(self, user_id: str, proposal_id: str) -> Optional[Vote]:
        async with self._lock:
            vote = self.votes.get((user_id, proposal_id))
            return vote.model_copy() if vote else None

    async def list_votes(self, user_id: str) -> List[Vote]:
        async with self._lock:
            votes = [v for v in self.votes.values() if v.user_id == user_id]
            return [v.model_copy() for v in sorted(votes, key=lambda v: v.voted_at, reverse=True)]

    # Processing queue
    async def enqueue_proposal(self, proposal_id: str) -> ProcessingQueueEntry:
        async with self._lock:
            entry = ProcessingQueueEntry(id=_new_id(), proposal_id=proposal_id)
            self.queue[entry.id] = entry
            return entry.model_copy()

    async def claim_next_queue_entry(self, now: datetime, stale_before: datetime) -> Optional[ProcessingQueueEntry]:
        async with self._lock:
            eligible = [e for e in self.queue.values() if self._is_claimable(e, now, stale_before)]
            if not eligible:
                return None
            entry = min(eligible, key=lambda e: e.created_at)
            entry.status = QueueStatus.PROCESSING
            entry.attempts += 1
            entry.updated_at = now
            return entry.model_copy()

    @staticmethod
    def _is_claimable(entry: ProcessingQueueEntry, now: datetime, stale_before: datetime) -> bool:
        if entry.status == QueueStatus.PENDING:
            return True
        if entry.status == QueueStatus.FAILED:
            return entry.next_attempt_at is None or entry.next_attempt_at <= now
        if entry.status == QueueStatus.PROCESSING:
            return entry.updated_at <= stale_before
        return False

    async def complete_queue_entry(self, entry_id: str, now: datetime) -> ProcessingQueueEntry:
        async with self._lock:
            entry = self.queue[entry_id]
            entry.status = QueueStatus.COMPLETED
            entry.error_message = None
            entry.next_attempt_at = None
            entry.processed_at = now
            entry.updated_at = now
            return entry.model_copy()

    async def fail_queue_entry(
        self,
        entry_id: str,
        error_message: str,
        now: datetime,
        next_attempt_at: Optional[datetime],
        dead_letter: bool = False,
    ) -> ProcessingQueueEntry:
        async with self._lock:
            entry = self.queue[entry_id]
            entry.status = QueueStatus.DEAD_LETTER if dead_letter else QueueStatus.FAILED
            entry.error_message = error_message
            entry.next_attempt_at = None if dead_letter else next_attempt_at
            entry.updated_at = now
            return entry.model_copy()

    async def list_queue_entries(self, status: Optional[QueueStatus] = None) -> List[ProcessingQueueEntry]:
        async with self._lock:
            entries = [e for e in self.queue.values() if status is None or e.status == status]
            return [e.model_copy() for e in sorted(entries, key=lambda e: e.created_at)]
