"""
Data-access interface for the governance tables.

Services receive a GovernanceStore explicitly. PostgresGovernanceStore backs
production; InMemoryGovernanceStore backs tests and local runs without a
database. Both implementations honour the same guarantees:

- one ai_decisions row per (user_id, proposal_id, persona_id); a second
  insert for the same triple updates the existing row
- clearing requires_recalculation is a compare-and-swap, so exactly one
  caller wins the right to regenerate a flagged decision
- a persona update that changes any of the five values flags every decision
  made with that persona in the same transaction
- a decision written from persona values that no longer match the stored
  persona is kept flagged, so an edit made during generation is not lost
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple

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
)


class GovernanceStore(ABC):
    """Async data-access contract used by every govAIrn service."""

    # Personas
    @abstractmethod
    async def get_persona(self, persona_id: str) -> Optional[Persona]:
        pass

    @abstractmethod
    async def get_active_persona(self, user_id: str) -> Optional[Persona]:
        pass

    @abstractmethod
    async def list_personas(self, user_id: str) -> List[Persona]:
        pass

    @abstractmethod
    async def list_active_personas(self) -> List[Persona]:
        """Active personas across all users."""
        pass

    @abstractmethod
    async def create_persona(
        self, user_id: str, name: str, values: PersonaValues, is_active: bool = True
    ) -> Persona:
        """Insert a persona. An active persona deactivates the user's others."""
        pass

    @abstractmethod
    async def update_persona(
        self,
        persona_id: str,
        name: Optional[str] = None,
        values: Optional[PersonaValues] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[Persona, int]:
        """Update a persona and return it with the number of decisions flagged for recalculation.

        Raises:
            PersonaNotFoundError: If the persona does not exist
        """
        pass

    # Proposals
    @abstractmethod
    async def get_proposal(self, proposal_id: str) -> Optional[Proposal]:
        pass

    @abstractmethod
    async def list_proposals(
        self, dao_id: Optional[str] = None, status: Optional[ProposalStatus] = None, limit: int = 50
    ) -> List[Proposal]:
        pass

    @abstractmethod
    async def upsert_proposal(self, data: ProposalUpsert) -> Tuple[Proposal, Optional[ProposalStatus]]:
        """Insert or update by external_id.

        Returns (proposal, previous_status); previous_status is None when the
        proposal was inserted.
        """
        pass

    # AI decisions
    @abstractmethod
    async def get_decision(self, user_id: str, proposal_id: str, persona_id: str) -> Optional[AIDecision]:
        pass

    @abstractmethod
    async def upsert_decision(
        self,
        decision: AIDecision,
        persona_values: Optional[PersonaValues] = None,
        requires_recalculation: bool = False,
    ) -> AIDecision:
        """Write a decision and its factors, keeping the row id of an existing triple.

        The stored row is flagged when requires_recalculation is set, or when
        persona_values (the values the decision was generated from) differ from
        the persona as stored now. Otherwise the flag is cleared.
        """
        pass

    @abstractmethod
    async def claim_recalculation(self, decision_id: str) -> bool:
        """Flip requires_recalculation true -> false. Only one concurrent caller gets True."""
        pass

    @abstractmethod
    async def mark_decision_for_recalculation(self, user_id: str, proposal_id: str, persona_id: str) -> bool:
        pass

    @abstractmethod
    async def mark_user_decisions_for_recalculation(self, user_id: str) -> int:
        pass

    # Votes
    @abstractmethod
    async def record_vote(self, vote: Vote) -> Vote:
        """Insert or replace the user's vote on a proposal."""
        pass

    @abstractmethod
    async def get_vote(self, user_id: str, proposal_id: str) -> Optional[Vote]:
        pass

    @abstractmethod
    async def list_votes(self, user_id: str) -> List[Vote]:
        pass

    # Processing queue
    @abstractmethod
    async def enqueue_proposal(self, proposal_id: str) -> ProcessingQueueEntry:
        pass

    @abstractmethod
    async def claim_next_queue_entry(self, now: datetime, stale_before: datetime) -> Optional[ProcessingQueueEntry]:
        """Move the oldest eligible entry to processing and bump its attempts.

        Eligible: pending, failed with next_attempt_at <= now, or processing
        with updated_at <= stale_before.
        """
        pass

    @abstractmethod
    async def complete_queue_entry(self, entry_id: str, now: datetime) -> ProcessingQueueEntry:
        pass

    @abstractmethod
    async def fail_queue_entry(
        self,
        entry_id: str,
        error_message: str,
        now: datetime,
        next_attempt_at: Optional[datetime],
        dead_letter: bool = False,
    ) -> ProcessingQueueEntry:
        pass

    @abstractmethod
    async def list_queue_entries(self, status: Optional[QueueStatus] = None) -> List[ProcessingQueueEntry]:
        pass

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass
