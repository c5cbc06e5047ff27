# Governance domain schemas: personas, proposals, AI decisions, votes, queue
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, List, Optional, Tuple

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProposalStatus(str, Enum):
    """Internal proposal status"""
    ACTIVE = "active"
    EXECUTED = "executed"
    MISSED = "missed"
    PENDING = "pending"


class DecisionChoice(str, Enum):
    """Recommendation produced by the decision generator"""
    FOR = "for"
    AGAINST = "against"
    ABSTAIN = "abstain"


class QueueStatus(str, Enum):
    """Lifecycle of an ai_processing_queue entry"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    DEAD_LETTER = "dead_letter"


class PersonaValues(BaseModel):
    """The five preference sliders of a persona, each on a 0-100 scale"""

    # Editing any of these invalidates every decision made with the persona
    RECALCULATION_FIELDS: ClassVar[Tuple[str, ...]] = ("risk", "esg", "treasury", "horizon", "frequency")

    risk: int = Field(50, ge=0, le=100)  # higher = more risk accepting
    esg: int = Field(50, ge=0, le=100)  # higher = more ESG focus
    treasury: int = Field(50, ge=0, le=100)  # higher = more conservative with treasury
    horizon: int = Field(50, ge=0, le=100)  # higher = longer-term outlook
    frequency: int = Field(10, ge=0, le=100)  # higher = more frequent participation

    def differs_from(self, other: "PersonaValues") -> bool:
        return any(getattr(self, f) != getattr(other, f) for f in self.RECALCULATION_FIELDS)


class Persona(BaseModel):
    id: str
    user_id: str
    name: str = "Default Persona"
    values: PersonaValues = Field(default_factory=PersonaValues)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ProposalUpsert(BaseModel):
    """Proposal fields written by the sync job, keyed by external_id"""
    external_id: str
    dao_id: Optional[str] = None
    title: str
    summary: str = ""
    description: str = ""
    status: ProposalStatus = ProposalStatus.PENDING
    choices: List[str] = Field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    url: Optional[str] = None


class Proposal(ProposalUpsert):
    id: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class DecisionFactor(BaseModel):
    factor_name: str
    factor_value: int = Field(0, ge=-100, le=100)  # negative = against
    factor_weight: int = Field(0, ge=0, le=100)
    explanation: str = ""


class AIDecision(BaseModel):
    """One recommendation per (user_id, proposal_id, persona_id)"""
    id: Optional[str] = None
    user_id: str
    proposal_id: str
    persona_id: str
    decision: DecisionChoice
    confidence: int = Field(ge=0, le=100)
    persona_match: int = Field(ge=0, le=100)
    reasoning: str = ""
    chain_of_thought: Optional[str] = None
    factors: List[DecisionFactor] = Field(default_factory=list)
    requires_recalculation: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def cache_key(self) -> Tuple[str, str, str]:
        return (self.user_id, self.proposal_id, self.persona_id)


class Vote(BaseModel):
    id: Optional[str] = None
    user_id: str
    proposal_id: str
    vote_choice: DecisionChoice
    is_ai_decided: bool = False
    is_manual_override: bool = False
    voted_at: datetime = Field(default_factory=utc_now)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProcessingQueueEntry(BaseModel):
    id: str
    proposal_id: str
    status: QueueStatus = QueueStatus.PENDING
    error_message: Optional[str] = None
    attempts: int = 0
    next_attempt_at: Optional[datetime] = None  # earliest retry time for failed entries
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    processed_at: Optional[datetime] = None


class SyncResult(BaseModel):
    """Counts reported by a proposal sync run"""
    space_id: str
    added: int = 0
    updated: int = 0
    failed: int = 0
    queued: int = 0


class ProposalCounts(BaseModel):
    """Proposal totals for a space, computed from explicit state queries"""
    space_id: str
    active: int = 0
    closed: int = 0

    @property
    def total(self) -> int:
        return self.active + self.closed
