# Request bodies accepted by the govAIrn HTTP API
from typing import Literal, Optional

from pydantic import BaseModel, Field

from govairn.data_models.governance_schemas import DecisionChoice, PersonaValues


class PersonaCreateRequest(BaseModel):
    name: str = "Default Persona"
    values: PersonaValues = Field(default_factory=PersonaValues)
    is_active: bool = True


class PersonaUpdateRequest(BaseModel):
    name: Optional[str] = None
    values: Optional[PersonaValues] = None
    is_active: Optional[bool] = None


class VoteRequest(BaseModel):
    override_choice: Optional[DecisionChoice] = None  # omit to vote the AI decision


class ProposalSyncRequest(BaseModel):
    space_id: str = Field(min_length=1)
    dao_id: Optional[str] = None
    state: Literal["active", "closed", "pending", "all"] = "active"
    first: Optional[int] = Field(None, ge=1, le=1000)


class QueueProcessRequest(BaseModel):
    limit: int = Field(10, ge=1, le=100)
