"""Shared fixtures: a scripted LLM, the in-memory store and seeded governance data."""
import asyncio
import json
import os
from datetime import datetime, timezone

import pytest

os.environ.setdefault("GOVAIRN_API_TOKEN", "test-token")

from govairn.agent.decision.decision_generator import DecisionGenerator  # noqa: E402
from govairn.agent.decision.orchestrator import DecisionEngine  # noqa: E402
from govairn.data_models.governance_schemas import (  # noqa: E402
    Persona,
    PersonaValues,
    Proposal,
    ProposalStatus,
)
from govairn.services.memory_store import InMemoryGovernanceStore  # noqa: E402

VALID_DECISION = {
    "decision": "for",
    "confidence": 82,
    "persona_match": 74,
    "reasoning": "Grants program strengthens the ecosystem at modest treasury cost.",
    "chain_of_thought": "Budget is 2% of treasury; milestones reduce risk; long-term upside.",
    "factors": [
        {"factor_name": "Treasury Impact", "factor_value": -20, "factor_weight": 60,
         "explanation": "Moderate spend from reserves."},
        {"factor_name": "Ecosystem Growth", "factor_value": 80, "factor_weight": 80,
         "explanation": "Funds builders aligned with the roadmap."},
    ],
}


class FakeLLM:
    """Stands in for LLMManager. Returns scripted responses and counts calls."""

    def __init__(self, responses=None, delay: float = 0.0, error: Exception = None):
        self.responses = list(responses or [json.dumps(VALID_DECISION)])
        self.delay = delay
        self.error = error
        self.calls = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def agenerate_from_prompt(self, prompt: str, system_prompt: str = None, **kwargs) -> str:
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.responses[min(len(self.calls), len(self.responses)) - 1]


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def store():
    return InMemoryGovernanceStore()


@pytest.fixture
def persona(store):
    persona = Persona(
        id="persona-1",
        user_id="user-1",
        name="Balanced Delegate",
        values=PersonaValues(risk=50, esg=60, treasury=70, horizon=80, frequency=10),
    )
    store.personas[persona.id] = persona
    return persona


@pytest.fixture
def proposal(store):
    proposal = Proposal(
        id="proposal-1",
        external_id="0xabc123",
        dao_id="aave.eth",
        title="Fund Q3 ecosystem grants",
        summary="Allocate 500k USDC to the grants program.",
        description="Allocate 500k USDC to the grants program.\n\nMilestone-based payouts.",
        status=ProposalStatus.ACTIVE,
        choices=["For", "Against", "Abstain"],
        start_time=datetime(2024, 5, 1, tzinfo=timezone.utc),
        end_time=datetime(2024, 5, 8, tzinfo=timezone.utc),
        url="https://snapshot.org/#/aave.eth/proposal/0xabc123",
    )
    store.proposals[proposal.id] = proposal
    return proposal


@pytest.fixture
def generator(fake_llm):
    return DecisionGenerator(fake_llm, timeout=2.0)


@pytest.fixture
def engine(store, generator):
    return DecisionEngine(store=store, generator=generator)
