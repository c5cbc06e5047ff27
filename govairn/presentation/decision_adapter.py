"""
Adapters from AIDecision to the prop shapes the dashboard components render.

Every mapper is pure and total over (decision or None) x (loading or not):
loading wins and yields neutral defaults, a missing decision yields a
placeholder, and nothing here raises. Shapes serialize with camelCase keys
(personaMatch, voteChoice, chainOfThought) via model_dump(by_alias=True).
"""
from typing import Any, Awaitable, Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from govairn.data_models.governance_schemas import AIDecision, DecisionFactor

NO_DECISION_REASONING = "No decision available. Please try again later."
NO_REASONING_AVAILABLE = "No decision reasoning available."

CastVoteCallback = Callable[[str], Awaitable[Any]]


class _Props(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FactorProps(_Props):
    name: str
    value: int
    weight: int
    explanation: str = ""


class ProposalDetailProps(_Props):
    loading: bool = False
    decision: Optional[str] = None
    confidence: int = 0
    factors: List[FactorProps] = Field(default_factory=list)
    reasoning: str = ""
    persona_match: int = 0


class ProposalCardProps(_Props):
    loading: bool = False
    decision: Optional[str] = None
    confidence: int = 0
    persona_match: int = 0


class FactorsVisualizationProps(_Props):
    loading: bool = False
    factors: List[FactorProps] = Field(default_factory=list)


class ReasoningDisplayProps(_Props):
    loading: bool = False
    reasoning: str = ""
    chain_of_thought: str = ""


async def _noop_click(override: Optional[str] = None) -> bool:
    return False


class VoteButtonProps(_Props):
    disabled: bool = True
    loading: bool = False
    vote_choice: str = ""
    confidence: int = 0
    on_click: Callable[..., Awaitable[Any]] = Field(default=_noop_click, exclude=True)


def _factor_props(factors: List[DecisionFactor]) -> List[FactorProps]:
    return [
        FactorProps(
            name=f.factor_name,
            value=f.factor_value,
            weight=f.factor_weight,
            explanation=f.explanation or "",
        )
        for f in factors or []
    ]


def to_proposal_detail_props(decision: Optional[AIDecision], loading: bool = False) -> ProposalDetailProps:
    if loading:
        return ProposalDetailProps(loading=True)
    if decision is None:
        return ProposalDetailProps(reasoning=NO_DECISION_REASONING)
    return ProposalDetailProps(
        decision=decision.decision.value,
        confidence=decision.confidence,
        factors=_factor_props(decision.factors),
        reasoning=decision.reasoning,
        persona_match=decision.persona_match,
    )


def to_proposal_card_props(decision: Optional[AIDecision], loading: bool = False) -> ProposalCardProps:
    if loading:
        return ProposalCardProps(loading=True)
    if decision is None:
        return ProposalCardProps()
    return ProposalCardProps(
        decision=decision.decision.value,
        confidence=decision.confidence,
        persona_match=decision.persona_match,
    )


def to_factors_visualization_props(
    decision: Optional[AIDecision], loading: bool = False
) -> FactorsVisualizationProps:
    if loading:
        return FactorsVisualizationProps(loading=True)
    if decision is None:
        return FactorsVisualizationProps()
    return FactorsVisualizationProps(factors=_factor_props(decision.factors))


def to_reasoning_display_props(decision: Optional[AIDecision], loading: bool = False) -> ReasoningDisplayProps:
    if loading:
        return ReasoningDisplayProps(loading=True)
    if decision is None:
        return ReasoningDisplayProps(reasoning=NO_REASONING_AVAILABLE)
    return ReasoningDisplayProps(
        reasoning=decision.reasoning,
        chain_of_thought=decision.chain_of_thought or "",
    )


def to_vote_button_props(
    decision: Optional[AIDecision],
    on_cast_vote: CastVoteCallback,
    loading: bool = False,
) -> VoteButtonProps:
    """Vote button bound to on_cast_vote.

    on_click(override=None) casts the override when given, otherwise the AI
    decision. Without a decision, or while loading, the button is disabled and
    on_click does nothing.
    """
    if loading or decision is None:
        return VoteButtonProps(disabled=True, loading=loading)

    ai_choice = decision.decision.value

    async def on_click(override: Optional[str] = None):
        return await on_cast_vote(override or ai_choice)

    return VoteButtonProps(
        disabled=False,
        vote_choice=ai_choice,
        confidence=decision.confidence,
        on_click=on_click,
    )


VIEW_MAPPERS = {
    "detail": to_proposal_detail_props,
    "card": to_proposal_card_props,
    "factors": to_factors_visualization_props,
    "reasoning": to_reasoning_display_props,
}
