# Persona-driven decision generation: prompt -> LLM -> tolerant parse -> AIDecision
import asyncio
import logging
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel

from govairn.agent.decision.json_extractor import extract_json_from_text
from govairn.config.decision_agent_settings import DecisionAgentConfig
from govairn.data_models.governance_schemas import (
    AIDecision,
    DecisionChoice,
    DecisionFactor,
    Persona,
    Proposal,
)
from govairn.prompts.decision_prompts import (
    get_decision_system_prompt,
    get_decision_user_prompt,
    truncate_description,
)

logger = logging.getLogger(__name__)


class DecisionOutcome(BaseModel):
    """Result of one generation attempt. Degraded outcomes carry the fallback decision."""
    status: Literal["ok", "degraded"]
    decision: AIDecision
    degraded_reason: Optional[str] = None

    @property
    def is_degraded(self) -> bool:
        return self.status == "degraded"


class DecisionParseError(ValueError):
    """LLM output could not be turned into a decision."""


def _clamp(value: Any, low: int, high: int, default: int) -> int:
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(low, min(high, number))


class DecisionGenerator:
    """Builds the persona prompt, calls the LLM and maps its JSON to an AIDecision.

    generate() never raises: provider errors, timeouts and unusable output all
    produce a labelled abstain decision instead.
    """

    def __init__(
        self,
        llm_manager,
        timeout: Optional[float] = None,
        description_char_limit: Optional[int] = None,
        truncation_marker: Optional[str] = None,
    ):
        self.llm = llm_manager
        self.timeout = timeout if timeout is not None else DecisionAgentConfig.get_llm_timeout()
        self.description_char_limit = (
            description_char_limit
            if description_char_limit is not None
            else DecisionAgentConfig.get_description_char_limit()
        )
        self.truncation_marker = (
            truncation_marker
            if truncation_marker is not None
            else DecisionAgentConfig.get_truncation_marker()
        )
        self.fallback_config = DecisionAgentConfig.get_fallback_config()

    def build_prompts(self, persona: Persona, proposal: Proposal) -> Dict[str, str]:
        description = truncate_description(
            proposal.description, self.description_char_limit, self.truncation_marker
        )
        return {
            "system_prompt": get_decision_system_prompt(persona.values),
            "prompt": get_decision_user_prompt(proposal.title, description),
        }

    async def generate(self, persona: Persona, proposal: Proposal) -> AIDecision:
        outcome = await self.generate_outcome(persona, proposal)
        return outcome.decision

    async def generate_outcome(self, persona: Persona, proposal: Proposal) -> DecisionOutcome:
        logger.info(f"🎯 Generating decision for proposal {proposal.id} with persona {persona.id}")
        prompts = self.build_prompts(persona, proposal)

        try:
            response = await asyncio.wait_for(
                self.llm.agenerate_from_prompt(prompts["prompt"], system_prompt=prompts["system_prompt"]),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"LLM call timed out after {self.timeout}s for proposal {proposal.id}")
            return self._fallback(persona, proposal, f"the AI service did not respond within {self.timeout:g} seconds")
        except Exception as e:
            logger.error(f"❌ LLM call failed for proposal {proposal.id}: {str(e)}")
            return self._fallback(persona, proposal, f"the AI service returned an error ({type(e).__name__})")

        try:
            decision = self.parse_response(response, persona, proposal)
        except DecisionParseError as e:
            logger.warning(f"Unusable LLM output for proposal {proposal.id}: {e}")
            return self._fallback(persona, proposal, str(e))

        logger.info(f"✅ Generated decision {decision.decision.value} ({decision.confidence}%) for proposal {proposal.id}")
        return DecisionOutcome(status="ok", decision=decision)

    def parse_response(self, response: str, persona: Persona, proposal: Proposal) -> AIDecision:
        data = extract_json_from_text(response)
        if data is None:
            raise DecisionParseError("the AI response was not valid JSON")

        raw_decision = str(data.get("decision", "")).strip().lower()
        try:
            choice = DecisionChoice(raw_decision)
        except ValueError:
            raise DecisionParseError(f"the AI response contained an invalid decision value '{raw_decision}'")

        confidence = _clamp(data.get("confidence"), 0, 100, 50)
        persona_match = _clamp(data.get("persona_match", data.get("personaMatch")), 0, 100, 50)
        reasoning = data.get("reasoning") or data.get("summary") or ""
        chain_of_thought = data.get("chain_of_thought") or data.get("chainOfThought")

        return AIDecision(
            user_id=persona.user_id,
            proposal_id=proposal.id,
            persona_id=persona.id,
            decision=choice,
            confidence=confidence,
            persona_match=persona_match,
            reasoning=str(reasoning),
            chain_of_thought=str(chain_of_thought) if chain_of_thought else None,
            factors=self._parse_factors(data.get("factors")),
        )

    def _parse_factors(self, raw_factors: Any) -> List[DecisionFactor]:
        if not isinstance(raw_factors, list):
            return []

        factors = []
        for raw in raw_factors:
            if not isinstance(raw, dict):
                continue
            name = raw.get("factor_name") or raw.get("name")
            if not name:
                continue
            factors.append(DecisionFactor(
                factor_name=str(name),
                factor_value=_clamp(raw.get("factor_value", raw.get("value")), -100, 100, 0),
                factor_weight=_clamp(raw.get("factor_weight", raw.get("weight")), 0, 100, 0),
                explanation=str(raw.get("explanation") or ""),
            ))
        return factors

    def _fallback(self, persona: Persona, proposal: Proposal, reason: str) -> DecisionOutcome:
        config = self.fallback_config
        decision = AIDecision(
            user_id=persona.user_id,
            proposal_id=proposal.id,
            persona_id=persona.id,
            decision=DecisionChoice(config['decision']),
            confidence=config['confidence'],
            persona_match=config['persona_match'],
            reasoning=f"Fallback decision used because {reason}. Abstaining until a recommendation can be generated.",
            chain_of_thought=None,
            factors=[DecisionFactor(
                factor_name=config['factor_name'],
                factor_value=0,
                factor_weight=100,
                explanation=f"No AI analysis was available: {reason}. Recalculate to try again.",
            )],
        )
        return DecisionOutcome(status="degraded", decision=decision, degraded_reason=reason)
