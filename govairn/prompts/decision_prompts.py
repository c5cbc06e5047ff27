# prompts/decision_prompts.py
from govairn.data_models.governance_schemas import PersonaValues


def truncate_description(description: str, char_limit: int, marker: str) -> str:
    """Cut the proposal body to char_limit characters, appending marker when cut."""
    description = description or ""
    if len(description) <= char_limit:
        return description
    return description[:char_limit] + marker


def get_decision_system_prompt(persona: PersonaValues) -> str:
    return f"""You are GovAIrn, an AI governance advisor making a voting recommendation for a DAO proposal. Recommend FOR, AGAINST or ABSTAIN based on the user's governance persona.

USER'S GOVERNANCE PERSONA PREFERENCES (Scale 0-100):
- Risk Tolerance: {persona.risk}/100 (Higher = more risk accepting)
- ESG Focus: {persona.esg}/100 (Higher = more focus on environmental, social, governance)
- Treasury Conservation: {persona.treasury}/100 (Higher = more conservative with treasury)
- Time Horizon: {persona.horizon}/100 (Higher = longer-term outlook)
- Participation Frequency: {persona.frequency}/100 (Higher = more frequent participation)

Consider:
1. Risks and benefits
2. Financial implications for the DAO treasury
3. Alignment with ESG principles
4. Long-term vs. short-term tradeoffs
5. Impact on the DAO's governance

Be objective and data-driven. Always consider multiple perspectives."""


def get_decision_user_prompt(title: str, description: str) -> str:
    return f"""Make a voting recommendation for this proposal:

TITLE: {title}

DESCRIPTION:
{description or 'No description provided.'}

Respond with ONLY a JSON object in exactly this format:
{{
  "decision": "for" | "against" | "abstain",
  "confidence": number (0-100),
  "persona_match": number (0-100, how well this decision fits the persona),
  "reasoning": "Brief explanation for your decision",
  "chain_of_thought": "Your detailed reasoning process",
  "factors": [
    {{
      "factor_name": "Factor name (e.g., Risk, Treasury Impact, ESG Alignment)",
      "factor_value": number (-100 to 100, negative = against, positive = for),
      "factor_weight": number (0-100, importance to the decision),
      "explanation": "Brief explanation of this factor"
    }}
  ]
}}"""
