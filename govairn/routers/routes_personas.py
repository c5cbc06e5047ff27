from fastapi import Depends

from govairn.agent.decision.orchestrator import DecisionEngine
from govairn.data_models.api_schemas import PersonaCreateRequest, PersonaUpdateRequest
from govairn.exceptions import GovAIrnError

from .deps import get_engine, get_user_id, to_http_exception


async def list_personas(
    user_id: str = Depends(get_user_id),
    engine: DecisionEngine = Depends(get_engine),
) -> dict:
    personas = await _call(engine.personas.list_personas(user_id))
    return {"personas": [p.model_dump(mode="json") for p in personas]}


async def get_active_persona(
    user_id: str = Depends(get_user_id),
    engine: DecisionEngine = Depends(get_engine),
) -> dict:
    persona = await _call(engine.personas.require_active_persona(user_id))
    return persona.model_dump(mode="json")


async def create_persona(
    body: PersonaCreateRequest,
    user_id: str = Depends(get_user_id),
    engine: DecisionEngine = Depends(get_engine),
) -> dict:
    persona = await _call(engine.personas.create_persona(
        user_id, body.values, name=body.name, is_active=body.is_active
    ))
    return persona.model_dump(mode="json")


async def update_persona(
    persona_id: str,
    body: PersonaUpdateRequest,
    user_id: str = Depends(get_user_id),
    engine: DecisionEngine = Depends(get_engine),
) -> dict:
    """Update a persona. Changed values flag its decisions for recalculation."""
    persona = await _call(engine.personas.update_persona(
        user_id, persona_id, name=body.name, values=body.values, is_active=body.is_active
    ))
    return persona.model_dump(mode="json")


async def _call(awaitable):
    try:
        return await awaitable
    except GovAIrnError as e:
        raise to_http_exception(e)
