# Persona management: one active persona per user, recalculation fan-out on edits
import logging
from typing import List, Optional

from govairn.data_models.governance_schemas import Persona, PersonaValues
from govairn.exceptions import PersonaNotFoundError, ValidationError
from govairn.services.governance_store import GovernanceStore

logger = logging.getLogger(__name__)

DEFAULT_PERSONA_NAME = "Default Persona"


class PersonaService:
    def __init__(self, store: GovernanceStore):
        self.store = store

    async def get_active_persona(self, user_id: str) -> Optional[Persona]:
        if not user_id:
            raise ValidationError("user_id is required")
        return await self.store.get_active_persona(user_id)

    async def require_active_persona(self, user_id: str) -> Persona:
        persona = await self.get_active_persona(user_id)
        if persona is None:
            raise PersonaNotFoundError()
        return persona

    async def list_personas(self, user_id: str) -> List[Persona]:
        return await self.store.list_personas(user_id)

    async def get_persona(self, user_id: str, persona_id: str) -> Persona:
        persona = await self.store.get_persona(persona_id)
        if persona is None or persona.user_id != user_id:
            raise PersonaNotFoundError(f"Persona {persona_id} not found")
        return persona

    async def create_persona(
        self,
        user_id: str,
        values: PersonaValues,
        name: str = DEFAULT_PERSONA_NAME,
        is_active: bool = True,
    ) -> Persona:
        if not user_id:
            raise ValidationError("user_id is required")
        if not name or not name.strip():
            raise ValidationError("Persona name cannot be empty")

        persona = await self.store.create_persona(user_id, name.strip(), values, is_active=is_active)
        logger.info(f"✅ Created persona {persona.id} for user {user_id} (active={persona.is_active})")
        return persona

    async def create_default_persona(self, user_id: str) -> Persona:
        return await self.create_persona(user_id, PersonaValues(), name=DEFAULT_PERSONA_NAME, is_active=True)

    async def update_persona(
        self,
        user_id: str,
        persona_id: str,
        name: Optional[str] = None,
        values: Optional[PersonaValues] = None,
        is_active: Optional[bool] = None,
    ) -> Persona:
        """Update a persona owned by user_id.

        Changing any of the five values flags every decision made with this
        persona for recalculation, atomically with the update.
        """
        await self.get_persona(user_id, persona_id)
        if name is not None and not name.strip():
            raise ValidationError("Persona name cannot be empty")

        persona, flagged = await self.store.update_persona(
            persona_id,
            name=name.strip() if name is not None else None,
            values=values,
            is_active=is_active,
        )
        if flagged:
            logger.info(f"Persona {persona_id} values changed, {flagged} decisions flagged for recalculation")
        return persona
