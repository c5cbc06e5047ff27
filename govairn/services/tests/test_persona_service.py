import pytest

from govairn.data_models.governance_schemas import PersonaValues
from govairn.exceptions import PersonaNotFoundError, ValidationError
from govairn.services.persona_service import DEFAULT_PERSONA_NAME, PersonaService


@pytest.fixture
def service(store):
    return PersonaService(store)


class TestPersonaService:

    @pytest.mark.asyncio
    async def test_require_active_persona_without_persona(self, service):
        with pytest.raises(PersonaNotFoundError) as exc_info:
            await service.require_active_persona("user-without-persona")

        assert exc_info.value.message == "No active persona found. Please create a persona first."
        assert exc_info.value.code == 404

    @pytest.mark.asyncio
    async def test_create_default_persona(self, service):
        persona = await service.create_default_persona("user-9")

        assert persona.name == DEFAULT_PERSONA_NAME
        assert persona.values == PersonaValues()
        assert persona.values.frequency == 10
        assert (await service.require_active_persona("user-9")).id == persona.id

    @pytest.mark.asyncio
    async def test_new_active_persona_deactivates_previous(self, service):
        first = await service.create_persona("user-9", PersonaValues(risk=20), name="Cautious")
        second = await service.create_persona("user-9", PersonaValues(risk=90), name="Bold")

        personas = await service.list_personas("user-9")
        active = [p for p in personas if p.is_active]

        assert len(personas) == 2
        assert [p.id for p in active] == [second.id]
        assert (await service.get_persona("user-9", first.id)).is_active is False

    @pytest.mark.asyncio
    async def test_inactive_persona_keeps_existing_active(self, service):
        active = await service.create_persona("user-9", PersonaValues(), name="Main")
        await service.create_persona("user-9", PersonaValues(), name="Draft", is_active=False)

        assert (await service.require_active_persona("user-9")).id == active.id

    @pytest.mark.asyncio
    async def test_empty_name_is_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.create_persona("user-9", PersonaValues(), name="   ")

    @pytest.mark.asyncio
    async def test_get_persona_of_another_user(self, service, persona):
        with pytest.raises(PersonaNotFoundError):
            await service.get_persona("user-2", persona.id)

    @pytest.mark.asyncio
    async def test_update_values(self, service, persona):
        updated = await service.update_persona(
            persona.user_id, persona.id, values=PersonaValues(risk=75, esg=60, treasury=70, horizon=80)
        )

        assert updated.values.risk == 75
        assert updated.name == persona.name

    @pytest.mark.asyncio
    async def test_reactivating_persona_switches_active(self, service, persona):
        other = await service.create_persona(persona.user_id, PersonaValues(), name="Second")
        assert (await service.require_active_persona(persona.user_id)).id == other.id

        await service.update_persona(persona.user_id, persona.id, is_active=True)

        assert (await service.require_active_persona(persona.user_id)).id == persona.id
        assert (await service.get_persona(persona.user_id, other.id)).is_active is False
