"""
Tests for PostgresGovernanceStore with a mocked connection pool.

These check the SQL contract (compare-and-swap, fan-out, upsert flags) and
error mapping without a running database.
"""
from contextlib import contextmanager
from datetime import datetime, timezone
from unittest.mock import MagicMock

import psycopg2
import psycopg2.errors
import pytest

from govairn.data_models.governance_schemas import (
    AIDecision,
    DecisionChoice,
    PersonaValues,
    ProposalStatus,
    ProposalUpsert,
)
from govairn.exceptions import PersonaNotFoundError, StoreError, ValidationError
from govairn.services.postgres_store import PostgresGovernanceStore

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)
PERSONA_ID = "6f0b2c1e-8d4a-4e36-9a51-3c2d7e9f1a10"
PROPOSAL_ID = "1d9e4b7a-2c35-4f8e-b6a0-5e7c9d3f2b44"
DECISION_ID = "a3c58e21-7f14-4b9d-8e62-0d4f1b7c9e35"


def persona_row(**overrides):
    row = {
        "id": PERSONA_ID, "user_id": "user-1", "name": "Balanced",
        "risk": 50, "esg": 60, "treasury": 70, "horizon": 80, "frequency": 10,
        "is_active": True, "created_at": NOW, "updated_at": NOW,
    }
    row.update(overrides)
    return row


def proposal_row(**overrides):
    row = {
        "id": PROPOSAL_ID, "external_id": "0xp1", "dao_id": "aave.eth", "title": "T",
        "summary": "", "description": "", "status": "active", "choices": ["For", "Against"],
        "start_time": None, "end_time": None, "url": None,
        "created_at": NOW, "updated_at": NOW, "inserted": True, "previous_status": None,
    }
    row.update(overrides)
    return row


def decision_row(**overrides):
    row = {
        "id": DECISION_ID, "user_id": "user-1", "proposal_id": PROPOSAL_ID, "persona_id": PERSONA_ID,
        "decision": "for", "confidence": 80, "persona_match": 70, "reasoning": "Sound plan.",
        "chain_of_thought": None, "requires_recalculation": False,
        "created_at": NOW, "updated_at": NOW,
    }
    row.update(overrides)
    return row


@pytest.fixture
def cursor():
    return MagicMock()


@pytest.fixture
def pg_store(cursor):
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor

    @contextmanager
    def transaction():
        yield conn

    pool = MagicMock()
    pool.transaction = transaction
    return PostgresGovernanceStore(connection_pool=pool)


def executed_sql(cursor):
    return [c.args[0] for c in cursor.execute.call_args_list]


def params_of(cursor, fragment):
    return next(c.args[1] for c in cursor.execute.call_args_list if fragment in c.args[0])


class TestPostgresGovernanceStore:

    @pytest.mark.asyncio
    async def test_claim_recalculation_is_compare_and_swap(self, pg_store, cursor):
        cursor.fetchone.return_value = {"id": DECISION_ID}

        assert await pg_store.claim_recalculation(DECISION_ID) is True
        sql = executed_sql(cursor)[0]
        assert "WHERE id = %s AND requires_recalculation" in sql

        cursor.fetchone.return_value = None
        assert await pg_store.claim_recalculation(DECISION_ID) is False

    @pytest.mark.asyncio
    async def test_update_persona_values_flags_decisions(self, pg_store, cursor):
        cursor.fetchone.side_effect = [persona_row(), persona_row(risk=75)]
        cursor.rowcount = 3

        persona, flagged = await pg_store.update_persona(
            PERSONA_ID, values=PersonaValues(risk=75, esg=60, treasury=70, horizon=80, frequency=10)
        )

        assert persona.values.risk == 75
        assert flagged == 3
        statements = executed_sql(cursor)
        assert "FOR UPDATE" in statements[0]
        assert "UPDATE ai_decisions SET requires_recalculation = TRUE" in statements[-1]

    @pytest.mark.asyncio
    async def test_update_persona_name_only_does_not_flag(self, pg_store, cursor):
        cursor.fetchone.side_effect = [persona_row(), persona_row(name="Renamed")]

        persona, flagged = await pg_store.update_persona(PERSONA_ID, name="Renamed")

        assert persona.name == "Renamed"
        assert flagged == 0
        assert not any("ai_decisions" in sql for sql in executed_sql(cursor))

    @pytest.mark.asyncio
    async def test_update_missing_persona(self, pg_store, cursor):
        cursor.fetchone.return_value = None

        with pytest.raises(PersonaNotFoundError):
            await pg_store.update_persona(PERSONA_ID, name="x")

    @pytest.mark.asyncio
    async def test_upsert_proposal_reports_insert(self, pg_store, cursor):
        cursor.fetchone.return_value = proposal_row()

        proposal, previous_status = await pg_store.upsert_proposal(
            ProposalUpsert(external_id="0xp1", dao_id="aave.eth", title="T", status=ProposalStatus.ACTIVE)
        )

        assert previous_status is None
        assert proposal.id == PROPOSAL_ID
        assert "ON CONFLICT (external_id)" in executed_sql(cursor)[0]

    @pytest.mark.asyncio
    async def test_upsert_proposal_reports_previous_status(self, pg_store, cursor):
        cursor.fetchone.return_value = proposal_row(inserted=False, previous_status="pending")

        proposal, previous_status = await pg_store.upsert_proposal(
            ProposalUpsert(external_id="0xp1", dao_id="aave.eth", title="T", status=ProposalStatus.ACTIVE)
        )

        assert proposal.status == ProposalStatus.ACTIVE
        assert previous_status == ProposalStatus.PENDING

    @pytest.mark.asyncio
    async def test_database_error_maps_to_store_error(self, pg_store, cursor):
        cursor.execute.side_effect = psycopg2.OperationalError("server closed the connection")

        with pytest.raises(StoreError) as exc_info:
            await pg_store.get_persona(PERSONA_ID)

        assert exc_info.value.code == 503
        assert exc_info.value.retry_after == 30.0


class TestDecisionWrites:

    @pytest.mark.asyncio
    async def test_decision_from_outdated_persona_values_stays_flagged(self, pg_store, cursor):
        cursor.fetchone.side_effect = [
            {"risk": 95, "esg": 60, "treasury": 70, "horizon": 80, "frequency": 10},
            decision_row(requires_recalculation=True),
        ]
        decision = AIDecision(
            user_id="user-1", proposal_id=PROPOSAL_ID, persona_id=PERSONA_ID,
            decision=DecisionChoice.FOR, confidence=80, persona_match=70, reasoning="Sound plan.",
        )

        stored = await pg_store.upsert_decision(
            decision, persona_values=PersonaValues(risk=50, esg=60, treasury=70, horizon=80, frequency=10)
        )

        statements = executed_sql(cursor)
        assert "FOR SHARE" in statements[0]
        assert "requires_recalculation = EXCLUDED.requires_recalculation" in statements[1]
        assert params_of(cursor, "INSERT INTO ai_decisions")[-1] is True
        assert stored.requires_recalculation is True

    @pytest.mark.asyncio
    async def test_decision_from_current_persona_values_is_cleared(self, pg_store, cursor):
        values = PersonaValues(risk=50, esg=60, treasury=70, horizon=80, frequency=10)
        cursor.fetchone.side_effect = [values.model_dump(), decision_row()]
        decision = AIDecision(
            user_id="user-1", proposal_id=PROPOSAL_ID, persona_id=PERSONA_ID,
            decision=DecisionChoice.FOR, confidence=80, persona_match=70,
        )

        await pg_store.upsert_decision(decision, persona_values=values)

        assert params_of(cursor, "INSERT INTO ai_decisions")[-1] is False

    @pytest.mark.asyncio
    async def test_fallback_decision_is_written_flagged(self, pg_store, cursor):
        cursor.fetchone.return_value = decision_row(decision="abstain", requires_recalculation=True)
        decision = AIDecision(
            user_id="user-1", proposal_id=PROPOSAL_ID, persona_id=PERSONA_ID,
            decision=DecisionChoice.ABSTAIN, confidence=50, persona_match=50,
        )

        await pg_store.upsert_decision(decision, requires_recalculation=True)

        assert not any("FOR SHARE" in sql for sql in executed_sql(cursor))
        assert params_of(cursor, "INSERT INTO ai_decisions")[-1] is True


class TestMalformedIds:

    @pytest.mark.asyncio
    async def test_lookups_by_non_uuid_id_find_nothing_without_a_query(self, pg_store, cursor):
        assert await pg_store.get_proposal("abc") is None
        assert await pg_store.get_persona("abc") is None
        assert await pg_store.get_decision("user-1", "abc", PERSONA_ID) is None
        assert await pg_store.get_vote("user-1", "abc") is None
        assert await pg_store.claim_recalculation("abc") is False
        assert await pg_store.mark_decision_for_recalculation("user-1", PROPOSAL_ID, "abc") is False
        cursor.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_non_uuid_persona_is_not_found(self, pg_store, cursor):
        with pytest.raises(PersonaNotFoundError):
            await pg_store.update_persona("abc", name="x")
        cursor.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_text_representation_is_a_validation_error(self, pg_store, cursor):
        cursor.execute.side_effect = psycopg2.errors.InvalidTextRepresentation(
            'invalid input syntax for type uuid: "abc"'
        )

        with pytest.raises(ValidationError) as exc_info:
            await pg_store.enqueue_proposal("abc")

        assert exc_info.value.code == 400
        assert exc_info.value.retryable is False
