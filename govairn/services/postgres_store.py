"""
PostgreSQL implementation of the governance store.

Each public coroutine runs its SQL in a worker thread (asyncio.to_thread) on a
pooled psycopg2 connection, one transaction per call.
"""
import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import psycopg2
from psycopg2.extras import Json, RealDictCursor

from govairn.data_models.governance_schemas import (
    AIDecision,
    DecisionFactor,
    Persona,
    PersonaValues,
    ProcessingQueueEntry,
    Proposal,
    ProposalStatus,
    ProposalUpsert,
    QueueStatus,
    Vote,
)
from govairn.exceptions import GovAIrnError, PersonaNotFoundError, StoreError, ValidationError
from govairn.services.connection_pool import DatabaseConnectionPool, get_connection_pool
from govairn.services.governance_store import GovernanceStore

logger = logging.getLogger(__name__)

PERSONA_COLUMNS = """
    id::text, user_id, name, risk, esg, treasury, horizon, frequency,
    is_active, created_at, updated_at
"""

PROPOSAL_COLUMNS = """
    id::text, external_id, dao_id, title, summary, description, status, choices,
    start_time, end_time, url, created_at, updated_at
"""

DECISION_COLUMNS = """
    id::text, user_id, proposal_id::text, persona_id::text, decision, confidence,
    persona_match, reasoning, chain_of_thought, requires_recalculation,
    created_at, updated_at
"""

VOTE_COLUMNS = """
    id::text, user_id, proposal_id::text, vote_choice, is_ai_decided,
    is_manual_override, voted_at, created_at, updated_at
"""

QUEUE_COLUMNS = """
    id::text, proposal_id::text, status, error_message, attempts,
    next_attempt_at, created_at, updated_at, processed_at
"""


def _row_to_persona(row: Dict[str, Any]) -> Persona:
    values = PersonaValues(**{field: row[field] for field in PersonaValues.RECALCULATION_FIELDS})
    return Persona(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        values=values,
        is_active=row["is_active"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_proposal(row: Dict[str, Any]) -> Proposal:
    return Proposal(**{**row, "choices": row.get("choices") or []})


def _is_uuid(*values: Any) -> bool:
    """True when every value parses as a UUID (the key type of every id column)."""
    try:
        for value in values:
            uuid.UUID(str(value))
    except ValueError:
        return False
    return True


class PostgresGovernanceStore(GovernanceStore):
    """GovernanceStore over the tables in schema.sql."""

    def __init__(self, connection_pool: Optional[DatabaseConnectionPool] = None):
        self.pool = connection_pool or get_connection_pool()

    async def _run(self, fn: Callable, *args, **kwargs):
        """Run a sync SQL function on a pooled connection inside one transaction."""
        def _execute():
            with self.pool.transaction() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                    return fn(cursor, *args, **kwargs)

        try:
            return await asyncio.to_thread(_execute)
        except GovAIrnError:
            raise
        except psycopg2.DataError as e:
            # Malformed input such as a non-UUID id
            logger.warning(f"Database operation {fn.__name__} rejected its input: {e}")
            raise ValidationError("Invalid identifier or value") from e
        except (psycopg2.Error, RuntimeError) as e:
            logger.error(f"❌ Database operation {fn.__name__} failed: {e}")
            raise StoreError() from e

    async def ping(self) -> bool:
        def _select_one(cursor):
            cursor.execute("SELECT 1 AS ok")
            return cursor.fetchone()["ok"] == 1
        return await self._run(_select_one)

    async def close(self) -> None:
        await asyncio.to_thread(self.pool.close)

    # Personas
    async def get_persona(self, persona_id: str) -> Optional[Persona]:
        if not _is_uuid(persona_id):
            return None

        def _get(cursor):
            cursor.execute(f"SELECT {PERSONA_COLUMNS} FROM personas WHERE id = %s", [persona_id])
            row = cursor.fetchone()
            return _row_to_persona(row) if row else None
        return await self._run(_get)

    async def get_active_persona(self, user_id: str) -> Optional[Persona]:
        def _get_active(cursor):
            cursor.execute(
                f"SELECT {PERSONA_COLUMNS} FROM personas WHERE user_id = %s AND is_active LIMIT 1",
                [user_id],
            )
            row = cursor.fetchone()
            return _row_to_persona(row) if row else None
        return await self._run(_get_active)

    async def list_personas(self, user_id: str) -> List[Persona]:
        def _list(cursor):
            cursor.execute(
                f"SELECT {PERSONA_COLUMNS} FROM personas WHERE user_id = %s ORDER BY created_at",
                [user_id],
            )
            return [_row_to_persona(row) for row in cursor.fetchall()]
        return await self._run(_list)

    async def list_active_personas(self) -> List[Persona]:
        def _list_active(cursor):
            cursor.execute(f"SELECT {PERSONA_COLUMNS} FROM personas WHERE is_active ORDER BY created_at")
            return [_row_to_persona(row) for row in cursor.fetchall()]
        return await self._run(_list_active)

    async def create_persona(
        self, user_id: str, name: str, values: PersonaValues, is_active: bool = True
    ) -> Persona:
        def _create(cursor):
            if is_active:
                cursor.execute(
                    "UPDATE personas SET is_active = FALSE, updated_at = NOW() WHERE user_id = %s AND is_active",
                    [user_id],
                )
            cursor.execute(
                f"""
                INSERT INTO personas (user_id, name, risk, esg, treasury, horizon, frequency, is_active)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING {PERSONA_COLUMNS}
                """,
                [user_id, name, values.risk, values.esg, values.treasury,
                 values.horizon, values.frequency, is_active],
            )
            return _row_to_persona(cursor.fetchone())
        return await self._run(_create)

    async def update_persona(
        self,
        persona_id: str,
        name: Optional[str] = None,
        values: Optional[PersonaValues] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[Persona, int]:
        if not _is_uuid(persona_id):
            raise PersonaNotFoundError(f"Persona {persona_id} not found")

        def _update(cursor):
            cursor.execute(f"SELECT {PERSONA_COLUMNS} FROM personas WHERE id = %s FOR UPDATE", [persona_id])
            row = cursor.fetchone()
            if row is None:
                raise PersonaNotFoundError(f"Persona {persona_id} not found")
            current = _row_to_persona(row)

            new_values = values or current.values
            if is_active:
                cursor.execute(
                    "UPDATE personas SET is_active = FALSE, updated_at = NOW() "
                    "WHERE user_id = %s AND id <> %s AND is_active",
                    [current.user_id, persona_id],
                )
            cursor.execute(
                f"""
                UPDATE personas
                SET name = %s, risk = %s, esg = %s, treasury = %s, horizon = %s,
                    frequency = %s, is_active = %s, updated_at = NOW()
                WHERE id = %s
                RETURNING {PERSONA_COLUMNS}
                """,
                [name if name is not None else current.name,
                 new_values.risk, new_values.esg, new_values.treasury,
                 new_values.horizon, new_values.frequency,
                 is_active if is_active is not None else current.is_active,
                 persona_id],
            )
            updated = _row_to_persona(cursor.fetchone())

            flagged = 0
            if new_values.differs_from(current.values):
                cursor.execute(
                    "UPDATE ai_decisions SET requires_recalculation = TRUE, updated_at = NOW() "
                    "WHERE persona_id = %s",
                    [persona_id],
                )
                flagged = cursor.rowcount
            return updated, flagged
        return await self._run(_update)

    # Proposals
    async def get_proposal(self, proposal_id: str) -> Optional[Proposal]:
        if not _is_uuid(proposal_id):
            return None

        def _get(cursor):
            cursor.execute(f"SELECT {PROPOSAL_COLUMNS} FROM proposals WHERE id = %s", [proposal_id])
            row = cursor.fetchone()
            return _row_to_proposal(row) if row else None
        return await self._run(_get)

    async def list_proposals(
        self, dao_id: Optional[str] = None, status: Optional[ProposalStatus] = None, limit: int = 50
    ) -> List[Proposal]:
        def _list(cursor):
            clauses, params = [], []
            if dao_id is not None:
                clauses.append("dao_id = %s")
                params.append(dao_id)
            if status is not None:
                clauses.append("status = %s")
                params.append(ProposalStatus(status).value)
            where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
            cursor.execute(
                f"SELECT {PROPOSAL_COLUMNS} FROM proposals {where} ORDER BY created_at DESC LIMIT %s",
                params + [limit],
            )
            return [_row_to_proposal(row) for row in cursor.fetchall()]
        return await self._run(_list)

    async def upsert_proposal(self, data: ProposalUpsert) -> Tuple[Proposal, Optional[ProposalStatus]]:
        def _upsert(cursor):
            # previous reads the pre-statement snapshot; xmax is 0 only for a freshly inserted tuple
            cursor.execute(
                f"""
                WITH previous AS (SELECT status FROM proposals WHERE external_id = %s)
                INSERT INTO proposals
                    (external_id, dao_id, title, summary, description, status, choices,
                     start_time, end_time, url)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (external_id) DO UPDATE SET
                    dao_id = EXCLUDED.dao_id,
                    title = EXCLUDED.title,
                    summary = EXCLUDED.summary,
                    description = EXCLUDED.description,
                    status = EXCLUDED.status,
                    choices = EXCLUDED.choices,
                    start_time = EXCLUDED.start_time,
                    end_time = EXCLUDED.end_time,
                    url = EXCLUDED.url,
                    updated_at = NOW()
                RETURNING {PROPOSAL_COLUMNS}, (xmax = 0) AS inserted,
                    (SELECT status FROM previous) AS previous_status
                """,
                [data.external_id, data.external_id, data.dao_id, data.title, data.summary, data.description,
                 data.status.value, Json(data.choices), data.start_time, data.end_time, data.url],
            )
            row = dict(cursor.fetchone())
            inserted = row.pop("inserted")
            previous_status = row.pop("previous_status")
            proposal = _row_to_proposal(row)
            if inserted:
                return proposal, None
            # A row inserted by a concurrent sync is invisible to previous
            return proposal, ProposalStatus(previous_status) if previous_status else proposal.status
        return await self._run(_upsert)

    # AI decisions
    @staticmethod
    def _fetch_factors(cursor, decision_id: str) -> List[DecisionFactor]:
        cursor.execute(
            """
            SELECT factor_name, factor_value, factor_weight, explanation
            FROM ai_decision_factors
            WHERE ai_decision_id = %s
            ORDER BY factor_weight DESC, created_at
            """,
            [decision_id],
        )
        return [DecisionFactor(**row) for row in cursor.fetchall()]

    async def get_decision(self, user_id: str, proposal_id: str, persona_id: str) -> Optional[AIDecision]:
        if not _is_uuid(proposal_id, persona_id):
            return None

        def _get(cursor):
            cursor.execute(
                f"""
                SELECT {DECISION_COLUMNS} FROM ai_decisions
                WHERE user_id = %s AND proposal_id = %s AND persona_id = %s
                """,
                [user_id, proposal_id, persona_id],
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return AIDecision(**row, factors=self._fetch_factors(cursor, row["id"]))
        return await self._run(_get)

    async def upsert_decision(
        self,
        decision: AIDecision,
        persona_values: Optional[PersonaValues] = None,
        requires_recalculation: bool = False,
    ) -> AIDecision:
        values = persona_values.model_dump() if persona_values is not None else None

        def _upsert(cursor):
            flagged = requires_recalculation
            if values is not None:
                # Row lock orders this write after any in-flight persona update and its fan-out
                cursor.execute(
                    "SELECT risk, esg, treasury, horizon, frequency FROM personas WHERE id = %s FOR SHARE",
                    [decision.persona_id],
                )
                current = cursor.fetchone()
                if current is not None and any(current[f] != values[f] for f in PersonaValues.RECALCULATION_FIELDS):
                    logger.info(f"Persona {decision.persona_id} changed during generation, keeping decision flagged")
                    flagged = True
            cursor.execute(
                f"""
                INSERT INTO ai_decisions
                    (user_id, proposal_id, persona_id, decision, confidence, persona_match,
                     reasoning, chain_of_thought, requires_recalculation)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (user_id, proposal_id, persona_id) DO UPDATE SET
                    decision = EXCLUDED.decision,
                    confidence = EXCLUDED.confidence,
                    persona_match = EXCLUDED.persona_match,
                    reasoning = EXCLUDED.reasoning,
                    chain_of_thought = EXCLUDED.chain_of_thought,
                    requires_recalculation = EXCLUDED.requires_recalculation,
                    updated_at = NOW()
                RETURNING {DECISION_COLUMNS}
                """,
                [decision.user_id, decision.proposal_id, decision.persona_id,
                 decision.decision.value, decision.confidence, decision.persona_match,
                 decision.reasoning, decision.chain_of_thought, flagged],
            )
            row = cursor.fetchone()
            cursor.execute("DELETE FROM ai_decision_factors WHERE ai_decision_id = %s", [row["id"]])
            for factor in decision.factors:
                cursor.execute(
                    """
                    INSERT INTO ai_decision_factors
                        (ai_decision_id, factor_name, factor_value, factor_weight, explanation)
                    VALUES (%s, %s, %s, %s, %s)
                    """,
                    [row["id"], factor.factor_name, factor.factor_value,
                     factor.factor_weight, factor.explanation],
                )
            return AIDecision(**row, factors=[f.model_copy() for f in decision.factors])
        return await self._run(_upsert)

    async def claim_recalculation(self, decision_id: str) -> bool:
        if not _is_uuid(decision_id):
            return False

        def _claim(cursor):
            cursor.execute(
                """
                UPDATE ai_decisions SET requires_recalculation = FALSE, updated_at = NOW()
                WHERE id = %s AND requires_recalculation
                RETURNING id
                """,
                [decision_id],
            )
            return cursor.fetchone() is not None
        return await self._run(_claim)

    async def mark_decision_for_recalculation(self, user_id: str, proposal_id: str, persona_id: str) -> bool:
        if not _is_uuid(proposal_id, persona_id):
            return False

        def _mark(cursor):
            cursor.execute(
                """
                UPDATE ai_decisions SET requires_recalculation = TRUE, updated_at = NOW()
                WHERE user_id = %s AND proposal_id = %s AND persona_id = %s
                """,
                [user_id, proposal_id, persona_id],
            )
            return cursor.rowcount > 0
        return await self._run(_mark)

    async def mark_user_decisions_for_recalculation(self, user_id: str) -> int:
        def _mark_all(cursor):
            cursor.execute(
                "UPDATE ai_decisions SET requires_recalculation = TRUE, updated_at = NOW() WHERE user_id = %s",
                [user_id],
            )
            return cursor.rowcount
        return await self._run(_mark_all)

    # Votes
    async def record_vote(self, vote: Vote) -> Vote:
        def _record(cursor):
            cursor.execute(
                f"""
                INSERT INTO votes (user_id, proposal_id, vote_choice, is_ai_decided, is_manual_override, voted_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (user_id, proposal_id) DO UPDATE SET
                    vote_choice = EXCLUDED.vote_choice,
                    is_ai_decided = EXCLUDED.is_ai_decided,
                    is_manual_override = EXCLUDED.is_manual_override,
                    voted_at = EXCLUDED.voted_at,
                    updated_at = NOW()
                RETURNING {VOTE_COLUMNS}
                """,
                [vote.user_id, vote.proposal_id, vote.vote_choice.value,
                 vote.is_ai_decided, vote.is_manual_override, vote.voted_at],
            )
            return Vote(**cursor.fetchone())
        return await self._run(_record)

    async def get_vote(self, user_id: str, proposal_id: str) -> Optional[Vote]:
        if not _is_uuid(proposal_id):
            return None

        def _get(cursor):
            cursor.execute(
                f"SELECT {VOTE_COLUMNS} FROM votes WHERE user_id = %s AND proposal_id = %s",
                [user_id, proposal_id],
            )
            row = cursor.fetchone()
            return Vote(**row) if row else None
        return await self._run(_get)

    async def list_votes(self, user_id: str) -> List[Vote]:
        def _list(cursor):
            cursor.execute(
                f"SELECT {VOTE_COLUMNS} FROM votes WHERE user_id = %s ORDER BY voted_at DESC",
                [user_id],
            )
            return [Vote(**row) for row in cursor.fetchall()]
        return await self._run(_list)

    # Processing queue
    async def enqueue_proposal(self, proposal_id: str) -> ProcessingQueueEntry:
        def _enqueue(cursor):
            cursor.execute(
                f"INSERT INTO ai_processing_queue (proposal_id) VALUES (%s) RETURNING {QUEUE_COLUMNS}",
                [proposal_id],
            )
            return ProcessingQueueEntry(**cursor.fetchone())
        return await self._run(_enqueue)

    async def claim_next_queue_entry(self, now: datetime, stale_before: datetime) -> Optional[ProcessingQueueEntry]:
        def _claim(cursor):
            cursor.execute(
                f"""
                UPDATE ai_processing_queue
                SET status = 'processing', attempts = attempts + 1, updated_at = %s
                WHERE id = (
                    SELECT id FROM ai_processing_queue
                    WHERE status = 'pending'
                       OR (status = 'failed' AND (next_attempt_at IS NULL OR next_attempt_at <= %s))
                       OR (status = 'processing' AND updated_at <= %s)
                    ORDER BY created_at
                    LIMIT 1
                    FOR UPDATE SKIP LOCKED
                )
                RETURNING {QUEUE_COLUMNS}
                """,
                [now, now, stale_before],
            )
            row = cursor.fetchone()
            return ProcessingQueueEntry(**row) if row else None
        return await self._run(_claim)

    async def complete_queue_entry(self, entry_id: str, now: datetime) -> ProcessingQueueEntry:
        def _complete(cursor):
            cursor.execute(
                f"""
                UPDATE ai_processing_queue
                SET status = 'completed', error_message = NULL, next_attempt_at = NULL,
                    processed_at = %s, updated_at = %s
                WHERE id = %s
                RETURNING {QUEUE_COLUMNS}
                """,
                [now, now, entry_id],
            )
            return ProcessingQueueEntry(**cursor.fetchone())
        return await self._run(_complete)

    async def fail_queue_entry(
        self,
        entry_id: str,
        error_message: str,
        now: datetime,
        next_attempt_at: Optional[datetime],
        dead_letter: bool = False,
    ) -> ProcessingQueueEntry:
        status = QueueStatus.DEAD_LETTER if dead_letter else QueueStatus.FAILED

        def _fail(cursor):
            cursor.execute(
                f"""
                UPDATE ai_processing_queue
                SET status = %s, error_message = %s, next_attempt_at = %s, updated_at = %s
                WHERE id = %s
                RETURNING {QUEUE_COLUMNS}
                """,
                [status.value, error_message[:2000], None if dead_letter else next_attempt_at, now, entry_id],
            )
            return ProcessingQueueEntry(**cursor.fetchone())
        return await self._run(_fail)

    async def list_queue_entries(self, status: Optional[QueueStatus] = None) -> List[ProcessingQueueEntry]:
        def _list(cursor):
            if status is None:
                cursor.execute(f"SELECT {QUEUE_COLUMNS} FROM ai_processing_queue ORDER BY created_at")
            else:
                cursor.execute(
                    f"SELECT {QUEUE_COLUMNS} FROM ai_processing_queue WHERE status = %s ORDER BY created_at",
                    [QueueStatus(status).value],
                )
            return [ProcessingQueueEntry(**row) for row in cursor.fetchall()]
        return await self._run(_list)
