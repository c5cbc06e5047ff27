# Worker for ai_processing_queue: pre-computes decisions for every active persona
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from pydantic import BaseModel

from govairn.config.decision_agent_settings import DecisionAgentConfig
from govairn.data_models.governance_schemas import ProcessingQueueEntry, QueueStatus, utc_now
from govairn.exceptions import DecisionGenerationError, ProposalNotFoundError
from govairn.services.decision_cache import DecisionCacheService
from govairn.services.governance_store import GovernanceStore

logger = logging.getLogger(__name__)


class QueueRunSummary(BaseModel):
    processed: int = 0
    completed: int = 0
    failed: int = 0
    dead_lettered: int = 0


class QueueProcessor:
    """Claims queue entries one at a time with bounded retry.

    A failed entry becomes eligible again after an exponential backoff and is
    moved to dead_letter once it has used max_attempts. Entries stuck in
    processing (a worker died mid-run) are reclaimed after the stale lease.
    """

    def __init__(
        self,
        store: GovernanceStore,
        decision_cache: DecisionCacheService,
        max_attempts: Optional[int] = None,
        base_backoff_seconds: Optional[float] = None,
        max_backoff_seconds: Optional[float] = None,
        stale_processing_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        config = DecisionAgentConfig.get_queue_config()
        self.store = store
        self.decision_cache = decision_cache
        self.max_attempts = max_attempts or int(config['max_attempts'])
        self.base_backoff_seconds = base_backoff_seconds or float(config['base_backoff_seconds'])
        self.max_backoff_seconds = max_backoff_seconds or float(config['max_backoff_seconds'])
        self.stale_processing_seconds = stale_processing_seconds or float(config['stale_processing_seconds'])
        self.default_batch_size = int(config['batch_size'])
        self.clock = clock

    def compute_backoff(self, attempts: int) -> float:
        """Seconds to wait before retry number attempts + 1."""
        return min(self.base_backoff_seconds * (2 ** max(attempts - 1, 0)), self.max_backoff_seconds)

    async def process_next(self) -> Optional[ProcessingQueueEntry]:
        """Process one eligible entry. Returns the updated entry, or None if the queue is idle."""
        now = self.clock()
        entry = await self.store.claim_next_queue_entry(
            now, stale_before=now - timedelta(seconds=self.stale_processing_seconds)
        )
        if entry is None:
            return None

        logger.info(f"Processing queue entry {entry.id} for proposal {entry.proposal_id} (attempt {entry.attempts})")
        try:
            generated = await self._precompute_decisions(entry)
        except Exception as e:
            return await self._record_failure(entry, e)

        completed = await self.store.complete_queue_entry(entry.id, self.clock())
        logger.info(f"✅ Queue entry {entry.id} completed, {generated} decisions ready")
        return completed

    async def process_batch(self, limit: Optional[int] = None) -> QueueRunSummary:
        summary = QueueRunSummary()
        for _ in range(limit or self.default_batch_size):
            entry = await self.process_next()
            if entry is None:
                break
            summary.processed += 1
            if entry.status == QueueStatus.COMPLETED:
                summary.completed += 1
            elif entry.status == QueueStatus.DEAD_LETTER:
                summary.dead_lettered += 1
            else:
                summary.failed += 1
        return summary

    async def _precompute_decisions(self, entry: ProcessingQueueEntry) -> int:
        proposal = await self.store.get_proposal(entry.proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(f"Proposal {entry.proposal_id} not found")

        personas = await self.store.list_active_personas()
        degraded = []
        for persona in personas:
            outcome = await self.decision_cache.get_or_create_outcome(persona.user_id, proposal.id, persona.id)
            if outcome.is_degraded:
                degraded.append(f"{persona.id}: {outcome.degraded_reason}")
        if degraded:
            # Fallback rows are stored flagged; failing the entry schedules the retry
            raise DecisionGenerationError(
                f"{len(degraded)} of {len(personas)} decisions fell back: {'; '.join(degraded)}"
            )
        return len(personas)

    async def _record_failure(self, entry: ProcessingQueueEntry, error: Exception) -> ProcessingQueueEntry:
        now = self.clock()
        error_message = str(error) or type(error).__name__
        if entry.attempts >= self.max_attempts:
            logger.error(
                f"❌ Queue entry {entry.id} dead-lettered after {entry.attempts} attempts: {error_message}"
            )
            return await self.store.fail_queue_entry(
                entry.id, error_message, now, next_attempt_at=None, dead_letter=True
            )

        delay = self.compute_backoff(entry.attempts)
        logger.warning(
            f"Queue entry {entry.id} failed (attempt {entry.attempts}/{self.max_attempts}), "
            f"retrying in {delay:.0f}s: {error_message}"
        )
        return await self.store.fail_queue_entry(
            entry.id, error_message, now, next_attempt_at=now + timedelta(seconds=delay)
        )
