"""Tests for the AI processing queue worker and its retry policy."""
from datetime import timedelta

import pytest

from conftest import FakeLLM
from govairn.agent.decision.decision_generator import DecisionGenerator
from govairn.data_models.governance_schemas import DecisionChoice, QueueStatus, utc_now
from govairn.services.decision_cache import DecisionCacheService
from govairn.services.processing_queue import QueueProcessor


class FakeClock:
    """Manually advanced clock, starting a day ahead so fresh entries are in the past."""

    def __init__(self):
        self.now = utc_now() + timedelta(days=1)

    def __call__(self):
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


def make_processor(store, cache, clock, **kwargs):
    options = dict(max_attempts=3, base_backoff_seconds=30, max_backoff_seconds=3600,
                   stale_processing_seconds=600)
    options.update(kwargs)
    return QueueProcessor(store, cache, clock=clock, **options)


class TestQueueProcessor:

    @pytest.mark.asyncio
    async def test_completes_entry_and_precomputes_decisions(self, store, generator, fake_llm, persona, proposal, clock):
        processor = make_processor(store, DecisionCacheService(store, generator), clock)
        queued = await store.enqueue_proposal(proposal.id)

        entry = await processor.process_next()

        assert entry.id == queued.id
        assert entry.status == QueueStatus.COMPLETED
        assert entry.attempts == 1
        assert entry.processed_at == clock.now
        assert (persona.user_id, proposal.id, persona.id) in store.decisions
        assert fake_llm.call_count == 1

    @pytest.mark.asyncio
    async def test_idle_queue(self, store, generator, clock):
        processor = make_processor(store, DecisionCacheService(store, generator), clock)

        assert await processor.process_next() is None

    @pytest.mark.asyncio
    async def test_failure_schedules_backoff(self, store, generator, clock):
        processor = make_processor(store, DecisionCacheService(store, generator), clock)
        await store.enqueue_proposal("missing-proposal")

        entry = await processor.process_next()

        assert entry.status == QueueStatus.FAILED
        assert entry.attempts == 1
        assert "missing-proposal" in entry.error_message
        assert entry.next_attempt_at == clock.now + timedelta(seconds=30)

        # Not eligible until the backoff elapses
        assert await processor.process_next() is None
        clock.advance(31)
        retried = await processor.process_next()
        assert retried.attempts == 2
        assert retried.next_attempt_at == clock.now + timedelta(seconds=60)

    @pytest.mark.asyncio
    async def test_dead_letter_after_max_attempts(self, store, generator, clock):
        processor = make_processor(store, DecisionCacheService(store, generator), clock)
        await store.enqueue_proposal("missing-proposal")

        statuses = []
        for _ in range(3):
            entry = await processor.process_next()
            statuses.append(entry.status)
            clock.advance(4000)

        assert statuses == [QueueStatus.FAILED, QueueStatus.FAILED, QueueStatus.DEAD_LETTER]
        assert await processor.process_next() is None
        dead = await store.list_queue_entries(QueueStatus.DEAD_LETTER)
        assert len(dead) == 1
        assert dead[0].next_attempt_at is None

    @pytest.mark.asyncio
    async def test_stale_processing_entry_is_reclaimed(self, store, generator, proposal, clock):
        processor = make_processor(store, DecisionCacheService(store, generator), clock)
        entry = await store.enqueue_proposal(proposal.id)
        stuck = store.queue[entry.id]
        stuck.status = QueueStatus.PROCESSING
        stuck.attempts = 1
        stuck.updated_at = clock.now - timedelta(seconds=300)

        assert await processor.process_next() is None

        clock.advance(301)
        reclaimed = await processor.process_next()
        assert reclaimed.id == entry.id
        assert reclaimed.status == QueueStatus.COMPLETED
        assert reclaimed.attempts == 2

    @pytest.mark.asyncio
    async def test_provider_outage_backs_off_until_generation_recovers(self, store, persona, proposal, clock):
        llm = FakeLLM(error=ConnectionError("provider down"))
        processor = make_processor(store, DecisionCacheService(store, DecisionGenerator(llm)), clock)
        await store.enqueue_proposal(proposal.id)
        key = (persona.user_id, proposal.id, persona.id)

        entry = await processor.process_next()

        assert entry.status == QueueStatus.FAILED
        assert persona.id in entry.error_message
        assert entry.next_attempt_at == clock.now + timedelta(seconds=30)
        assert store.decisions[key].decision == DecisionChoice.ABSTAIN
        assert store.decisions[key].requires_recalculation is True

        llm.error = None
        clock.advance(31)
        retried = await processor.process_next()

        assert retried.status == QueueStatus.COMPLETED
        assert retried.attempts == 2
        assert llm.call_count == 2
        assert store.decisions[key].decision == DecisionChoice.FOR
        assert store.decisions[key].requires_recalculation is False

    @pytest.mark.asyncio
    async def test_process_batch_summary(self, store, generator, proposal, clock):
        processor = make_processor(store, DecisionCacheService(store, generator), clock)
        await store.enqueue_proposal(proposal.id)
        await store.enqueue_proposal("missing-proposal")

        summary = await processor.process_batch(limit=10)

        assert summary.processed == 2
        assert summary.completed == 1
        assert summary.failed == 1
        assert summary.dead_lettered == 0


class TestBackoff:

    def test_exponential_and_capped(self, store, generator, clock):
        processor = make_processor(store, DecisionCacheService(store, generator), clock,
                                   base_backoff_seconds=30, max_backoff_seconds=3600)

        assert [processor.compute_backoff(n) for n in (1, 2, 3, 4)] == [30, 60, 120, 240]
        assert processor.compute_backoff(20) == 3600
