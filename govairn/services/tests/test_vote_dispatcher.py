from unittest.mock import AsyncMock

import pytest

from govairn.data_models.governance_schemas import AIDecision, DecisionChoice
from govairn.exceptions import ValidationError, VoteDispatchError
from govairn.services.vote_dispatcher import VoteDispatcher, resolve_vote_choice


@pytest.fixture
def decision():
    return AIDecision(
        id="decision-1",
        user_id="user-1",
        proposal_id="proposal-1",
        persona_id="persona-1",
        decision=DecisionChoice.FOR,
        confidence=82,
        persona_match=74,
        reasoning="Looks good.",
    )


class TestResolveVoteChoice:

    def test_without_override_uses_ai_decision(self, decision):
        intent = resolve_vote_choice(decision)

        assert intent.choice == DecisionChoice.FOR
        assert intent.is_ai_decided is True
        assert intent.is_manual_override is False

    def test_override_wins(self, decision):
        intent = resolve_vote_choice(decision, "Against")

        assert intent.choice == DecisionChoice.AGAINST
        assert intent.is_ai_decided is False
        assert intent.is_manual_override is True

    def test_blank_override_is_ignored(self, decision):
        assert resolve_vote_choice(decision, "  ").is_ai_decided is True

    def test_invalid_override(self, decision):
        with pytest.raises(ValidationError):
            resolve_vote_choice(decision, "yes")


class TestVoteDispatcher:

    @pytest.mark.asyncio
    async def test_records_ai_vote(self, store):
        dispatcher = VoteDispatcher(store)

        vote = await dispatcher.cast_vote("user-1", "proposal-1", "for", is_ai_decided=True, is_manual_override=False)

        assert vote.id is not None
        assert vote.vote_choice == DecisionChoice.FOR
        assert store.votes[("user-1", "proposal-1")].is_ai_decided is True

    @pytest.mark.asyncio
    async def test_revote_replaces_previous_vote(self, store):
        dispatcher = VoteDispatcher(store)

        first = await dispatcher.cast_vote("user-1", "proposal-1", "for", True, False)
        second = await dispatcher.cast_vote("user-1", "proposal-1", "against", False, True)

        assert len(store.votes) == 1
        assert second.id == first.id
        assert second.vote_choice == DecisionChoice.AGAINST
        assert second.is_manual_override is True

    @pytest.mark.asyncio
    async def test_missing_ids(self, store):
        dispatcher = VoteDispatcher(store)

        with pytest.raises(ValidationError) as exc_info:
            await dispatcher.cast_vote("", "proposal-1", "for", True, False)

        assert exc_info.value.message == "Cannot cast vote: Missing required information."
        assert store.votes == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ai_decided,override", [(True, True), (False, False)])
    async def test_exactly_one_flag_required(self, store, ai_decided, override):
        with pytest.raises(ValidationError):
            await VoteDispatcher(store).cast_vote("user-1", "proposal-1", "for", ai_decided, override)

    @pytest.mark.asyncio
    async def test_store_failure_becomes_dispatch_error(self):
        failing_store = AsyncMock()
        failing_store.record_vote.side_effect = RuntimeError("connection reset")

        with pytest.raises(VoteDispatchError) as exc_info:
            await VoteDispatcher(failing_store).cast_vote("user-1", "proposal-1", "abstain", True, False)

        assert exc_info.value.message == "Failed to record vote. Please try again."
        assert exc_info.value.code == 502

    @pytest.mark.asyncio
    async def test_cast_intent(self, store, decision):
        vote = await VoteDispatcher(store).cast_intent("user-1", "proposal-1", resolve_vote_choice(decision, "abstain"))

        assert vote.vote_choice == DecisionChoice.ABSTAIN
        assert vote.is_manual_override is True
