# Records cast votes, either following the AI decision or a manual override
import logging
from typing import NamedTuple, Union

from govairn.data_models.governance_schemas import AIDecision, DecisionChoice, Vote
from govairn.exceptions import ValidationError, VoteDispatchError
from govairn.services.governance_store import GovernanceStore

logger = logging.getLogger(__name__)


class VoteIntent(NamedTuple):
    choice: DecisionChoice
    is_ai_decided: bool
    is_manual_override: bool


def _coerce_choice(choice: Union[str, DecisionChoice, None]) -> DecisionChoice:
    if isinstance(choice, DecisionChoice):
        return choice
    if not choice or not str(choice).strip():
        raise ValidationError("Vote choice is required")
    try:
        return DecisionChoice(str(choice).strip().lower())
    except ValueError:
        raise ValidationError(f"Invalid vote choice '{choice}'. Expected one of: for, against, abstain")


def resolve_vote_choice(
    decision: AIDecision, override: Union[str, DecisionChoice, None] = None
) -> VoteIntent:
    """Without an override the vote is the AI decision verbatim."""
    if override is None or (isinstance(override, str) and not override.strip()):
        return VoteIntent(decision.decision, is_ai_decided=True, is_manual_override=False)
    return VoteIntent(_coerce_choice(override), is_ai_decided=False, is_manual_override=True)


class VoteDispatcher:
    def __init__(self, store: GovernanceStore):
        self.store = store

    async def cast_vote(
        self,
        user_id: str,
        proposal_id: str,
        choice: Union[str, DecisionChoice],
        is_ai_decided: bool,
        is_manual_override: bool,
    ) -> Vote:
        """Record a vote durably. Votes are final; there is no undo.

        Raises:
            ValidationError: Missing ids, invalid choice, or not exactly one
                of is_ai_decided / is_manual_override set
            VoteDispatchError: The store rejected or failed the write
        """
        if not user_id or not proposal_id:
            raise ValidationError("Cannot cast vote: Missing required information.")
        vote_choice = _coerce_choice(choice)
        if bool(is_ai_decided) == bool(is_manual_override):
            raise ValidationError("A vote must be either AI-decided or a manual override")

        vote = Vote(
            user_id=user_id,
            proposal_id=proposal_id,
            vote_choice=vote_choice,
            is_ai_decided=bool(is_ai_decided),
            is_manual_override=bool(is_manual_override),
        )
        try:
            stored = await self.store.record_vote(vote)
        except Exception as e:
            logger.error(f"❌ Failed to record vote for user {user_id} on proposal {proposal_id}: {e}")
            raise VoteDispatchError() from e

        logger.info(
            f"✅ Vote '{stored.vote_choice.value}' recorded for user {user_id} on proposal {proposal_id} "
            f"(ai_decided={stored.is_ai_decided}, override={stored.is_manual_override})"
        )
        return stored

    async def cast_intent(self, user_id: str, proposal_id: str, intent: VoteIntent) -> Vote:
        return await self.cast_vote(
            user_id, proposal_id, intent.choice, intent.is_ai_decided, intent.is_manual_override
        )
