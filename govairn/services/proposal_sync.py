# Syncs Snapshot proposals into the proposals table and queues the ones that become active
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from govairn.data_models.governance_schemas import ProposalStatus, ProposalUpsert, SyncResult
from govairn.services.governance_store import GovernanceStore
from govairn.services.snapshot_client import SnapshotClient

logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 150
SNAPSHOT_PROPOSAL_URL = "https://snapshot.org/#/{space}/proposal/{proposal_id}"

_STATUS_BY_SNAPSHOT_STATE = {
    "active": ProposalStatus.ACTIVE,
    "pending": ProposalStatus.PENDING,
    "closed": ProposalStatus.EXECUTED,
}


def map_snapshot_state(state: Optional[str]) -> ProposalStatus:
    """active -> active, pending -> pending, closed -> executed, anything else -> missed."""
    return _STATUS_BY_SNAPSHOT_STATE.get((state or "").lower(), ProposalStatus.MISSED)


def build_summary(body: Optional[str]) -> str:
    """First paragraph of the body, cut to 147 chars plus '...' when over 150."""
    first_paragraph = (body or "").strip().split("\n\n")[0].strip()
    if len(first_paragraph) > SUMMARY_MAX_CHARS:
        return first_paragraph[:SUMMARY_MAX_CHARS - 3] + "..."
    return first_paragraph


def build_proposal_url(space_id: str, proposal_id: str) -> str:
    return SNAPSHOT_PROPOSAL_URL.format(space=space_id, proposal_id=proposal_id)


def _from_timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def snapshot_to_proposal(raw: Dict[str, Any], space_id: str, dao_id: Optional[str] = None) -> ProposalUpsert:
    """Map a Snapshot GraphQL proposal to the proposals table shape."""
    if not raw.get("id"):
        raise ValueError("Snapshot proposal is missing its id")

    space_id = (raw.get("space") or {}).get("id") or space_id
    return ProposalUpsert(
        external_id=raw["id"],
        dao_id=dao_id or space_id,
        title=(raw.get("title") or "Untitled proposal").strip(),
        summary=build_summary(raw.get("body")),
        description=raw.get("body") or "",
        status=map_snapshot_state(raw.get("state")),
        choices=[str(c) for c in raw.get("choices") or []],
        start_time=_from_timestamp(raw.get("start")),
        end_time=_from_timestamp(raw.get("end")),
        url=build_proposal_url(space_id, raw["id"]),
    )


class ProposalSyncService:
    """Pulls proposals of a Snapshot space and upserts them by external id."""

    def __init__(self, store: GovernanceStore, snapshot_client: SnapshotClient):
        self.store = store
        self.snapshot = snapshot_client

    async def sync_space(
        self,
        space_id: str,
        dao_id: Optional[str] = None,
        state: str = "active",
        first: Optional[int] = None,
    ) -> SyncResult:
        """Upsert a space's proposals. Per-proposal failures are counted, not raised.

        Raises:
            SnapshotAPIError: If the proposal list cannot be fetched
        """
        raw_proposals = await self.snapshot.get_proposals(space_id, state=state, first=first)
        result = SyncResult(space_id=space_id)

        for raw in raw_proposals:
            try:
                data = snapshot_to_proposal(raw, space_id, dao_id)
                proposal, previous_status = await self.store.upsert_proposal(data)
            except Exception as e:
                result.failed += 1
                logger.error(f"❌ Failed to sync proposal {raw.get('id')} of space {space_id}: {e}")
                continue

            if previous_status is None:
                result.added += 1
            else:
                result.updated += 1

            # New active proposals and ones that just opened for voting (pending -> active)
            if proposal.status == ProposalStatus.ACTIVE and previous_status != ProposalStatus.ACTIVE:
                try:
                    await self.store.enqueue_proposal(proposal.id)
                    result.queued += 1
                except Exception as e:
                    logger.error(f"❌ Failed to queue proposal {proposal.id} for AI processing: {e}")

        logger.info(
            f"✅ Synced space {space_id}: added={result.added} updated={result.updated} "
            f"failed={result.failed} queued={result.queued}"
        )
        return result
