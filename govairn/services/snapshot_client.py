"""
HTTP client for the Snapshot GraphQL hub.

Read-only access to proposals and spaces used by the proposal sync job.
"""
from typing import Any, Dict, List, Optional

import httpx

from govairn.config.decision_agent_settings import DecisionAgentConfig
from govairn.data_models.governance_schemas import ProposalCounts
from govairn.utils.logger import logger

PROPOSAL_FIELDS = """
    id
    title
    body
    choices
    start
    end
    snapshot
    state
    author
    space {
      id
      name
    }
"""

PROPOSALS_QUERY = f"""
query Proposals($space: String!, $state: String!, $first: Int!, $skip: Int!) {{
  proposals(
    first: $first,
    skip: $skip,
    where: {{ space: $space, state: $state }},
    orderBy: "created",
    orderDirection: desc
  ) {{{PROPOSAL_FIELDS}  }}
}}
"""

PROPOSAL_QUERY = f"""
query Proposal($id: String!) {{
  proposal(id: $id) {{{PROPOSAL_FIELDS}  }}
}}
"""

SPACE_QUERY = """
query Space($id: String!) {
  space(id: $id) {
    id
    name
    about
    network
    symbol
    avatar
    followersCount
    proposalsCount
  }
}
"""

VALID_STATES = ("active", "closed", "pending", "all")


class SnapshotAPIError(Exception):
    """Custom exception for Snapshot API errors."""

    def __init__(self, message: str, status_code: int, response: Optional[Dict[str, Any]] = None):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(f"Snapshot API Error {status_code}: {message}")


class SnapshotClient:
    """
    Async client for the Snapshot GraphQL API.

    Provides methods to:
    - List proposals of a space filtered by state
    - Get a single proposal or space
    - Count active and closed proposals of a space
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            api_url: GraphQL endpoint (default from config / SNAPSHOT_API_URL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used by tests
        """
        config = DecisionAgentConfig.get_snapshot_config()
        self.api_url = api_url or config['api_url']
        self.page_size = int(config['page_size'])
        self.closed_page_size = int(config['closed_page_size'])
        self.client = httpx.AsyncClient(
            timeout=timeout or float(config['timeout']),
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    def _handle_response(self, response: httpx.Response) -> Dict[str, Any]:
        """
        Parse a GraphQL response and raise on HTTP or GraphQL errors.

        Raises:
            SnapshotAPIError: If the API returns an error
        """
        try:
            data = response.json()
        except ValueError:
            data = {"error": "Failed to parse response", "raw": response.text[:500]}

        if response.status_code >= 400:
            error_msg = data.get("error") or data.get("message") or "Unknown error"
            raise SnapshotAPIError(str(error_msg), response.status_code, data)

        if data.get("errors"):
            messages = "; ".join(str(e.get("message", e)) for e in data["errors"])
            raise SnapshotAPIError(messages, response.status_code, data)

        return data.get("data") or {}

    async def _query(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self.client.post(self.api_url, json={"query": query, "variables": variables})
            return self._handle_response(response)
        except SnapshotAPIError:
            raise
        except httpx.HTTPError as e:
            logger.error(f"[SnapshotAPI] request error: {e}")
            raise SnapshotAPIError(str(e), 503)

    async def get_proposals(
        self, space_id: str, state: str = "active", first: Optional[int] = None, skip: int = 0
    ) -> List[Dict[str, Any]]:
        """
        List proposals of a space, newest first.

        Args:
            space_id: Snapshot space id, e.g. "aave.eth"
            state: "active", "closed", "pending" or "all"
            first: Page size (defaults to the configured page size)
            skip: Offset for pagination
        """
        if state not in VALID_STATES:
            raise ValueError(f"Invalid proposal state '{state}'. Expected one of {VALID_STATES}")

        logger.info(f"[SnapshotAPI] Fetching {state} proposals for space={space_id}")
        data = await self._query(PROPOSALS_QUERY, {
            "space": space_id,
            "state": state,
            "first": first or self.page_size,
            "skip": skip,
        })
        return data.get("proposals") or []

    async def get_proposal(self, proposal_id: str) -> Optional[Dict[str, Any]]:
        data = await self._query(PROPOSAL_QUERY, {"id": proposal_id})
        return data.get("proposal")

    async def get_space(self, space_id: str) -> Optional[Dict[str, Any]]:
        data = await self._query(SPACE_QUERY, {"id": space_id})
        return data.get("space")

    async def get_proposal_counts(self, space_id: str) -> ProposalCounts:
        """Count proposals with explicit active and closed queries.

        The space's proposalsCount field is not used; it drifts from the
        proposals the hub actually returns.
        """
        active = await self.get_proposals(space_id, state="active", first=self.closed_page_size)
        closed = await self.get_proposals(space_id, state="closed", first=self.closed_page_size)
        counts = ProposalCounts(space_id=space_id, active=len(active), closed=len(closed))
        logger.info(f"[SnapshotAPI] space={space_id} active={counts.active} closed={counts.closed} total={counts.total}")
        return counts
