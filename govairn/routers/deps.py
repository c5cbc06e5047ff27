# Shared FastAPI router dependencies and helpers
import os
import threading
from typing import Optional

from fastapi import Header, HTTPException

from govairn.agent.decision.decision_generator import DecisionGenerator
from govairn.agent.decision.llm_provider import LLMManager
from govairn.agent.decision.orchestrator import DecisionEngine
from govairn.config.common_settings import DEFAULT_PROVIDER, has_database_config
from govairn.exceptions import GovAIrnError
from govairn.services.governance_store import GovernanceStore
from govairn.utils.logger import logger

# Global engine instance for lazy initialization
_engine: Optional[DecisionEngine] = None
_engine_lock = threading.Lock()


def _required_api_key() -> Optional[str]:
    return os.environ.get("GOVAIRN_API_TOKEN")


def _validate_api_key(auth_header: Optional[str]):
    required = _required_api_key()
    if not required:
        logger.error("Router: missing GOVAIRN_API_TOKEN in environment")
        raise HTTPException(status_code=500, detail={
            "error": {
                "message": "Server missing API key configuration.",
                "type": "server_error",
            }
        })
    if not auth_header or not auth_header.startswith("Bearer "):
        logger.warning("Router: missing or malformed Authorization header")
        raise HTTPException(status_code=401, detail={
            "error": {
                "message": "You didn't provide an API key.",
                "type": "invalid_request_error",
            }
        })
    token_value = auth_header.split("Bearer ")[-1].strip()
    if token_value != required:
        logger.warning("Router: incorrect API key provided")
        raise HTTPException(status_code=401, detail={
            "error": {
                "message": "Incorrect API key provided.",
                "type": "invalid_request_error",
            }
        })


def require_api_key(authorization: Optional[str] = Header(None)) -> None:
    _validate_api_key(authorization)


def get_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Authenticated user id, set by the upstream wallet auth layer."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail={
            "error": {
                "message": "Missing authenticated user. Please connect your wallet.",
                "type": "invalid_request_error",
            }
        })
    return x_user_id.strip()


def to_http_exception(error: GovAIrnError) -> HTTPException:
    return HTTPException(status_code=error.code, detail=error.to_dict())


def create_store() -> GovernanceStore:
    """Postgres when database settings exist, otherwise the in-memory store."""
    if has_database_config():
        from govairn.services.postgres_store import PostgresGovernanceStore
        return PostgresGovernanceStore()

    from govairn.services.memory_store import InMemoryGovernanceStore
    logger.warning("⚠️  No database configured, using in-memory store (data is lost on restart)")
    return InMemoryGovernanceStore()


def create_engine() -> DecisionEngine:
    provider_name = os.getenv("DEFAULT_LLM_PROVIDER") or DEFAULT_PROVIDER
    llm_manager = LLMManager(provider_name=provider_name)
    logger.info(f"LLM provider: {llm_manager.get_provider_info()}")
    return DecisionEngine(store=create_store(), generator=DecisionGenerator(llm_manager))


def get_engine() -> DecisionEngine:
    """Get or create the decision engine with lazy initialization."""
    global _engine

    if _engine is None:
        with _engine_lock:
            # Double-check to avoid building two engines
            if _engine is None:
                try:
                    logger.info("🔄 Initializing DecisionEngine (lazy initialization)")
                    _engine = create_engine()
                    logger.info("✅ DecisionEngine initialized successfully")
                except Exception as e:
                    logger.error(f"❌ Failed to initialize DecisionEngine: {str(e)}")
                    raise HTTPException(status_code=500, detail=f"Engine initialization failed: {str(e)}")
    return _engine


def set_engine(engine: Optional[DecisionEngine]) -> None:
    """Install (or clear, with None) the process-wide engine."""
    global _engine
    with _engine_lock:
        _engine = engine


def get_initialized_engine() -> Optional[DecisionEngine]:
    """The engine if one has been built, without building it."""
    return _engine
