import os
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

# --------------------------------------------------
# Vertex AI Configuration (used by the Gemini provider)
# --------------------------------------------------
PROJECT_ID = os.environ.get("PROJECT_ID")
LOCATION = os.environ.get("LOCATION") or "us-central1"

# --------------------------------------------------
# Database Configuration
# --------------------------------------------------
DATABASE_URL = os.environ.get("DATABASE_URL")
DATABASE_HOST = os.environ.get("DATABASE_HOST")
DATABASE_PORT = os.environ.get("DATABASE_PORT")
DATABASE_NAME = os.environ.get("DATABASE_NAME")
DATABASE_USER = os.environ.get("DATABASE_USER")
DATABASE_PASSWORD = os.environ.get("DATABASE_PASSWORD")

# --------------------------------------------------
# API Key Configuration
# --------------------------------------------------
# Bearer token the dashboard backend presents on every request
REQUIRED_API_KEY = os.environ.get("GOVAIRN_API_TOKEN")

# --------------------------------------------------
# LLM Provider Configuration
# --------------------------------------------------
# Available providers: "openai", "gemini"
DEFAULT_PROVIDER = os.environ.get("DEFAULT_LLM_PROVIDER", "openai")

OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")

VERTEX_DEFAULT_MODEL = os.environ.get("VERTEX_DEFAULT_MODEL")
OPENAI_MODEL_NAME = os.environ.get("OPENAI_MODEL_NAME")

# --------------------------------------------------
# Snapshot Configuration
# --------------------------------------------------
SNAPSHOT_API_URL = os.environ.get("SNAPSHOT_API_URL", "https://hub.snapshot.org/graphql")


def has_database_config() -> bool:
    """True when either DATABASE_URL or the DATABASE_* variables are set."""
    return bool(os.environ.get("DATABASE_URL") or os.environ.get("DATABASE_HOST"))
