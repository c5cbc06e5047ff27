"""
Database configuration and validation utilities.

Connection parameters come from DATABASE_URL (percent-encoded passwords are
supported) or from the individual DATABASE_* variables.
"""

import os
import threading
from typing import Optional, Dict, Any
from urllib.parse import urlparse, unquote, parse_qs

from govairn.utils.logger import logger


class DatabaseConfig:
    """Centralized database configuration with validation."""

    def __init__(self):
        self._config = self._load_config()
        self._validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load database configuration from environment variables."""
        common = {
            'connect_timeout': int(os.environ.get("DB_CONNECT_TIMEOUT", "10")),
            'statement_timeout_ms': int(os.environ.get("DB_STATEMENT_TIMEOUT_MS", "30000")),
            'application_name': os.environ.get("DB_APPLICATION_NAME", "govairn-backend"),
        }
        db_url = os.environ.get("DATABASE_URL")
        if db_url:
            parsed = urlparse(db_url)
            query = parse_qs(parsed.query)
            return {
                'host': parsed.hostname,
                'port': parsed.port or os.environ.get("DATABASE_PORT", "5432"),
                'database': parsed.path.lstrip('/') if parsed.path else None,
                'user': parsed.username,
                'password': unquote(parsed.password or ""),
                'sslmode': query.get("sslmode", [os.environ.get("PGSSLMODE", "prefer")])[0],
                **common,
            }
        return {
            'host': os.environ.get("DATABASE_HOST"),
            'port': os.environ.get("DATABASE_PORT", "5432"),
            'database': os.environ.get("DATABASE_NAME"),
            'user': os.environ.get("DATABASE_USER"),
            'password': os.environ.get("DATABASE_PASSWORD"),
            'sslmode': os.environ.get("PGSSLMODE", "prefer"),
            **common,
        }

    def _validate_config(self) -> None:
        """Validate that all required configuration is present."""
        required_fields = {
            'host': "DATABASE_HOST",
            'database': "DATABASE_NAME",
            'user': "DATABASE_USER",
            'password': "DATABASE_PASSWORD",
        }
        missing_fields = [env_var for field, env_var in required_fields.items() if not self._config.get(field)]

        if missing_fields:
            error_msg = f"Missing required database environment variables: {', '.join(missing_fields)}"
            logger.error("DatabaseConfig: %s", error_msg)
            raise RuntimeError(error_msg)

        try:
            self._config['port'] = int(self._config['port'])
        except (ValueError, TypeError):
            raise RuntimeError("DATABASE_PORT must be a valid integer")

    def get_connection_params(self) -> Dict[str, Any]:
        """Get connection parameters for psycopg2."""
        return {
            'host': self._config['host'],
            'port': self._config['port'],
            'dbname': self._config['database'],
            'user': self._config['user'],
            'password': self._config['password'],
            'sslmode': self._config['sslmode'],
            'connect_timeout': self._config['connect_timeout'],
            'application_name': self._config['application_name'],
            'options': f"-c statement_timeout={self._config['statement_timeout_ms']}",
        }

    def get_safe_summary(self) -> Dict[str, Any]:
        """Connection summary without credentials, for logs and health checks."""
        return {
            'host': self._config['host'],
            'port': self._config['port'],
            'database': self._config['database'],
            'user': self._config['user'],
        }


_db_config: Optional[DatabaseConfig] = None
_config_lock = threading.Lock()


def get_database_config() -> DatabaseConfig:
    """Get the process-wide database configuration, loading it on first use."""
    global _db_config

    with _config_lock:
        if _db_config is None:
            _db_config = DatabaseConfig()
        return _db_config
