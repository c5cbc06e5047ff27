import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any

logger = logging.getLogger(__name__)


class DecisionAgentConfig:
    """Configuration for the decision agent, backed by agent_config.yaml."""

    _config = None
    _config_path = Path(__file__).parent / "agent_config.yaml"

    @staticmethod
    def get_openai_api_key() -> str:
        """Get OpenAI API key from environment variables."""
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OPENAI_API_KEY environment variable is not set")
        return api_key

    @staticmethod
    def get_model_name(llm_type: str = "openai") -> str:
        """Get the model name from environment variables."""
        if llm_type == "openai":
            model_name = os.getenv("OPENAI_MODEL_NAME")
            if not model_name:
                raise ValueError("OPENAI_MODEL_NAME environment variable is not set")
            return model_name

        model_name = os.getenv("VERTEX_DEFAULT_MODEL")
        if not model_name:
            raise ValueError("VERTEX_DEFAULT_MODEL environment variable is not set")
        return model_name

    @classmethod
    def _load_config(cls) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if cls._config is None:
            try:
                with open(cls._config_path, 'r') as f:
                    cls._config = yaml.safe_load(f)
                if cls._config is None:
                    raise ValueError("Configuration file is empty or invalid")
            except FileNotFoundError:
                raise FileNotFoundError(f"Configuration file not found at {cls._config_path}. Please ensure agent_config.yaml exists.")
            except yaml.YAMLError as e:
                raise ValueError(f"Error parsing YAML configuration file: {e}")
        return cls._config

    # LLM configuration
    @classmethod
    def get_temperature(cls) -> float:
        """Get temperature from YAML config."""
        return cls._load_config()['llm']['temperature']

    @classmethod
    def get_llm_timeout(cls) -> float:
        """Seconds allowed for a single LLM call."""
        return float(cls._load_config()['llm'].get('timeout', 30))

    @classmethod
    def get_llm_config(cls, provider_name: str = "openai") -> Dict[str, Any]:
        """Get LLM configuration for a specific provider.

        Args:
            provider_name: Name of the provider ("openai", "gemini")

        Returns:
            Dictionary with provider-specific configuration
        """
        llm_config = cls._load_config()['llm']

        provider_config = {
            'temperature': llm_config.get('temperature', 0.2),
            'max_tokens': llm_config.get('max_tokens', 1500)
        }

        if 'providers' in llm_config and provider_name in llm_config['providers']:
            provider_config.update(llm_config['providers'][provider_name])

        return provider_config

    @classmethod
    def get_provider_model_name(cls, provider_name: str) -> str:
        """Get model name for a specific provider from YAML config."""
        llm_config = cls._load_config()['llm']

        if 'providers' in llm_config and provider_name in llm_config['providers']:
            return llm_config['providers'][provider_name].get('model_name', '')

        return ''

    # Decision generation
    @classmethod
    def get_description_char_limit(cls) -> int:
        return int(cls._load_config()['decision']['description_char_limit'])

    @classmethod
    def get_truncation_marker(cls) -> str:
        return cls._load_config()['decision']['truncation_marker']

    @classmethod
    def get_fallback_config(cls) -> Dict[str, Any]:
        """Values used when the LLM output cannot be turned into a decision."""
        default_config = {
            'decision': 'abstain',
            'confidence': 50,
            'persona_match': 50,
            'factor_name': 'Fallback Decision',
        }
        return {**default_config, **cls._load_config().get('fallback', {})}

    # Processing queue
    @classmethod
    def get_queue_config(cls) -> Dict[str, Any]:
        """Retry policy for the AI processing queue."""
        default_config = {
            'max_attempts': 5,
            'base_backoff_seconds': 30,
            'max_backoff_seconds': 3600,
            'stale_processing_seconds': 600,
            'batch_size': 10,
        }
        return {**default_config, **cls._load_config().get('queue', {})}

    # Snapshot
    @classmethod
    def get_snapshot_config(cls) -> Dict[str, Any]:
        default_config = {
            'api_url': 'https://hub.snapshot.org/graphql',
            'page_size': 20,
            'closed_page_size': 1000,
            'timeout': 30.0,
        }
        snapshot_config = {**default_config, **cls._load_config().get('snapshot', {})}

        # Environment override wins over the YAML default
        env_url = os.getenv("SNAPSHOT_API_URL")
        if env_url:
            snapshot_config['api_url'] = env_url
        return snapshot_config
