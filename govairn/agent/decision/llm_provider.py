"""LLM Provider abstraction layer for switching between different LLM providers."""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from govairn.config.common_settings import LOCATION, PROJECT_ID
from govairn.config.decision_agent_settings import DecisionAgentConfig

logger = logging.getLogger(__name__)


def extract_text_content(content: Any) -> str:
    """Flatten a chat model's message content into plain text.

    Some models return a list of content blocks instead of a string.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content) if content is not None else ""


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, model_name: str, temperature: float, **kwargs):
        """Initialize the LLM provider.

        Args:
            model_name: Name of the model to use
            temperature: Temperature for generation
            **kwargs: Additional provider-specific parameters
        """
        self.model_name = model_name
        self.temperature = temperature
        self.kwargs = kwargs
        self._llm = None

    @abstractmethod
    def _initialize_llm(self) -> Any:
        """Initialize the underlying LLM object."""
        pass

    @property
    def llm(self) -> Any:
        """Get the LLM instance, initializing if necessary."""
        if self._llm is None:
            self._llm = self._initialize_llm()
        return self._llm

    async def agenerate(self, messages: List[BaseMessage], **kwargs) -> str:
        """Generate text from messages without blocking the event loop."""
        try:
            response = await self.llm.ainvoke(messages, **kwargs)
            return extract_text_content(response.content)
        except Exception as e:
            logger.error(f"Error generating text with {self.get_provider_name()}: {str(e)}")
            raise

    @abstractmethod
    def get_provider_name(self) -> str:
        """Get the name of the provider."""
        pass

    def get_model_info(self) -> Dict[str, Any]:
        """Get information about the current model configuration."""
        info = {
            "provider": self.get_provider_name(),
            "model": self.model_name,
            "temperature": self.temperature,
        }
        info.update({k: v for k, v in self.kwargs.items() if "api_key" not in k})
        return info


class GeminiProvider(BaseLLMProvider):
    """Google Gemini LLM provider using Vertex AI."""

    def __init__(self, model_name: str, temperature: float, **kwargs):
        gemini_config = DecisionAgentConfig.get_llm_config("gemini")
        kwargs.setdefault(
            'convert_system_message_to_human',
            gemini_config.get('convert_system_message_to_human', True)
        )
        if 'max_tokens' in kwargs:
            kwargs['max_output_tokens'] = kwargs.pop('max_tokens')
        super().__init__(model_name, temperature, **kwargs)

    def _initialize_llm(self):
        """Initialize Gemini LLM via ChatVertexAI."""
        from langchain_google_vertexai import ChatVertexAI

        # Credentials are resolved through Application Default Credentials
        return ChatVertexAI(
            project=PROJECT_ID,
            location=LOCATION,
            model_name=self.model_name,
            temperature=self.temperature,
            **self.kwargs
        )

    def get_provider_name(self) -> str:
        return "gemini"


class OpenAIProvider(BaseLLMProvider):
    """OpenAI LLM provider."""

    def __init__(self, model_name: str, temperature: float, openai_api_key: str, **kwargs):
        openai_config = DecisionAgentConfig.get_llm_config("openai")
        for key, value in openai_config.items():
            if key not in ['model_name', 'temperature'] and key not in kwargs:
                kwargs[key] = value
        super().__init__(model_name, temperature, **kwargs)
        self.openai_api_key = openai_api_key

    def _initialize_llm(self):
        """Initialize OpenAI LLM."""
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=self.model_name,
            temperature=self.temperature,
            api_key=self.openai_api_key,
            **self.kwargs
        )

    def get_provider_name(self) -> str:
        return "openai"


class LLMProviderFactory:
    """Factory for creating LLM providers."""

    _providers = {
        "gemini": GeminiProvider,
        "openai": OpenAIProvider,
    }

    @classmethod
    def create_provider(
        cls,
        provider_name: str,
        model_name: str = None,
        temperature: float = None,
        **kwargs
    ) -> BaseLLMProvider:
        """Create an LLM provider instance.

        Args:
            provider_name: Name of the provider ("openai", "gemini")
            model_name: Model name (will use config default if not provided)
            temperature: Temperature (will use config default if not provided)
            **kwargs: Provider-specific parameters

        Returns:
            Configured LLM provider instance
        """
        if provider_name not in cls._providers:
            raise ValueError(f"Unsupported provider: {provider_name}. Supported providers: {list(cls._providers.keys())}")

        if model_name is None:
            # Environment wins, then the YAML default
            env_var = "OPENAI_MODEL_NAME" if provider_name == "openai" else "VERTEX_DEFAULT_MODEL"
            model_name = os.getenv(env_var) or DecisionAgentConfig.get_provider_model_name(provider_name)
            if not model_name:
                model_name = DecisionAgentConfig.get_model_name(provider_name)

        if temperature is None:
            temperature = DecisionAgentConfig.get_temperature()

        if provider_name == "openai":
            kwargs['openai_api_key'] = kwargs.get('openai_api_key') or DecisionAgentConfig.get_openai_api_key()

        provider_class = cls._providers[provider_name]
        return provider_class(model_name, temperature, **kwargs)

    @classmethod
    def register_provider(cls, name: str, provider_class: type):
        """Register a new provider class."""
        if not issubclass(provider_class, BaseLLMProvider):
            raise ValueError("Provider class must inherit from BaseLLMProvider")
        cls._providers[name] = provider_class

    @classmethod
    def get_available_providers(cls) -> List[str]:
        return list(cls._providers.keys())


class LLMManager:
    """Manager for LLM operations with provider abstraction."""

    def __init__(self, provider_name: str = "openai", llm_timeout: Optional[float] = None, **kwargs):
        """Initialize LLM manager.

        Args:
            provider_name: Name of the LLM provider to use
            llm_timeout: Timeout in seconds for LLM requests
            **kwargs: Provider-specific configuration
        """
        if 'timeout' not in kwargs:
            kwargs['timeout'] = llm_timeout or DecisionAgentConfig.get_llm_timeout()

        self.provider = LLMProviderFactory.create_provider(provider_name, **kwargs)
        self.provider_name = provider_name

    @staticmethod
    def detect_provider() -> str:
        """Pick a provider from the environment.

        Returns:
            Provider name ("openai" or "gemini")

        Raises:
            ValueError: If neither provider is configured
        """
        if os.getenv("OPENAI_API_KEY"):
            return "openai"
        if os.getenv("PROJECT_ID") or os.getenv("GOOGLE_APPLICATION_CREDENTIALS"):
            return "gemini"
        raise ValueError("No LLM provider configured. Set OPENAI_API_KEY or PROJECT_ID for Vertex AI.")

    async def agenerate_text(self, messages: List[BaseMessage], **kwargs) -> str:
        return await self.provider.agenerate(messages, **kwargs)

    async def agenerate_from_prompt(self, prompt: str, system_prompt: str = None, **kwargs) -> str:
        """Generate text from a user prompt and optional system prompt.

        Args:
            prompt: The user prompt
            system_prompt: Optional system prompt
            **kwargs: Additional generation parameters

        Returns:
            Generated text
        """
        messages = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))

        return await self.agenerate_text(messages, **kwargs)

    def get_provider_info(self) -> Dict[str, Any]:
        """Get information about the current provider."""
        return {
            "provider_name": self.provider_name,
            "model_info": self.provider.get_model_info()
        }
