import os
from typing import Optional

from ..errors import InvalidConfigurationError
from .base import BatchingPolicy, EmbeddingProvider
from .gemini_client import GeminiEmbeddingProvider
from .openai_client import AzureEmbeddingProvider, OpenAIEmbeddingProvider

_API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "gemini": "GOOGLE_API_KEY",
}


def create_provider(name: str, api_key: Optional[str] = None,
                    model: Optional[str] = None, **kwargs) -> EmbeddingProvider:
    """Build the embedding provider called *name*.

    *api_key* defaults to the provider's usual environment variable.
    Extra keyword arguments go to the provider constructor (``base_url``,
    ``resource_name``, ``max_retries`` ...).
    """
    if name not in _API_KEY_ENV:
        raise InvalidConfigurationError(f"Unsupported embedding provider: {name}")
    api_key = api_key or os.environ.get(_API_KEY_ENV[name], "")
    if not api_key:
        raise InvalidConfigurationError(
            f"{_API_KEY_ENV[name]} is not set and no api_key was given for {name}")
    if model:
        kwargs["model"] = model

    if name == "openai":
        return OpenAIEmbeddingProvider(api_key, **kwargs)
    if name == "azure":
        resource_name = kwargs.pop("resource_name", None) or os.environ.get(
            "AZURE_RESOURCE_NAME", "")
        if not resource_name:
            raise InvalidConfigurationError(
                "Azure resource name required (resource_name or AZURE_RESOURCE_NAME)")
        return AzureEmbeddingProvider(api_key, resource_name, **kwargs)
    return GeminiEmbeddingProvider(api_key, **kwargs)


__all__ = [
    "AzureEmbeddingProvider",
    "BatchingPolicy",
    "EmbeddingProvider",
    "GeminiEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "create_provider",
]
