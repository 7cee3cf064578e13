"""
OpenAI-compatible embedding providers for OpenAI, any server that implements
the ``/embeddings`` API, and Azure OpenAI deployments.
"""

import logging
from typing import List

import requests

from .base import BatchingPolicy, EmbeddingProvider

logger = logging.getLogger(__name__)


def _vectors_from_response(data: dict) -> List[List[float]]:
    """Extract embeddings from an ``/embeddings`` response, ordered by ``index``."""
    items = data["data"]
    items = sorted(items, key=lambda item: item.get("index", 0))
    return [list(item["embedding"]) for item in items]


class OpenAIEmbeddingProvider(EmbeddingProvider):

    name = "openai"

    def __init__(self, api_key: str, model: str = "text-embedding-3-small",
                 base_url: str = "https://api.openai.com/v1", **kwargs):
        super().__init__(model, **kwargs)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _url(self) -> str:
        return f"{self.base_url}/embeddings"

    def _payload(self, value) -> dict:
        return {"model": self.model, "input": value}

    def _post(self, value) -> List[List[float]]:
        response = requests.post(self._url(), headers=self._headers(),
                                 json=self._payload(value),
                                 timeout=(10, self.timeout))
        response.raise_for_status()
        vectors = _vectors_from_response(response.json())
        logger.debug("[%s] Embedded %d text(s) with %s",
                     self.name, len(vectors), self.model)
        return vectors

    def _embed_one(self, text: str) -> List[float]:
        return self._post(text)[0]

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        return self._post(list(texts))


class AzureEmbeddingProvider(OpenAIEmbeddingProvider):
    """Azure OpenAI deployment.

    Azure's batch embedding endpoint rejects some multi-input requests,
    so this provider is single-call-only.
    """

    name = "azure"
    batching_policy = BatchingPolicy(single_call_only=True)

    def __init__(self, api_key: str, resource_name: str,
                 model: str = "text-embedding-3-small",
                 api_version: str = "2024-02-01", **kwargs):
        super().__init__(api_key, model=model,
                         base_url=f"https://{resource_name}.openai.azure.com/openai",
                         **kwargs)
        self.resource_name = resource_name
        self.api_version = api_version

    def _headers(self) -> dict:
        return {"Content-Type": "application/json", "api-key": self.api_key}

    def _url(self) -> str:
        return (f"{self.base_url}/deployments/{self.model}/embeddings"
                f"?api-version={self.api_version}")

    def _payload(self, value) -> dict:
        return {"input": value}
