"""
Google Gemini embedding provider (Generative Language REST API).
"""

import logging
from typing import List

import requests

from .base import EmbeddingProvider

logger = logging.getLogger(__name__)


class GeminiEmbeddingProvider(EmbeddingProvider):

    name = "gemini"

    def __init__(self, api_key: str, model: str = "text-embedding-004",
                 base_url: str = "https://generativelanguage.googleapis.com/v1beta",
                 dimensions: int | None = None, **kwargs):
        super().__init__(model, **kwargs)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.dimensions = dimensions

    def _request(self, text: str) -> dict:
        payload = {
            "model": f"models/{self.model}",
            "content": {"parts": [{"text": text}]},
        }
        if self.dimensions:
            payload["outputDimensionality"] = self.dimensions
        return payload

    def _embed_one(self, text: str) -> List[float]:
        url = f"{self.base_url}/models/{self.model}:embedContent"
        response = requests.post(url, params={"key": self.api_key},
                                 json=self._request(text),
                                 timeout=(10, self.timeout))
        response.raise_for_status()
        return list(response.json()["embedding"]["values"])

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        url = f"{self.base_url}/models/{self.model}:batchEmbedContents"
        payload = {"requests": [self._request(t) for t in texts]}
        response = requests.post(url, params={"key": self.api_key}, json=payload,
                                 timeout=(10, self.timeout))
        response.raise_for_status()
        vectors = [list(e["values"]) for e in response.json()["embeddings"]]
        logger.debug("[gemini] Embedded %d text(s) with %s", len(vectors), self.model)
        return vectors
