import logging
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

import requests

from ..errors import EmbeddingProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchingPolicy:
    """How a provider wants its embedding calls shaped.

    ``single_call_only`` providers get one text per request, whatever
    batch size is configured.
    """

    single_call_only: bool = False


class EmbeddingProvider(ABC):
    """Turns text into fixed-length float vectors.

    Subclasses implement :meth:`_embed_one` and :meth:`_embed_batch`;
    the public methods add retry with jittered exponential backoff and
    validate the shape of what comes back.
    """

    name = "embedding"
    batching_policy = BatchingPolicy()

    def __init__(self, model: str, max_retries: int = 3, retry_delay: float = 2.0,
                 timeout: float = 60.0):
        self.model = model
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.timeout = timeout

    # ── Public entry points ──

    def embed_one(self, text: str) -> List[float]:
        """Embed a single string."""
        vector = self._with_retries(lambda: self._embed_one(text))
        self._check_vectors([vector], expected=1)
        return vector

    def embed_many(self, texts: List[str]) -> List[List[float]]:
        """Embed *texts*, returning vectors in input order.

        Single-call-only providers are driven one text at a time, in order.
        """
        if not texts:
            return []
        if self.batching_policy.single_call_only:
            vectors = [self._with_retries(lambda t=t: self._embed_one(t))
                       for t in texts]
        else:
            vectors = self._with_retries(lambda: self._embed_batch(texts))
        self._check_vectors(vectors, expected=len(texts))
        return vectors

    # ── Retry loop ──

    def _with_retries(self, call):
        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return call()
            except EmbeddingProviderError:
                raise
            except (requests.exceptions.RequestException, ValueError, KeyError,
                    IndexError, TypeError) as e:
                last_error = e
                logger.warning("[%s] Embedding error on attempt %d/%d: %s",
                               self.name, attempt, self.max_retries, e)
                if attempt < self.max_retries:
                    wait = self.retry_delay * (2 ** (attempt - 1))
                    jitter = wait * 0.1 * random.random()
                    if _is_rate_limited(e):
                        wait *= 2
                        logger.info("[%s] Rate limit detected (429). Backing off for %.1fs",
                                    self.name, wait)
                    time.sleep(wait + jitter)
        raise EmbeddingProviderError(
            self.name,
            f"embedding failed after {self.max_retries} attempt(s): {last_error}")

    def _check_vectors(self, vectors: List[List[float]], expected: int) -> None:
        if len(vectors) != expected:
            raise EmbeddingProviderError(
                self.name, f"expected {expected} vector(s), got {len(vectors)}")
        lengths = {len(v) for v in vectors}
        if 0 in lengths:
            raise EmbeddingProviderError(self.name, "received an empty embedding")
        if len(lengths) > 1:
            raise EmbeddingProviderError(
                self.name, f"received vectors of mixed length {sorted(lengths)}")

    # ── Subclass hooks ──

    @abstractmethod
    def _embed_one(self, text: str) -> List[float]:
        """Embed one text with a single request."""

    @abstractmethod
    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed many texts with a single request, preserving order."""


def _is_rate_limited(exc: Exception) -> bool:
    response = getattr(exc, "response", None)
    if response is not None and getattr(response, "status_code", None) == 429:
        return True
    return "429" in str(exc)
