"""
Embedding providers for Mnemograph

Providers expose a single method, embed(text) -> List[float]:
- OllamaEmbedder: local GPU via Ollama, nothing leaves the machine
- OpenAIEmbedder: OpenAI-compatible /embeddings endpoint over HTTP
- HashEmbedder: deterministic character-hash vectors, no network at all

Every network failure is raised as ProviderError; the graph store absorbs
it and falls back to word-overlap scoring.
"""

import hashlib
import logging
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, List, Optional

import numpy as np
import requests

from .exceptions import ConfigError, ProviderError
from .storage.embeddings import normalize

logger = logging.getLogger(__name__)


class OllamaEmbedder:
    """
    Local embedding generation via Ollama

    Models:
    - nomic-embed-text (fast, good quality)
    - mxbai-embed-large (higher quality, slower)

    Default: nomic-embed-text (768 dimensions)
    """

    DEFAULT_MODEL = "nomic-embed-text"
    DEFAULT_DIM = 768
    DEFAULT_BASE_URL = "http://localhost:11434"

    def __init__(self, model: str = DEFAULT_MODEL,
                 base_url: str = DEFAULT_BASE_URL,
                 timeout: float = 30.0):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # Try to import ollama client, fall back to requests
        try:
            import ollama
            self.client = ollama.Client(host=self.base_url)
            self._use_client = True
        except ImportError:
            self._use_client = False
            self._session = requests.Session()

    def embed(self, text: str) -> List[float]:
        """Generate embedding for text"""
        try:
            if self._use_client:
                response = self.client.embeddings(model=self.model, prompt=text)
                return list(response["embedding"])

            response = self._session.post(
                f"{self.base_url}/api/embeddings",
                json={"model": self.model, "prompt": text},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()["embedding"]
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"Ollama embedding failed: {e}") from e

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts"""
        return [self.embed(t) for t in texts]


class OpenAIEmbedder:
    """
    Embeddings from an OpenAI-compatible HTTP API.

    Default model: text-embedding-3-small (1536 dimensions)
    """

    DEFAULT_MODEL = "text-embedding-3-small"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    def __init__(self,
                 api_key: Optional[str] = None,
                 model: str = DEFAULT_MODEL,
                 base_url: str = DEFAULT_BASE_URL,
                 timeout: float = 30.0):
        """
        Args:
            api_key: API key (or OPENAI_API_KEY env var)
            model: Embedding model name
            base_url: API root
            timeout: Request timeout in seconds
        """
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise ConfigError("OPENAI_API_KEY required or pass api_key")

        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        })

    def embed(self, text: str) -> List[float]:
        """Generate embedding via the /embeddings endpoint"""
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        try:
            response = self._session.post(
                f"{self.base_url}/embeddings",
                json={"model": self.model, "input": texts, "encoding_format": "float"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()["data"]
        except (requests.RequestException, KeyError, ValueError) as e:
            raise ProviderError(f"OpenAI embedding failed: {e}") from e

        return [item["embedding"] for item in sorted(data, key=lambda d: d.get("index", 0))]


class HashEmbedder:
    """
    Deterministic local embeddings for offline use and testing.

    Each character adds its code point to a bucket chosen by code point and
    position; a length-dependent sinusoid is mixed in and the vector is
    normalized to unit length. Not semantic, but stable across runs.
    """

    DEFAULT_DIM = 384

    def __init__(self, dimensions: int = DEFAULT_DIM):
        if dimensions <= 0:
            raise ConfigError("dimensions must be positive")
        self.dimensions = dimensions

    def embed(self, text: str) -> List[float]:
        vector = np.zeros(self.dimensions, dtype=np.float64)

        for position, char in enumerate(text, start=1):
            code = ord(char)
            vector[(code * position) % self.dimensions] += code / 255.0

        vector += (np.sin(np.arange(self.dimensions) * len(text)) + 1.0) / 2.0
        return normalize(vector)

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [self.embed(t) for t in texts]


class EmbeddingCache:
    """
    Disk cache for embeddings to avoid recomputing

    Pattern: Hash content -> store embedding as .npy file.
    Wraps any provider and is itself a provider.
    """

    def __init__(self, cache_dir: Path, embedder: Any):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.embedder = embedder

    def _get_cache_path(self, content: str) -> Path:
        """Get cache file path for content"""
        content_hash = hashlib.sha256(content.encode()).hexdigest()
        return self.cache_dir / f"{content_hash}.npy"

    def embed(self, text: str) -> List[float]:
        """Get from cache or compute and store"""
        cache_path = self._get_cache_path(text)

        if cache_path.exists():
            try:
                return np.load(cache_path).tolist()
            except (OSError, ValueError) as e:
                logger.warning(f"Discarding unreadable cached embedding {cache_path.name}: {e}")
                cache_path.unlink(missing_ok=True)

        embedding = self.embedder.embed(text)
        try:
            np.save(cache_path, np.asarray(embedding, dtype=np.float64))
        except OSError as e:
            logger.warning(f"Could not cache embedding: {e}")

        return embedding

    def invalidate(self, content: str) -> None:
        """Remove cached embedding for content"""
        self._get_cache_path(content).unlink(missing_ok=True)

    def clear_old(self, max_age_days: int = 30) -> int:
        """Clear embeddings older than specified days; returns number removed"""
        cutoff = datetime.now() - timedelta(days=max_age_days)
        removed = 0

        for file_path in self.cache_dir.glob("*.npy"):
            mtime = datetime.fromtimestamp(file_path.stat().st_mtime)
            if mtime < cutoff:
                file_path.unlink()
                removed += 1
        return removed


PROVIDERS = ("none", "local", "ollama", "openai")


def create_embedder(provider: str = "none",
                    model: Optional[str] = None,
                    base_url: Optional[str] = None,
                    dimensions: int = HashEmbedder.DEFAULT_DIM,
                    cache_dir: Optional[Path] = None) -> Optional[Any]:
    """
    Factory for embedding providers.

    Args:
        provider: One of (none, local, ollama, openai)
        model: Provider-specific model name
        base_url: Endpoint override
        dimensions: Vector size for the local hash embedder
        cache_dir: Wrap the provider in an EmbeddingCache when given

    Returns:
        Provider instance, or None for "none"
    """
    if provider not in PROVIDERS:
        raise ConfigError(f"Unknown embedding provider: {provider}. Must be one of: {PROVIDERS}")

    if provider == "none":
        return None
    if provider == "local":
        embedder: Any = HashEmbedder(dimensions=dimensions)
    elif provider == "ollama":
        embedder = OllamaEmbedder(
            model=model or OllamaEmbedder.DEFAULT_MODEL,
            base_url=base_url or OllamaEmbedder.DEFAULT_BASE_URL,
        )
    else:
        embedder = OpenAIEmbedder(
            model=model or OpenAIEmbedder.DEFAULT_MODEL,
            base_url=base_url or OpenAIEmbedder.DEFAULT_BASE_URL,
        )

    if cache_dir is not None:
        embedder = EmbeddingCache(cache_dir, embedder)
    return embedder
