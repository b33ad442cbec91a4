import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ragcrawl.config import settings
from ragcrawl.core.fetcher import RetryingFetcher
from ragcrawl.exceptions import EmbeddingServiceError
from ragcrawl.models.vector import EmbeddingResponse

logger = logging.getLogger(__name__)

# --- Abstract Base Class for Embedders ---

class BaseEmbedder(ABC):
    """
    Abstract base class for all embedder implementations.
    One HTTP request per text; failures raise EmbeddingServiceError.
    """
    def __init__(
        self,
        fetcher: Optional[RetryingFetcher] = None,
        expected_dim: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or RetryingFetcher()
        self.expected_dim = expected_dim
        self.timeout = timeout if timeout is not None else settings.EMBEDDING_TIMEOUT

    @property
    @abstractmethod
    def endpoint(self) -> str:
        pass

    @abstractmethod
    def build_payload(self, text: str) -> Dict[str, Any]:
        pass

    def build_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    async def embed_query(self, text: str) -> List[float]:
        response = await self.fetcher.request(
            "POST",
            self.endpoint,
            headers=self.build_headers(),
            json=self.build_payload(text),
            timeout=self.timeout,
        )
        if response is None:
            raise EmbeddingServiceError(f"Embedding service unreachable at {self.endpoint}")
        if not response.is_success:
            raise EmbeddingServiceError(f"Embedding request failed {response.status_code}: {response.text[:200]}")

        try:
            vector = EmbeddingResponse.model_validate(response.json()).embedding
        except (ValueError, ValidationError) as e:
            raise EmbeddingServiceError(f"Invalid embedding response: {e}") from e

        if self.expected_dim and len(vector) != self.expected_dim:
            raise EmbeddingServiceError(
                f"Embedding dimension mismatch. Expected {self.expected_dim}, got {len(vector)}"
            )
        return vector

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return [await self.embed_query(text) for text in texts]

    async def aclose(self):
        if self._owns_fetcher:
            await self.fetcher.aclose()

# --- Ollama Embedder Implementation ---

class OllamaEmbedder(BaseEmbedder):
    def __init__(self, base_url: Optional[str] = None, model: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.base_url = (base_url or settings.OLLAMA_URL).rstrip("/")
        self.model = model or settings.OLLAMA_EMBED_MODEL
        logger.info(f"Initialized OllamaEmbedder: {self.model}")

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/api/embeddings"

    def build_payload(self, text: str) -> Dict[str, Any]:
        return {"model": self.model, "prompt": text}

# --- OpenAI-compatible Embedder Implementation ---

class OpenAIEmbedder(BaseEmbedder):
    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.model = model or settings.OPENAI_EMBEDDING_MODEL
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        if not self.api_key:
            logger.warning("OpenAI API key missing.")
        logger.info(f"Initialized OpenAIEmbedder: {self.model}")

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/embeddings"

    def build_headers(self) -> Dict[str, str]:
        headers = super().build_headers()
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def build_payload(self, text: str) -> Dict[str, Any]:
        return {"model": self.model, "input": text}

# --- Embedder Factory ---

class Embedder:
    """
    Factory class to provide the correct embedder instance based on settings.
    """
    def __init__(self, provider: Optional[str] = None, **kwargs):
        self.provider = (provider or settings.EMBEDDING_PROVIDER).lower()
        self._embedder_instance = self._initialize_embedder(**kwargs)

    def _initialize_embedder(self, **kwargs) -> BaseEmbedder:
        if self.provider == "ollama":
            instance = OllamaEmbedder(**kwargs)
        elif self.provider == "openai":
            instance = OpenAIEmbedder(**kwargs)
        else:
            raise ValueError(f"Unsupported EMBEDDING_PROVIDER: {self.provider}")
        logger.info(f"Active Embedder Factory initialized: {self.provider}")
        return instance

    @property
    def instance(self) -> BaseEmbedder:
        return self._embedder_instance

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return await self._embedder_instance.embed_documents(texts)

    async def embed_query(self, text: str) -> List[float]:
        return await self._embedder_instance.embed_query(text)

    async def aclose(self):
        await self._embedder_instance.aclose()
