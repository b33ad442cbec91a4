import logging
import uuid
from typing import Dict, List, Optional
from urllib.parse import quote

from pydantic import ValidationError

from ragcrawl.config import settings
from ragcrawl.core.fetcher import RetryingFetcher
from ragcrawl.exceptions import IndexServiceError
from ragcrawl.models.document import IndexPoint
from ragcrawl.models.vector import (
    CreateCollectionRequest,
    SearchHit,
    SearchRequest,
    SearchResponse,
    UpsertRequest,
    VectorParams,
    WirePoint,
)

logger = logging.getLogger(__name__)


def collection_name(job_id: str, prefix: Optional[str] = None) -> str:
    """Deterministic collection name for a job."""
    prefix = settings.RAG_COLLECTION_PREFIX if prefix is None else prefix
    return f"{prefix}{job_id}"


def wire_id(point_id: str) -> str:
    """The store accepts only UUID or integer ids, so logical ids are mapped to a stable UUIDv5."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, point_id))


class QdrantVectorStore:
    """
    Client for the Qdrant REST API: one collection per job.
    Every failed call raises IndexServiceError, which aborts indexing for the job.
    """
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        fetcher: Optional[RetryingFetcher] = None,
        distance: Optional[str] = None,
    ):
        self.base_url = (base_url or settings.QDRANT_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.QDRANT_API_KEY
        self.distance = distance or settings.RAG_DISTANCE
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or RetryingFetcher()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["api-key"] = self.api_key
        return headers

    def _collection_url(self, name: str) -> str:
        return f"{self.base_url}/collections/{quote(name, safe='')}"

    async def _call(self, method: str, url: str, json=None):
        response = await self.fetcher.request(method, url, headers=self._headers(), json=json)
        if response is None:
            raise IndexServiceError(f"Vector store unreachable: {method} {url}")
        return response

    async def collection_exists(self, name: str) -> bool:
        response = await self._call("GET", self._collection_url(name))
        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise IndexServiceError(
            f"Qdrant GET collection failed {response.status_code}: {response.text[:200]}",
            response.status_code,
        )

    async def ensure_collection(self, name: str, size: int, distance: Optional[str] = None) -> bool:
        """
        Creates the collection only when the existence check says it is missing.
        Returns True when a creation request was issued.
        """
        if await self.collection_exists(name):
            return False

        body = CreateCollectionRequest(vectors=VectorParams(size=size, distance=distance or self.distance))
        response = await self._call("PUT", self._collection_url(name), json=body.model_dump())
        if not response.is_success:
            raise IndexServiceError(
                f"Qdrant ensureCollection failed {response.status_code}: {response.text[:200]}",
                response.status_code,
            )
        logger.info(f"Created collection {name} (size={size}, distance={body.vectors.distance})")
        return True

    async def upsert_points(self, name: str, points: List[IndexPoint]) -> int:
        if not points:
            return 0
        body = UpsertRequest(points=[
            WirePoint(id=wire_id(p.id), vector=p.vector, payload=p.payload.model_dump())
            for p in points
        ])
        response = await self._call("PUT", f"{self._collection_url(name)}/points", json=body.model_dump())
        if not response.is_success:
            raise IndexServiceError(
                f"Qdrant upsertPoints failed {response.status_code}: {response.text[:200]}",
                response.status_code,
            )
        logger.debug(f"Upserted {len(points)} points into {name}")
        return len(points)

    async def search(
        self,
        name: str,
        vector: List[float],
        limit: Optional[int] = None,
        score_threshold: Optional[float] = None,
    ) -> List[SearchHit]:
        body = SearchRequest(vector=vector, limit=limit or settings.RAG_SEARCH_LIMIT, score_threshold=score_threshold)
        response = await self._call(
            "POST",
            f"{self._collection_url(name)}/points/search",
            json=body.model_dump(exclude_none=True),
        )
        if not response.is_success:
            raise IndexServiceError(
                f"Qdrant search failed {response.status_code}: {response.text[:200]}",
                response.status_code,
            )
        try:
            return SearchResponse.model_validate(response.json()).result
        except (ValueError, ValidationError) as e:
            raise IndexServiceError(f"Invalid search response: {e}") from e

    async def aclose(self):
        if self._owns_fetcher:
            await self.fetcher.aclose()
