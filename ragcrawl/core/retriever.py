import logging
from typing import List, Optional, Union

from ragcrawl.core.embedder import BaseEmbedder, Embedder
from ragcrawl.models.vector import SearchHit
from ragcrawl.services.vector_store import QdrantVectorStore, collection_name

logger = logging.getLogger(__name__)


class Retriever:
    """
    Retrieves relevant chunks from a job's collection based on a query.
    """
    def __init__(
        self,
        embedder: Union[Embedder, BaseEmbedder],
        vector_store: QdrantVectorStore,
        collection_prefix: Optional[str] = None,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.collection_prefix = collection_prefix

    async def retrieve(
        self,
        job_id: str,
        query: str,
        limit: Optional[int] = None,
        score_threshold: Optional[float] = None,
    ) -> List[SearchHit]:
        """
        Embeds the query and searches the job's collection for its nearest chunks.

        Args:
            job_id: The ID of the ingestion job whose collection to query.
            query: The user's question or query string.
            limit: Maximum number of hits; defaults to RAG_SEARCH_LIMIT.
            score_threshold: Optional minimum similarity score.

        Returns:
            Hits ordered by the store, best first. Each payload carries the chunk text,
            its source url and name, and the logical `chunk_id`.
        """
        if not query or not query.strip():
            return []
        name = collection_name(job_id, self.collection_prefix)
        logger.info(f"Job {job_id}: Retrieving chunks from {name} for query: '{query}'")
        vector = await self.embedder.embed_query(query)
        hits = await self.vector_store.search(name, vector, limit=limit, score_threshold=score_threshold)
        logger.info(f"Job {job_id}: Retrieved {len(hits)} chunks.")
        return hits
