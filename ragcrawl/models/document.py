from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

class PageRecord(BaseModel):
    """
    Represents a single fetched page after content extraction.
    """
    url: str
    title: str = "Untitled"
    headings: List[str] = []
    text: str = "" # Cleaned body text
    fetched_at: datetime = Field(default_factory=datetime.utcnow)
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

class FileEntry(BaseModel):
    """
    An ordered unit of source content handed to the caller for persistence
    and to the indexer for chunking. Crawled pages and repository files both end up here.
    """
    name: str
    url: str
    type: str = "doc" # "doc" or "code"
    size: int = 0 # UTF-8 byte length of text
    text: str = ""
    title: Optional[str] = None
    headings: List[str] = []

class Chunk(BaseModel):
    """
    A bounded span of normalized text. Ordinals are dense and zero-based per source.
    """
    ordinal: int = Field(..., ge=0)
    text: str
    source_name: str
    source_url: str

    @property
    def chunk_id(self) -> str:
        return f"{self.source_url}:{self.ordinal}"

class IndexPayload(BaseModel):
    chunk_id: str
    url: str
    name: str
    ordinal: int
    text: str

class IndexPoint(BaseModel):
    """
    One embedded chunk ready for upsert. `id` is the logical "{sourceId}:{ordinal}" id.
    """
    id: str
    vector: List[float]
    payload: IndexPayload

    @classmethod
    def from_chunk(cls, chunk: Chunk, vector: List[float]) -> "IndexPoint":
        return cls(
            id=chunk.chunk_id,
            vector=vector,
            payload=IndexPayload(
                chunk_id=chunk.chunk_id,
                url=chunk.source_url,
                name=chunk.source_name,
                ordinal=chunk.ordinal,
                text=chunk.text,
            ),
        )

class ExportRecord(BaseModel):
    """One line of the JSONL export."""
    id: str
    text: str
    url: str
    name: str
    ord: int
