"""
Typed request/response records for the external embedding and vector-store services.
Raw JSON is validated into these models at the HTTP boundary.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, model_validator


class VectorParams(BaseModel):
    size: int = Field(..., gt=0)
    distance: str = "Cosine"


class CreateCollectionRequest(BaseModel):
    vectors: VectorParams


class WirePoint(BaseModel):
    id: str # UUID string accepted by the store
    vector: List[float]
    payload: Dict[str, Any]


class UpsertRequest(BaseModel):
    points: List[WirePoint]


class SearchRequest(BaseModel):
    vector: List[float]
    limit: int = Field(8, gt=0)
    with_payload: bool = True
    score_threshold: Optional[float] = None


class SearchHit(BaseModel):
    id: Any
    score: float
    payload: Dict[str, Any] = {}


class SearchResponse(BaseModel):
    result: List[SearchHit] = []


class EmbeddingResponse(BaseModel):
    """
    Accepts both `{"embedding": [...]}` (Ollama) and
    `{"data": [{"embedding": [...]}]}` (OpenAI-compatible) bodies.
    """
    embedding: List[float]

    @model_validator(mode="before")
    @classmethod
    def _unwrap_data(cls, data: Any) -> Any:
        if isinstance(data, dict) and "embedding" not in data:
            items = data.get("data")
            if isinstance(items, list) and items and isinstance(items[0], dict):
                return {"embedding": items[0].get("embedding")}
        return data
