"""
Service layer components
"""
from .vector_store import QdrantVectorStore, collection_name

__all__ = ["QdrantVectorStore", "collection_name"]
