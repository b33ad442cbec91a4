from enum import Enum
from typing import List, Optional
from pydantic import BaseModel

from ragcrawl.models.document import FileEntry

class IngestionStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

class IngestionResult(BaseModel):
    """
    Outcome of one pipeline run, returned to the job collaborator.
    Files already emitted stay available even when indexing failed.
    """
    job_id: str
    status: IngestionStatus
    files: List[FileEntry] = []
    chunks_indexed: int = 0
    collection: Optional[str] = None
    export_path: Optional[str] = None
    error: Optional[str] = None
