from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from ragcrawl.config import settings


class RepoScope(str, Enum):
    FULL = "full"
    DOCS = "docs"


class RepoSource(BaseModel):
    """
    Repository ingestion descriptor: one or more GitHub repository URLs.
    """
    model_config = ConfigDict(frozen=True)

    repo_urls: List[str] = Field(..., min_length=1)
    scope: RepoScope = RepoScope.FULL
    auth_token: Optional[str] = None
    max_file_bytes: int = Field(default_factory=lambda: settings.GITHUB_MAX_FILE_BYTES, gt=0)
    max_files: int = Field(default_factory=lambda: settings.CRAWLER_MAX_PAGES, gt=0)


# --- GitHub REST API payloads ---

class RepoInfo(BaseModel):
    full_name: Optional[str] = None
    default_branch: str = "main"
    private: bool = False


class TreeItem(BaseModel):
    path: str
    type: str
    sha: Optional[str] = None
    size: int = 0


class TreeResponse(BaseModel):
    tree: List[TreeItem] = []
    truncated: bool = False


class ContentResponse(BaseModel):
    content: Optional[str] = None
    encoding: Optional[str] = None
