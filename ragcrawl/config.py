from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Every component takes explicit arguments and only falls back to these defaults.
    """
    # App
    APP_NAME: str = "ragcrawl"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Logging
    LOG_PATH: str = "" # Empty means console only

    # Export
    EXPORT_DIR: str = "exports" # Default root for per-job JSONL exports

    # Crawler
    CRAWLER_USER_AGENT: str = "Mozilla/5.0 (compatible; RagCrawlBot/1.0)"
    CRAWLER_REQUEST_TIMEOUT: float = 25.0
    CRAWLER_MAX_RETRIES: int = 3
    CRAWLER_CONCURRENCY: int = 4
    CRAWLER_DELAY_MS: int = 500
    CRAWLER_MAX_PAGES: int = 500
    CRAWLER_MAX_DEPTH: int = 3
    CRAWLER_RESPECT_ROBOTS: bool = True
    CRAWLER_FOLLOW_SITEMAPS: bool = True
    CRAWLER_MIN_CONTENT_CHARS: int = 30 # Shorter bodies are treated as noise
    CRAWLER_MAX_LINKS_PER_PAGE: int = 200

    # Chunking (tokens are estimated as ceil(chars / 4))
    CHUNK_TARGET_TOKENS: int = 800
    CHUNK_OVERLAP_TOKENS: int = 120

    # Embedding provider: "ollama" or "openai"
    EMBEDDING_PROVIDER: str = "ollama"
    OLLAMA_URL: str = "http://localhost:11434"
    OLLAMA_EMBED_MODEL: str = "nomic-embed-text"
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_API_KEY: str = ""
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIM: int = 384
    EMBEDDING_TIMEOUT: float = 60.0

    # Vector Store (Qdrant REST API)
    QDRANT_URL: str = "http://localhost:6333"
    QDRANT_API_KEY: str = ""
    RAG_COLLECTION_PREFIX: str = "job_"
    RAG_DISTANCE: str = "Cosine"
    RAG_UPSERT_BATCH_SIZE: int = 64
    RAG_SEARCH_LIMIT: int = 8

    # GitHub repository source
    GITHUB_API_BASE: str = "https://api.github.com"
    GITHUB_TOKEN: str = ""
    GITHUB_MAX_FILE_BYTES: int = 1048576 # 1 MB
    GITHUB_REQUEST_TIMEOUT: float = 20.0

    class Config:
        case_sensitive = True

# Instantiate settings
settings = Settings()
