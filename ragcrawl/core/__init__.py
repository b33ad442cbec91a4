"""
Core pipeline components
"""
from .fetcher import RetryingFetcher
from .robots import RobotsCache
from .sitemap import SitemapDiscoverer
from .frontier import Frontier
from .crawler import WebCrawler
from .extractor import ContentExtractor
from .processor import DocumentProcessor
from .embedder import Embedder
from .indexer import IndexWriter
from .repo_source import GitHubRepoSource
from .retriever import Retriever
from .pipeline import IngestionPipeline

__all__ = [
    "RetryingFetcher",
    "RobotsCache",
    "SitemapDiscoverer",
    "Frontier",
    "WebCrawler",
    "ContentExtractor",
    "DocumentProcessor",
    "Embedder",
    "IndexWriter",
    "GitHubRepoSource",
    "Retriever",
    "IngestionPipeline",
]
