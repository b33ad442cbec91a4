import logging
import os
from typing import List, Optional, Union

from ragcrawl.config import settings
from ragcrawl.core.crawler import WebCrawler, page_to_file_entry
from ragcrawl.core.embedder import Embedder
from ragcrawl.core.indexer import IndexWriter
from ragcrawl.core.repo_source import GitHubRepoSource
from ragcrawl.exceptions import PipelineError, TargetValidationError
from ragcrawl.models.crawl import CrawlTarget
from ragcrawl.models.document import FileEntry
from ragcrawl.models.job import IngestionResult, IngestionStatus
from ragcrawl.models.source import RepoSource
from ragcrawl.services.vector_store import QdrantVectorStore
from ragcrawl.utils.reporting import CancellationToken, JobReporter, LoggingReporter, ProgressRange

logger = logging.getLogger(__name__)

CRAWL_RANGE = (0, 70)
INDEX_RANGE = (70, 99)


def default_export_path(job_id: str) -> str:
    return os.path.join(settings.EXPORT_DIR, job_id, "rag_export.jsonl")


class IngestionPipeline:
    """
    Runs one job end to end: collect file entries from a website or a repository,
    then chunk, embed, export and index them.
    """
    def __init__(
        self,
        crawler: Optional[WebCrawler] = None,
        repo_source: Optional[GitHubRepoSource] = None,
        index_writer: Optional[IndexWriter] = None,
    ):
        self._owned = []
        if crawler is None:
            crawler = WebCrawler()
            self._owned.append(crawler)
        if repo_source is None:
            repo_source = GitHubRepoSource()
            self._owned.append(repo_source)
        if index_writer is None:
            embedder = Embedder(expected_dim=settings.EMBEDDING_DIM)
            vector_store = QdrantVectorStore()
            self._owned.extend([embedder, vector_store])
            index_writer = IndexWriter(embedder, vector_store)
        self.crawler = crawler
        self.repo_source = repo_source
        self.index_writer = index_writer

    async def collect(
        self,
        job_id: str,
        source: Union[CrawlTarget, RepoSource],
        reporter: JobReporter,
        cancel_token: CancellationToken,
    ) -> List[FileEntry]:
        progress = ProgressRange(reporter, *CRAWL_RANGE)
        if isinstance(source, CrawlTarget):
            result = await self.crawler.crawl(source, job_id, reporter, cancel_token, progress)
            return [page_to_file_entry(page) for page in result.pages]
        if isinstance(source, RepoSource):
            return await self.repo_source.collect(source, job_id, reporter, cancel_token, progress)
        raise TargetValidationError(f"Unsupported source type: {type(source).__name__}")

    async def run(
        self,
        job_id: str,
        source: Union[CrawlTarget, RepoSource],
        reporter: Optional[JobReporter] = None,
        cancel_token: Optional[CancellationToken] = None,
        export_path: Optional[str] = None,
        readable_dir: Optional[str] = None,
    ) -> IngestionResult:
        reporter = reporter or LoggingReporter(job_id)
        cancel_token = cancel_token or CancellationToken()
        export_path = export_path or default_export_path(job_id)
        collection = self.index_writer.collection_for(job_id)
        logger.info(f"Starting pipeline for Job {job_id}")

        try:
            files = await self.collect(job_id, source, reporter, cancel_token)
        except TargetValidationError as e:
            logger.error(f"Job {job_id} FAILED: {e}")
            return IngestionResult(job_id=job_id, status=IngestionStatus.FAILED, error=str(e))

        reporter.log("info", f"Collected {len(files)} files")
        if cancel_token.cancelled:
            logger.info(f"Job {job_id} cancelled after collecting {len(files)} files.")
            return IngestionResult(job_id=job_id, status=IngestionStatus.CANCELLED, files=files)

        if not files:
            logger.error(f"Job {job_id} FAILED: No documents were fetched.")
            return IngestionResult(
                job_id=job_id, status=IngestionStatus.FAILED, error="No documents were fetched."
            )

        try:
            indexed = await self.index_writer.write(
                job_id,
                files,
                export_path,
                reporter=reporter,
                progress=ProgressRange(reporter, *INDEX_RANGE),
                readable_dir=readable_dir,
                cancel_token=cancel_token,
            )
        except PipelineError as e:
            reporter.log("error", f"Indexing failed: {e}")
            logger.error(f"Job {job_id} FAILED: {e}")
            return IngestionResult(
                job_id=job_id,
                status=IngestionStatus.FAILED,
                files=files,
                collection=collection,
                export_path=export_path,
                error=str(e),
            )

        if cancel_token.cancelled:
            status = IngestionStatus.CANCELLED
        else:
            status = IngestionStatus.COMPLETED
            reporter.report(100)
        logger.info(f"Job {job_id} {status.value.upper()}: {indexed} chunks indexed from {len(files)} files.")
        return IngestionResult(
            job_id=job_id,
            status=status,
            files=files,
            chunks_indexed=indexed,
            collection=collection,
            export_path=export_path,
        )

    async def aclose(self):
        for component in self._owned:
            await component.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
