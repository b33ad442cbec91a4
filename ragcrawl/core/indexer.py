import hashlib
import json
import logging
import os
from typing import IO, List, Optional, Sequence, Union

from ragcrawl.config import settings
from ragcrawl.core.embedder import BaseEmbedder, Embedder
from ragcrawl.core.processor import DocumentProcessor
from ragcrawl.exceptions import StorageError
from ragcrawl.models.document import Chunk, ExportRecord, FileEntry, IndexPoint
from ragcrawl.services.vector_store import QdrantVectorStore, collection_name
from ragcrawl.utils.reporting import CancellationToken, JobReporter, LoggingReporter, ProgressRange
from ragcrawl.utils.text_utils import sanitize_file_name

logger = logging.getLogger(__name__)


def readable_file_name(chunk: Chunk) -> str:
    """`{name}_{url digest}_{ordinal}.md`; the digest keeps same-named files from different sources apart."""
    digest = hashlib.sha1(chunk.source_url.encode("utf-8")).hexdigest()[:8]
    return f"{sanitize_file_name(chunk.source_name)}_{digest}_{chunk.ordinal:04d}.md"


class IndexWriter:
    """
    Embeds and indexes the chunks of one job's file entries.

    For every chunk: one embedding request, one JSONL export line, and an optional
    readable markdown mirror. Points are upserted in batches across the whole job.
    Embedding or index failures propagate and abort the job; a failed export write
    is logged and skipped.
    """
    def __init__(
        self,
        embedder: Union[Embedder, BaseEmbedder],
        vector_store: QdrantVectorStore,
        processor: Optional[DocumentProcessor] = None,
        dimension: Optional[int] = None,
        batch_size: Optional[int] = None,
        collection_prefix: Optional[str] = None,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.processor = processor or DocumentProcessor()
        self.dimension = dimension or settings.EMBEDDING_DIM
        self.batch_size = batch_size or settings.RAG_UPSERT_BATCH_SIZE
        self.collection_prefix = collection_prefix

    def collection_for(self, job_id: str) -> str:
        return collection_name(job_id, self.collection_prefix)

    def _open_export(self, export_path: str) -> Optional[IO[str]]:
        try:
            directory = os.path.dirname(export_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            return open(export_path, "w", encoding="utf-8")
        except OSError as e:
            logger.error(f"Could not open export file {export_path}: {e}")
            return None

    def _write_export_line(self, handle: Optional[IO[str]], chunk: Chunk):
        if handle is None:
            return
        record = ExportRecord(
            id=chunk.chunk_id,
            text=chunk.text,
            url=chunk.source_url,
            name=chunk.source_name,
            ord=chunk.ordinal,
        )
        try:
            handle.write(json.dumps(record.model_dump(), ensure_ascii=False) + "\n")
        except OSError as e:
            raise StorageError(f"Failed to write export line for {chunk.chunk_id}: {e}") from e

    def _write_readable(self, readable_dir: str, chunk: Chunk):
        path = os.path.join(readable_dir, readable_file_name(chunk))
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(chunk.text)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

    async def _flush(self, collection: str, pending: List[IndexPoint]) -> int:
        if not pending:
            return 0
        written = await self.vector_store.upsert_points(collection, pending)
        pending.clear()
        return written

    async def write(
        self,
        job_id: str,
        entries: Sequence[FileEntry],
        export_path: str,
        reporter: Optional[JobReporter] = None,
        progress: Optional[ProgressRange] = None,
        readable_dir: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> int:
        """Returns the number of chunks upserted. Stops early, after flushing, when cancelled."""
        reporter = reporter or LoggingReporter(job_id)
        progress = progress or ProgressRange(reporter, 70, 99)
        cancel_token = cancel_token or CancellationToken()

        collection = self.collection_for(job_id)
        reporter.log("info", f"Starting indexing into {collection}")
        await self.vector_store.ensure_collection(collection, self.dimension)

        if readable_dir:
            os.makedirs(readable_dir, exist_ok=True)

        pending: List[IndexPoint] = []
        indexed = 0
        chunk_count = 0
        handle = self._open_export(export_path)
        try:
            for files_done, entry in enumerate(entries, start=1):
                if cancel_token.cancelled:
                    reporter.log("info", "Cancellation requested. Stopping indexing.")
                    break

                chunks = self.processor.process_entry(entry)
                for chunk in chunks:
                    vector = await self.embedder.embed_query(chunk.text)
                    pending.append(IndexPoint.from_chunk(chunk, vector))
                    chunk_count += 1

                    try:
                        self._write_export_line(handle, chunk)
                        if readable_dir:
                            self._write_readable(readable_dir, chunk)
                    except StorageError as e:
                        reporter.log("error", str(e))

                    if len(pending) >= self.batch_size:
                        indexed += await self._flush(collection, pending)

                reporter.log("info", f"Processed file {entry.name}, chunks={len(chunks)}")
                progress.update(files_done, len(entries))

            indexed += await self._flush(collection, pending)
        finally:
            if handle is not None:
                handle.close()

        reporter.log("info", f"Total chunks: {chunk_count}, indexed: {indexed}")
        if handle is not None:
            reporter.log("info", f"Exported JSONL at {export_path}")
        return indexed
