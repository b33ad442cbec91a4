import logging
from typing import Iterable, Iterator, List, Optional

from ragcrawl.config import settings
from ragcrawl.models.document import Chunk, FileEntry
from ragcrawl.utils.text_utils import chunk_text

logger = logging.getLogger(__name__)


class DocumentProcessor:
    """
    Splits file entries into chunks. Ordinals restart at zero for every entry,
    so each source URL owns a dense, zero-based sequence.
    """
    def __init__(self, target_tokens: Optional[int] = None, overlap_tokens: Optional[int] = None):
        self.target_tokens = target_tokens or settings.CHUNK_TARGET_TOKENS
        self.overlap_tokens = overlap_tokens if overlap_tokens is not None else settings.CHUNK_OVERLAP_TOKENS

    def process_entry(self, entry: FileEntry) -> List[Chunk]:
        if not entry.text or not entry.text.strip():
            logger.warning(f"Entry {entry.url} has no text to process.")
            return []

        texts = chunk_text(entry.text, self.target_tokens, self.overlap_tokens)
        chunks = [
            Chunk(ordinal=i, text=text, source_name=entry.name, source_url=entry.url)
            for i, text in enumerate(texts)
        ]
        logger.debug(f"Processed {entry.url}: generated {len(chunks)} chunks.")
        return chunks

    def iter_chunks(self, entries: Iterable[FileEntry]) -> Iterator[Chunk]:
        for entry in entries:
            yield from self.process_entry(entry)
