import math
import re
from typing import List

HEADING_RE = re.compile(r"^\s*#{1,6}\s+")
SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+|\n+")
LINE_SPLIT_RE = re.compile(r"\r?\n")
WHITESPACE_RE = re.compile(r"\s+")
UNSAFE_FILENAME_RE = re.compile(r'[\\/:*?"<>|]')


def is_heading(line: str) -> bool:
    return bool(HEADING_RE.match(line))


def collapse_whitespace(text: str) -> str:
    return WHITESPACE_RE.sub(" ", text).strip()


def normalize(text: str) -> str:
    """
    Collapses whitespace inside each line and drops blank lines.
    Markdown heading lines are kept verbatim apart from trailing whitespace.
    Idempotent.
    """
    if not text:
        return ""
    out = []
    for line in LINE_SPLIT_RE.split(text):
        if is_heading(line):
            out.append(line.rstrip())
        else:
            collapsed = collapse_whitespace(line)
            if collapsed:
                out.append(collapsed)
    return "\n".join(out)


def sanitize_file_name(name: str) -> str:
    return UNSAFE_FILENAME_RE.sub("_", name)


def estimate_tokens(text: str) -> int:
    """Rough estimate, ~4 characters per token. No real tokenizer is involved."""
    return math.ceil(len(text) / 4)


def split_into_paragraphs(text: str) -> List[str]:
    """Heading lines are paragraphs of their own; other runs of lines are joined by spaces."""
    paragraphs: List[str] = []
    buffer: List[str] = []

    def flush():
        if buffer:
            paragraphs.append(" ".join(buffer).strip())
            buffer.clear()

    for line in LINE_SPLIT_RE.split(text):
        if is_heading(line):
            flush()
            paragraphs.append(line.strip())
        elif not line.strip():
            flush()
        else:
            buffer.append(line.strip())
    flush()
    return [p for p in paragraphs if p]


def split_into_sentences(text: str) -> List[str]:
    parts = SENTENCE_SPLIT_RE.split(text.replace("\r", ""))
    return [p.strip() for p in parts if p and p.strip()]


def to_sentences(text: str) -> List[str]:
    """Normalizes text and flattens it into sentences, headings kept whole."""
    sentences: List[str] = []
    for paragraph in split_into_paragraphs(normalize(text)):
        if is_heading(paragraph):
            sentences.append(paragraph)
        else:
            sentences.extend(split_into_sentences(paragraph))
    return sentences


def chunk_text(text: str, target_tokens: int = 800, overlap_tokens: int = 120) -> List[str]:
    """
    Greedily packs sentences into chunks of at most `target_tokens` estimated tokens.
    The first sentence of a chunk is always taken, even when it alone exceeds the target.

    Consecutive chunks overlap by trailing sentences of the previous chunk worth
    roughly `overlap_tokens`. The overlap never reaches back to the previous
    chunk's first sentence, so every iteration advances by at least one sentence.
    """
    sentences = to_sentences(text)
    chunks: List[str] = []
    start = 0
    while start < len(sentences):
        tokens = 0
        end = start
        while end < len(sentences):
            cost = estimate_tokens(sentences[end])
            if end > start and tokens + cost > target_tokens:
                break
            tokens += cost
            end += 1

        chunk = " ".join(sentences[start:end]).strip()
        if chunk:
            chunks.append(chunk)

        if end >= len(sentences):
            break

        next_start = end
        carried = 0
        while next_start - 1 > start and carried < overlap_tokens:
            next_start -= 1
            carried += estimate_tokens(sentences[next_start])
        start = next_start
    return chunks
