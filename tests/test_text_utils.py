import pytest

from ragcrawl.utils.text_utils import (
    chunk_text,
    estimate_tokens,
    normalize,
    sanitize_file_name,
    split_into_paragraphs,
    to_sentences,
)


def test_estimate_tokens_is_ceil_of_quarter_length():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_normalize_collapses_lines_and_keeps_headings():
    text = "## Setup   Guide  \n\n  some    words\there \n\n\n# Title\nmore"
    assert normalize(text) == "## Setup   Guide\nsome words here\n# Title\nmore"


@pytest.mark.parametrize("text", [
    "  a  b \n\n c ",
    "# Heading  \n\ttext\r\nline two",
    "",
    "### Deep   heading\n\n\nx",
])
def test_normalize_is_idempotent(text):
    assert normalize(normalize(text)) == normalize(text)


def test_paragraphs_split_on_blank_lines_and_headings():
    text = "# Title\nline one\nline two\n\nnext para"
    assert split_into_paragraphs(text) == ["# Title", "line one line two", "next para"]


def test_sentences_keep_headings_whole():
    assert to_sentences("# Title\n\nOne. Two! Three?") == ["# Title", "One.", "Two!", "Three?"]


def test_single_chunk_with_large_budget():
    chunks = chunk_text("# Title\n\nOne. Two. Three.", target_tokens=10000, overlap_tokens=120)
    assert chunks == ["# Title One. Two. Three."]


def test_empty_text_yields_no_chunks():
    assert chunk_text("") == []
    assert chunk_text(" \n\n ") == []


def test_oversized_sentence_still_forms_a_chunk():
    sentence = "x" * 400
    assert chunk_text(sentence, target_tokens=10, overlap_tokens=5) == [sentence]


def _numbered(count):
    return " ".join(f"Sentence number {i} is here." for i in range(count))


def test_chunks_overlap_by_trailing_sentences():
    # Each sentence estimates to 7 tokens: four fit in 30, two cover the 10-token overlap
    chunks = chunk_text(_numbered(10), target_tokens=30, overlap_tokens=10)
    assert chunks[0].startswith("Sentence number 0 ")
    assert chunks[0].endswith("Sentence number 3 is here.")
    assert chunks[1].startswith("Sentence number 2 ")
    assert chunks[-1].endswith("Sentence number 9 is here.")


def test_zero_overlap_means_disjoint_chunks():
    chunks = chunk_text(_numbered(8), target_tokens=30, overlap_tokens=0)
    assert len(chunks) == 2
    assert chunks[1].startswith("Sentence number 4 ")


def test_chunking_terminates_and_always_advances():
    # Overlap larger than the target would never advance without the progress guarantee
    chunks = chunk_text(_numbered(50), target_tokens=14, overlap_tokens=1000)
    assert 0 < len(chunks) <= 50
    assert chunks[-1].endswith("Sentence number 49 is here.")


def test_sanitize_file_name():
    assert sanitize_file_name('docs/a:b*c?"d"<e>|f\\g') == "docs_a_b_c__d__e__f_g"
