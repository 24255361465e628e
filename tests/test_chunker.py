"""Tests for paragraph-aware chunking."""
import pytest

from secondbrain.rag.chunker import TextChunker, chunk_text, split_paragraphs


def paragraph(letter: str, length: int) -> str:
    return letter * length


def test_indices_are_contiguous_from_zero(notes_text):
    chunks = chunk_text(notes_text, max_chars=200, overlap_chars=40)

    assert chunks
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))


def test_every_chunk_has_trimmed_content(notes_text):
    text = "\n\n   \n\n" + notes_text + "\n\n\n   "
    chunks = chunk_text(text, max_chars=150, overlap_chars=30)

    for chunk in chunks:
        assert chunk.content.strip()
        assert chunk.content == chunk.content.strip()


def test_two_paragraphs_fitting_together_form_one_chunk():
    first = paragraph("a", 500)
    second = paragraph("b", 600)

    chunks = chunk_text(first + "\n\n" + second, max_chars=1200, overlap_chars=200)

    assert len(chunks) == 1
    assert chunks[0].content == first + "\n\n" + second


def test_oversized_paragraph_is_hard_split_with_overlap():
    text = "abcdefghij" * 300  # 3000 chars, no whitespace

    chunks = chunk_text(text, max_chars=1200, overlap_chars=200)

    assert len(chunks) == 3
    assert all(len(c.content) <= 1200 for c in chunks)
    assert chunks[0].content == text[:1200]
    assert chunks[1].content == text[1000:2200]
    assert chunks[2].content == text[2000:]
    for previous, current in zip(chunks, chunks[1:]):
        assert current.content[:200] == previous.content[-200:]


def test_zero_overlap_duplicates_nothing():
    text = "abcdefghij" * 250

    chunks = chunk_text(text, max_chars=1000, overlap_chars=0)

    assert "".join(c.content for c in chunks) == text


def test_packed_chunks_receive_tail_of_previous_chunk():
    text = "\n\n".join([paragraph("a", 800), paragraph("b", 800), paragraph("c", 800)])

    chunks = chunk_text(text, max_chars=1200, overlap_chars=200)

    assert len(chunks) == 3
    assert chunks[0].content == paragraph("a", 800)
    assert chunks[1].content == paragraph("a", 200) + "\n" + paragraph("b", 800)
    assert chunks[2].content == paragraph("b", 200) + "\n" + paragraph("c", 800)


def test_hard_split_after_packed_buffer():
    text = paragraph("x", 100) + "\n\n" + paragraph("y", 2500)

    chunks = chunk_text(text, max_chars=1200, overlap_chars=200)

    assert len(chunks) == 4
    assert chunks[0].content == paragraph("x", 100)
    # first slice of the big paragraph opens a new boundary
    assert chunks[1].content == paragraph("x", 100) + "\n" + paragraph("y", 1200)
    # later slices already overlap their predecessor
    assert chunks[2].content == paragraph("y", 1200)
    assert chunks[3].content == paragraph("y", 500)


def test_whitespace_slice_does_not_hide_a_boundary():
    text = paragraph("a", 1000) + " " * 1500 + paragraph("b", 500)

    chunks = chunk_text(text, max_chars=1200, overlap_chars=200)

    assert len(chunks) == 2
    assert chunks[0].content == paragraph("a", 1000)
    assert chunks[1].content == paragraph("a", 200) + "\n" + paragraph("b", 500)
    assert not chunks[1].continues_previous


def test_blank_shared_window_gets_boundary_overlap():
    text = paragraph("a", 1000) + " " * 300 + paragraph("b", 1000)

    chunks = chunk_text(text, max_chars=1200, overlap_chars=200)

    assert len(chunks) == 3
    assert chunks[1].content == paragraph("a", 200) + "\n" + paragraph("b", 900)
    assert chunks[2].continues_previous
    assert chunks[2].content == paragraph("b", 300)
    assert chunks[2].content[:200] == chunks[1].content[-200:]


def test_split_paragraphs_needs_a_blank_line():
    assert split_paragraphs("line one\nline two") == ["line one\nline two"]
    assert split_paragraphs("one\n\n\n\ntwo\n\n  \n\nthree") == ["one", "two", "three"]


def test_paragraph_boundaries_drive_packing():
    chunks = chunk_text("one\n\n\n\ntwo", max_chars=5, overlap_chars=0)

    assert [c.content for c in chunks] == ["one", "two"]


@pytest.mark.parametrize("text", ["", "   ", "\n\n\n", None])
def test_empty_text_yields_no_chunks(text):
    assert chunk_text(text, max_chars=100, overlap_chars=10) == []


@pytest.mark.parametrize(
    "max_chars, overlap_chars",
    [(0, 0), (-5, 0), (100, -1), (100, 100), (100, 150)],
)
def test_invalid_parameters_are_rejected(max_chars, overlap_chars):
    with pytest.raises(ValueError):
        TextChunker(max_chars=max_chars, overlap_chars=overlap_chars)


def test_defaults_come_from_config():
    chunker = TextChunker()

    assert chunker.max_chars == 1200
    assert chunker.overlap_chars == 200


def test_chunking_is_deterministic(notes_text):
    chunker = TextChunker(max_chars=180, overlap_chars=30)

    assert chunker.chunk_text(notes_text) == chunker.chunk_text(notes_text)


def test_chunk_stats():
    chunker = TextChunker(max_chars=1200, overlap_chars=200)
    chunks = chunker.chunk_text("abcdefghij" * 300)

    stats = chunker.get_chunk_stats(chunks)

    assert stats["chunk_count"] == 3
    assert stats["max_chunk_size"] == 1200
    assert stats["min_chunk_size"] == 1000
    assert chunker.get_chunk_stats([])["chunk_count"] == 0
    assert chunker.get_chunk_stats([]).keys() == stats.keys()
    assert stats["continuation_slices"] == 2
