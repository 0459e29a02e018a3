"""Tests for sentence-aware chunking."""

import pytest

from rfp_workflow.chunking import SentenceChunker


class TestSentenceChunker:
    """Tests for SentenceChunker."""

    def test_sentences_packed_with_word_overlap(self):
        chunker = SentenceChunker(max_chunk_size=20, overlap=5)

        chunks = chunker.split("One two three. Four five six. Seven eight nine.")

        assert [c.content for c in chunks] == [
            "One two three.",
            "three. Four five six.",
            "six. Seven eight nine.",
        ]
        assert [c.start_position for c in chunks] == [0, 15, 30]
        assert [c.end_position for c in chunks] == [14, 29, 47]
        assert {c.total_chunks for c in chunks} == {3}
        assert [c.chunk_index for c in chunks] == [0, 1, 2]

    def test_short_text_single_chunk(self):
        chunks = SentenceChunker(max_chunk_size=1000, overlap=200).split("Short text here. Another one.")

        assert len(chunks) == 1
        assert chunks[0].content == "Short text here. Another one."

    def test_whitespace_normalised(self):
        chunks = SentenceChunker(max_chunk_size=1000, overlap=0).split("  Line one.\n\n\tLine   two.  ")
        assert chunks[0].content == "Line one. Line two."

    def test_long_sentence_forced_into_windows(self):
        chunker = SentenceChunker(max_chunk_size=20, overlap=5)

        chunks = chunker.split("x" * 50)

        assert [(c.start_position, c.end_position) for c in chunks] == [(0, 20), (15, 35), (30, 50)]
        assert all(c.content == "x" * (c.end_position - c.start_position) for c in chunks)

    def test_no_overlap(self):
        chunks = SentenceChunker(max_chunk_size=20, overlap=0).split(
            "One two three. Four five six. Seven eight nine."
        )
        assert chunks[1].content == "Four five six."

    def test_split_sentences(self):
        chunker = SentenceChunker(max_chunk_size=100, overlap=0)
        text = "First! Second? Third. Trailing"

        spans = chunker.split_sentences(text)

        assert [text[s:e] for s, e in spans] == ["First!", "Second?", "Third.", "Trailing"]

    def test_decimal_points_do_not_split(self):
        chunker = SentenceChunker(max_chunk_size=100, overlap=0)
        text = "Version 2.5 is required. Done."
        assert [text[s:e] for s, e in chunker.split_sentences(text)] == ["Version 2.5 is required.", "Done."]

    def test_empty_text(self):
        assert SentenceChunker(max_chunk_size=100, overlap=10).split("   \n ") == []

    def test_overlap_must_be_smaller(self):
        with pytest.raises(ValueError):
            SentenceChunker(max_chunk_size=100, overlap=100)

    def test_defaults_from_settings(self):
        chunker = SentenceChunker()
        assert (chunker.max_chunk_size, chunker.overlap) == (1000, 200)
