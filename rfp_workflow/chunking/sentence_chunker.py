"""Sentence-aware text chunking for the knowledge base."""

import re

from rfp_workflow.config import get_settings
from rfp_workflow.models.documents import TextChunk
from rfp_workflow.utils.logging import LoggerMixin


SENTENCE_END = re.compile(r"[.!?](?= )|。")


class SentenceChunker(LoggerMixin):
    """Packs whole sentences into chunks of at most ``max_chunk_size`` characters.

    Each chunk after the first is prefixed with the trailing words of the
    previous chunk (``overlap // 5`` words). A sentence longer than the limit
    is cut into fixed windows stepping ``max_chunk_size - overlap``.
    Positions refer to the whitespace-normalised text and exclude the prefix.
    """

    def __init__(self, max_chunk_size: int | None = None, overlap: int | None = None):
        settings = get_settings()
        self.max_chunk_size = max_chunk_size or settings.chunk_size
        self.overlap = settings.chunk_overlap if overlap is None else overlap
        if self.overlap >= self.max_chunk_size:
            raise ValueError("overlap must be smaller than max_chunk_size")

    @staticmethod
    def normalize(text: str) -> str:
        return re.sub(r"\s+", " ", text).strip()

    def split_sentences(self, text: str) -> list[tuple[int, int]]:
        """Return (start, end) spans of the sentences in normalised ``text``."""
        spans = []
        start = 0
        for match in SENTENCE_END.finditer(text):
            end = match.end()
            if end > start:
                spans.append((start, end))
            start = end
            while start < len(text) and text[start] == " ":
                start += 1
        if start < len(text):
            spans.append((start, len(text)))
        return spans

    def _force_windows(self, start: int, end: int) -> list[tuple[int, int]]:
        step = self.max_chunk_size - self.overlap
        windows = []
        for pos in range(start, end, step):
            window_end = min(pos + self.max_chunk_size, end)
            windows.append((pos, window_end))
            if window_end == end:
                break
        return windows

    def split(self, text: str) -> list[TextChunk]:
        """Split ``text`` into overlapping chunks."""
        normalized = self.normalize(text)
        if not normalized:
            return []

        # (start, end, forced)
        pieces: list[tuple[int, int, bool]] = []
        current: tuple[int, int] | None = None

        for s_start, s_end in self.split_sentences(normalized):
            if s_end - s_start > self.max_chunk_size:
                if current:
                    pieces.append((*current, False))
                    current = None
                pieces.extend((w_start, w_end, True) for w_start, w_end in self._force_windows(s_start, s_end))
                continue

            if current is None:
                current = (s_start, s_end)
            elif s_end - current[0] <= self.max_chunk_size:
                current = (current[0], s_end)
            else:
                pieces.append((*current, False))
                current = (s_start, s_end)

        if current:
            pieces.append((*current, False))

        overlap_words = self.overlap // 5
        chunks = []
        for index, (start, end, forced) in enumerate(pieces):
            body = normalized[start:end]
            if index > 0 and not forced and overlap_words > 0:
                prev_start, prev_end, _ = pieces[index - 1]
                prev_words = normalized[prev_start:prev_end].split()
                tail = prev_words[-min(overlap_words, len(prev_words)):]
                body = " ".join(tail) + " " + body
            chunks.append(
                TextChunk(
                    content=body,
                    chunk_index=index,
                    total_chunks=len(pieces),
                    start_position=start,
                    end_position=end,
                )
            )

        self.log_debug("Text chunked", chunks=len(chunks), chars=len(normalized))
        return chunks
