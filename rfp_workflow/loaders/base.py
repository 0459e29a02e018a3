"""Base document loader and shared extraction helpers."""

import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, TypeVar

from rfp_workflow.config import get_settings
from rfp_workflow.models.documents import ExtractionQuality, ExtractionResult
from rfp_workflow.utils.logging import LoggerMixin


T = TypeVar("T")

# Minimum number of word characters for text to count as usable
MIN_MEANINGFUL_CHARS = 100


def has_extractable_text(text: str) -> bool:
    """Check whether ``text`` carries enough meaningful content.

    Whitespace is collapsed and every non-word character dropped; ``\\w`` is
    Unicode-aware, so Hangul and other scripts count as meaningful.
    """
    if not text:
        return False
    cleaned = re.sub(r"\s+", " ", text)
    cleaned = re.sub(r"\W", "", cleaned).strip()
    return len(cleaned) >= MIN_MEANINGFUL_CHARS


def clean_file_name(file_name: str) -> str:
    """Turn ``final_rfp-v2.pdf`` into ``final rfp v2``."""
    stem = re.sub(r"\.[A-Za-z0-9]{1,5}$", "", file_name)
    return re.sub(r"[_\-]+", " ", stem).strip()


class BaseDocumentLoader(ABC, LoggerMixin):
    """Abstract base class for document loaders."""

    supported_mime_types: tuple[str, ...] = ()

    def __init__(self, file_path: Path, mime_type: str | None = None):
        """Initialize the loader with a file path.

        Args:
            file_path: Path to the document file.
            mime_type: Declared MIME type, if known.
        """
        self.file_path = Path(file_path)
        self.mime_type = mime_type or ""
        self._settings = get_settings()
        self._validate_file()

    def _validate_file(self) -> None:
        """Validate that the file exists and is readable."""
        if not self.file_path.exists():
            raise FileNotFoundError(f"File not found: {self.file_path}")
        if not self.file_path.is_file():
            raise ValueError(f"Path is not a file: {self.file_path}")

    @abstractmethod
    def load(self) -> ExtractionResult:
        """Extract the document's text.

        Returns:
            ExtractionResult with text, method and quality.
        """

    def extract_metadata(self) -> dict[str, Any]:
        """Extract basic metadata; subclasses enrich it where the format allows."""
        return {
            "title": clean_file_name(self.file_path.name),
            "author": None,
            "page_count": None,
            "format": self.mime_type or None,
            "file_size": self.file_path.stat().st_size,
        }

    def _result(
        self,
        text: str,
        method: str,
        page_count: int = 0,
        warnings: list[str] | None = None,
    ) -> ExtractionResult:
        """Wrap text in an ExtractionResult, grading its quality."""
        quality = ExtractionQuality.GOOD if has_extractable_text(text) else ExtractionQuality.POOR
        return ExtractionResult.from_text(
            text,
            method,
            page_count=page_count,
            quality=quality,
            warnings=warnings or [],
            metadata=self.extract_metadata(),
        )

    def _run_with_timeout(self, func: Callable[[], T], timeout: float | None = None) -> T:
        """Run ``func`` in a worker thread, raising TimeoutError past ``timeout`` seconds.

        A timed-out worker is abandoned, not killed; the caller moves on.
        """
        timeout = timeout or self._settings.extraction_timeout_seconds
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(func)
            return future.result(timeout=timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
