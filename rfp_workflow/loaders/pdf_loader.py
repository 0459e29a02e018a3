"""PDF text extraction with a best-effort fallback chain.

Strategies are tried in order until one yields text that passes
``has_extractable_text``:

1. PyMuPDF text layer
2. Regex scraping of the raw content streams (BT/ET text operators)
3. OCR of rendered pages with Tesseract
"""

import io
import re
import zlib
from collections.abc import Callable
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Any

import fitz  # PyMuPDF
import pytesseract
from PIL import Image

from rfp_workflow.errors import ExtractionError
from rfp_workflow.loaders.base import BaseDocumentLoader, clean_file_name, has_extractable_text
from rfp_workflow.models.documents import ExtractionQuality, ExtractionResult


# Pages with fewer characters than this are treated as having no text layer
MIN_PAGE_CHARS = 20

STREAM_PATTERN = re.compile(rb"stream\r?\n(.*?)\r?\nendstream", re.DOTALL)
TEXT_BLOCK_PATTERN = re.compile(rb"BT\b(.*?)\bET\b", re.DOTALL)
LITERAL = rb"\((?:\\.|[^\\)])*\)"
HEX = rb"<[0-9A-Fa-f\s]*>"
SHOW_TEXT_PATTERN = re.compile(
    rb"(" + LITERAL + rb"|" + HEX + rb")\s*(?:Tj|'|\")"
    rb"|\[((?:\s*(?:" + LITERAL + rb"|" + HEX + rb"|-?\d+(?:\.\d+)?))*\s*)\]\s*TJ",
    re.DOTALL,
)
ARRAY_STRING_PATTERN = re.compile(rb"(" + LITERAL + rb"|" + HEX + rb")")
PAGE_OBJECT_PATTERN = re.compile(rb"/Type\s*/Page\b")

ESCAPES = {
    b"n": b"\n",
    b"r": b"\r",
    b"t": b"\t",
    b"b": b"\b",
    b"f": b"\f",
    b"(": b"(",
    b")": b")",
    b"\\": b"\\",
}

OCR_GUIDANCE = (
    "No readable text could be extracted from this PDF. "
    "Convert it to .docx or .txt, or run it through an OCR service, and upload the result."
)


def decode_pdf_string(token: bytes) -> str:
    """Decode a PDF literal ``(...)`` or hex ``<...>`` string operand."""
    if token.startswith(b"<"):
        digits = re.sub(rb"\s", b"", token[1:-1])
        if len(digits) % 2:
            digits += b"0"
        raw = bytes.fromhex(digits.decode("ascii"))
        if raw.startswith(b"\xfe\xff"):
            return raw[2:].decode("utf-16-be", errors="ignore")
        return raw.decode("latin-1")

    body = token[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        char = body[i : i + 1]
        if char != b"\\":
            out += char
            i += 1
            continue
        nxt = body[i + 1 : i + 2]
        if nxt in ESCAPES:
            out += ESCAPES[nxt]
            i += 2
        elif nxt and nxt in b"01234567":
            octal = re.match(rb"[0-7]{1,3}", body[i + 1 : i + 4])
            out.append(int(octal.group(0), 8) & 0xFF)
            i += 1 + len(octal.group(0))
        elif nxt in (b"\n", b"\r"):
            # Line continuation
            i += 2
        else:
            i += 1
    return out.decode("latin-1")


def scrape_content_streams(data: bytes) -> str:
    """Pull text-showing operands out of raw PDF bytes.

    FlateDecode streams are inflated when possible; anything else is scanned as-is.
    """
    blocks: list[str] = []
    for match in STREAM_PATTERN.finditer(data):
        stream = match.group(1)
        try:
            stream = zlib.decompress(stream)
        except zlib.error:
            pass

        for block in TEXT_BLOCK_PATTERN.finditer(stream):
            parts: list[str] = []
            for shown in SHOW_TEXT_PATTERN.finditer(block.group(1)):
                if shown.group(1):
                    parts.append(decode_pdf_string(shown.group(1)))
                else:
                    parts.extend(
                        decode_pdf_string(token)
                        for token in ARRAY_STRING_PATTERN.findall(shown.group(2))
                    )
            line = "".join(parts).strip()
            if line:
                blocks.append(line)
    return "\n".join(blocks)


class PDFLoader(BaseDocumentLoader):
    """PDF loader that falls back from text layer to stream scraping to OCR."""

    supported_mime_types = ("application/pdf",)

    def _strategies(self) -> list[tuple[str, Callable[[], tuple[str, int]]]]:
        return [
            ("pymupdf", self._parse_text_layer),
            ("stream_scrape", self._scrape_streams),
            ("ocr", self._ocr_pages),
        ]

    def load(self) -> ExtractionResult:
        """Run the fallback chain and return the first usable extraction.

        Raises:
            ExtractionError: If no strategy produced any text at all.
        """
        self.log_info("Extracting PDF text", file=str(self.file_path))
        warnings: list[str] = []
        candidates: list[tuple[str, str, int]] = []

        for name, strategy in self._strategies():
            try:
                text, page_count = self._run_with_timeout(strategy)
            except FuturesTimeout:
                timeout = self._settings.extraction_timeout_seconds
                warnings.append(f"{name} timed out after {timeout:g}s")
                self.log_warning("Extraction strategy timed out", strategy=name)
                continue
            except Exception as e:
                warnings.append(f"{name} failed: {e}")
                self.log_warning("Extraction strategy failed", strategy=name, error=str(e))
                continue

            candidates.append((name, text, page_count))
            if has_extractable_text(text):
                self.log_info("PDF text extracted", strategy=name, chars=len(text))
                return ExtractionResult.from_text(
                    text,
                    name,
                    page_count=page_count,
                    quality=ExtractionQuality.GOOD,
                    warnings=warnings,
                    metadata=self.extract_metadata(),
                )
            warnings.append(f"{name} produced too little text ({len(text.strip())} chars)")

        usable = [c for c in candidates if c[1].strip()]
        if usable:
            name, text, page_count = max(usable, key=lambda c: len(c[1]))
            self.log_warning("Only poor-quality PDF text available", strategy=name)
            return ExtractionResult.from_text(
                text,
                name,
                page_count=page_count,
                quality=ExtractionQuality.POOR,
                warnings=warnings,
                metadata=self.extract_metadata(),
            )

        raise ExtractionError(OCR_GUIDANCE, warnings=warnings, file_name=self.file_path.name)

    def _parse_text_layer(self) -> tuple[str, int]:
        with fitz.open(self.file_path) as doc:
            parts = []
            for page_num, page in enumerate(doc, 1):
                text = page.get_text("text").strip()
                if len(text) > MIN_PAGE_CHARS:
                    parts.append(f"[Page {page_num}]\n{text}")
            return "\n\n".join(parts), doc.page_count

    def _scrape_streams(self) -> tuple[str, int]:
        data = self.file_path.read_bytes()
        return scrape_content_streams(data), len(PAGE_OBJECT_PATTERN.findall(data))

    def _ocr_pages(self) -> tuple[str, int]:
        parts = []
        with fitz.open(self.file_path) as doc:
            for page_num, page in enumerate(doc, 1):
                if page_num > self._settings.ocr_max_pages:
                    break
                pixmap = page.get_pixmap(dpi=200)
                image = Image.open(io.BytesIO(pixmap.tobytes("png")))
                text = pytesseract.image_to_string(image, lang=self._settings.ocr_language)
                if text.strip():
                    parts.append(f"[Page {page_num}]\n{text.strip()}")
            return "\n\n".join(parts), doc.page_count

    def extract_metadata(self) -> dict[str, Any]:
        """Extract PDF metadata, falling back to the cleaned file name for the title."""
        metadata = super().extract_metadata()
        metadata["format"] = "application/pdf"
        try:
            with fitz.open(self.file_path) as doc:
                info = doc.metadata or {}
                title = (info.get("title") or "").strip()
                if len(title) > 3:
                    metadata["title"] = title
                metadata["author"] = info.get("author") or None
                metadata["page_count"] = doc.page_count
                metadata["creation_date"] = info.get("creationDate") or None
        except Exception as e:
            # Broken files still get a title from the file name
            self.log_debug("PDF metadata unavailable", error=str(e))
            metadata["title"] = clean_file_name(self.file_path.name)
        return metadata
