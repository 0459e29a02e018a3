"""Plain text, markdown, JSON/XML and RTF loader."""

import re

from rfp_workflow.loaders.base import BaseDocumentLoader
from rfp_workflow.models.documents import ExtractionResult


RTF_DESTINATION_GROUP = re.compile(
    r"\{\\(?:\*|fonttbl|colortbl|stylesheet|info|pict)[^{}]*(?:\{[^{}]*\}[^{}]*)*\}"
)
RTF_HEX_ESCAPE = re.compile(r"\\'([0-9a-fA-F]{2})")
RTF_UNICODE_ESCAPE = re.compile(r"\\u(-?\d+)\??")
RTF_CONTROL_WORD = re.compile(r"\\[a-zA-Z]+-?\d* ?")


def strip_rtf(raw: str) -> str:
    """Reduce RTF markup to its visible text."""
    text = RTF_DESTINATION_GROUP.sub("", raw)
    text = re.sub(r"\\par[d]?\b ?", "\n", text)
    text = RTF_UNICODE_ESCAPE.sub(lambda m: chr(int(m.group(1)) % 65536), text)
    text = RTF_HEX_ESCAPE.sub(lambda m: bytes.fromhex(m.group(1)).decode("cp1252", errors="replace"), text)
    text = RTF_CONTROL_WORD.sub("", text)
    text = re.sub(r"(?<!\\)[{}]", "", text)
    text = text.replace("\\{", "{").replace("\\}", "}").replace("\\\\", "\\")
    return re.sub(r"\n{3,}", "\n\n", text).strip()


class TextLoader(BaseDocumentLoader):
    """Loader for text-like formats; never raises on content."""

    supported_mime_types = (
        "text/plain",
        "text/markdown",
        "text/csv",
        "application/json",
        "application/xml",
        "text/xml",
        "application/rtf",
        "text/rtf",
    )

    def load(self) -> ExtractionResult:
        raw = self.file_path.read_bytes().decode("utf-8", errors="replace")
        warnings = []

        if self._is_rtf(raw):
            text = strip_rtf(raw)
            method = "rtf"
        else:
            text = raw.strip()
            method = "text"

        if not text:
            warnings.append("Document is empty")
        result = self._result(text, method, page_count=max(1, len(text) // 3000), warnings=warnings)
        self.log_info("Text extracted", method=method, chars=len(text))
        return result

    def _is_rtf(self, raw: str) -> bool:
        return "rtf" in self.mime_type or raw.lstrip().startswith("{\\rtf")
