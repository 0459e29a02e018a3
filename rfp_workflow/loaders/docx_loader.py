"""Word document loader using python-docx."""

import re
from typing import Any

from docx import Document

from rfp_workflow.loaders.base import BaseDocumentLoader
from rfp_workflow.models.documents import ExtractionQuality, ExtractionResult


DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_MIME = "application/msword"

LEGACY_DOC_WARNING = (
    "Legacy .doc format: text was recovered heuristically; convert to .docx for best results"
)


class DocxLoader(BaseDocumentLoader):
    """Loader for .docx, with a heuristic text recovery for legacy .doc files."""

    supported_mime_types = (DOCX_MIME, DOC_MIME)

    def load(self) -> ExtractionResult:
        if self._is_legacy_doc():
            return self._load_legacy()

        document = Document(str(self.file_path))
        parts = [p.text.strip() for p in document.paragraphs if p.text.strip()]

        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    parts.append(" | ".join(cells))

        text = "\n\n".join(parts)
        self.log_info("DOCX extracted", paragraphs=len(parts), tables=len(document.tables))
        return self._result(text, "python-docx", page_count=max(1, len(text) // 3000))

    def _is_legacy_doc(self) -> bool:
        return self.mime_type == DOC_MIME or self.file_path.suffix.lower() == ".doc"

    def _load_legacy(self) -> ExtractionResult:
        """Recover text runs from a binary .doc (UTF-16LE or 8-bit)."""
        data = self.file_path.read_bytes()
        wide = [
            run.decode("utf-16-le", errors="ignore")
            for run in re.findall(rb"(?:[\x20-\x7e\n\r\t]\x00){4,}", data)
        ]
        narrow = [
            run.decode("cp1252", errors="ignore")
            for run in re.findall(rb"[\x20-\x7e\n\r\t]{4,}", data)
        ]
        runs = wide if sum(map(len, wide)) >= sum(map(len, narrow)) else narrow
        text = "\n".join(run.strip() for run in runs if run.strip())

        result = self._result(text, "doc-heuristic", page_count=max(1, len(text) // 3000))
        result.quality = ExtractionQuality.POOR
        result.warnings.append(LEGACY_DOC_WARNING)
        self.log_warning("Legacy .doc extracted heuristically", chars=len(text))
        return result

    def extract_metadata(self) -> dict[str, Any]:
        metadata = super().extract_metadata()
        if self._is_legacy_doc():
            return metadata
        try:
            core = Document(str(self.file_path)).core_properties
            if core.title:
                metadata["title"] = core.title
            metadata["author"] = core.author or None
        except Exception as e:
            self.log_debug("DOCX metadata unavailable", error=str(e))
        return metadata
