"""Pick a loader for a file from its MIME type or extension."""

import mimetypes
from pathlib import Path

from rfp_workflow.loaders.base import BaseDocumentLoader
from rfp_workflow.loaders.docx_loader import DOC_MIME, DOCX_MIME, DocxLoader
from rfp_workflow.loaders.image_loader import ImageLoader
from rfp_workflow.loaders.pdf_loader import PDFLoader
from rfp_workflow.loaders.text_loader import TextLoader
from rfp_workflow.models.documents import ExtractionResult


EXTENSION_TYPES = {
    ".pdf": "application/pdf",
    ".docx": DOCX_MIME,
    ".doc": DOC_MIME,
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".rtf": "application/rtf",
    ".txt": "text/plain",
    ".json": "application/json",
    ".xml": "application/xml",
}

GENERIC_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


class LoaderFactory:
    """Maps MIME types to loader classes."""

    LOADERS: tuple[type[BaseDocumentLoader], ...] = (PDFLoader, DocxLoader, TextLoader, ImageLoader)

    @classmethod
    def supported_types(cls) -> list[str]:
        return [mime for loader in cls.LOADERS for mime in loader.supported_mime_types]

    @classmethod
    def is_supported(cls, mime_type: str) -> bool:
        mime_type = (mime_type or "").lower()
        return (
            mime_type in cls.supported_types()
            or mime_type.startswith("text/")
            or mime_type.startswith("image/")
        )

    @staticmethod
    def resolve_mime_type(file_name: str, mime_type: str | None = None) -> str:
        """Use the declared type unless it is missing or generic."""
        mime_type = (mime_type or "").split(";")[0].strip().lower()
        if mime_type not in GENERIC_TYPES:
            return mime_type
        suffix = Path(file_name).suffix.lower()
        if suffix in EXTENSION_TYPES:
            return EXTENSION_TYPES[suffix]
        guessed, _ = mimetypes.guess_type(file_name)
        return guessed or "text/plain"

    @classmethod
    def loader_class_for(cls, mime_type: str) -> type[BaseDocumentLoader]:
        for loader in cls.LOADERS:
            if mime_type in loader.supported_mime_types:
                return loader
        if mime_type.startswith("image/"):
            return ImageLoader
        return TextLoader

    @classmethod
    def create(cls, file_path: Path, mime_type: str | None = None) -> BaseDocumentLoader:
        file_path = Path(file_path)
        resolved = cls.resolve_mime_type(file_path.name, mime_type)
        return cls.loader_class_for(resolved)(file_path, mime_type=resolved)


def extract_text(file_path: Path, mime_type: str | None = None) -> ExtractionResult:
    """Extract text from any supported document."""
    return LoaderFactory.create(file_path, mime_type).load()
