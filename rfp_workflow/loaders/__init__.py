"""Document text extraction."""

from rfp_workflow.loaders.base import BaseDocumentLoader, has_extractable_text
from rfp_workflow.loaders.factory import LoaderFactory, extract_text
from rfp_workflow.loaders.pdf_loader import PDFLoader

__all__ = [
    "BaseDocumentLoader",
    "LoaderFactory",
    "PDFLoader",
    "extract_text",
    "has_extractable_text",
]
