"""Image OCR loader using Tesseract."""

import pytesseract
from PIL import Image

from rfp_workflow.errors import ExtractionError
from rfp_workflow.loaders.base import BaseDocumentLoader
from rfp_workflow.models.documents import ExtractionResult


class ImageLoader(BaseDocumentLoader):
    """OCR a single image file."""

    supported_mime_types = ("image/png", "image/jpeg", "image/tiff", "image/bmp", "image/gif", "image/webp")

    def load(self) -> ExtractionResult:
        try:
            with Image.open(self.file_path) as image:
                text = pytesseract.image_to_string(
                    image.convert("RGB"),
                    lang=self._settings.ocr_language,
                    timeout=self._settings.extraction_timeout_seconds,
                )
        except pytesseract.TesseractNotFoundError as e:
            raise ExtractionError("OCR engine is not installed on this server") from e
        except RuntimeError as e:
            # pytesseract signals its timeout with RuntimeError
            raise ExtractionError(f"OCR failed: {e}") from e

        text = text.strip()
        self.log_info("Image OCR complete", chars=len(text))
        return self._result(text, "ocr", page_count=1)
