"""Embedding service using OpenAI."""

from langchain_openai import OpenAIEmbeddings

from rfp_workflow.config import get_settings
from rfp_workflow.utils.logging import LoggerMixin


class EmbeddingService(LoggerMixin):
    """Wraps the OpenAI embeddings client used by the vector store."""

    def __init__(self, model: str | None = None, dimensions: int | None = None):
        settings = get_settings()
        self._model = model or settings.openai_embedding_model
        self._dimensions = dimensions

        self._embeddings = OpenAIEmbeddings(
            model=self._model,
            openai_api_key=settings.openai_api_key.get_secret_value(),
            dimensions=dimensions,
        )

        self.log_info("Embedding service initialized", model=self._model, dimensions=dimensions)

    @property
    def embeddings(self) -> OpenAIEmbeddings:
        return self._embeddings
