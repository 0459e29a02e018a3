"""OpenAI chat provider."""

from langchain_openai import ChatOpenAI

from rfp_workflow.config import get_settings
from rfp_workflow.providers.base import AIProvider


class OpenAIProvider(AIProvider):
    name = "openai"

    def __init__(self, api_key: str | None = None, default_model: str | None = None):
        settings = get_settings()
        super().__init__(
            api_key or settings.openai_api_key.get_secret_value(),
            default_model or settings.openai_model,
        )

    def _build_client(self, model: str, temperature: float, max_tokens: int) -> ChatOpenAI:
        return ChatOpenAI(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            openai_api_key=self._api_key,
        )
