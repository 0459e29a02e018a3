"""Anthropic chat provider."""

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import BaseMessage

from rfp_workflow.config import get_settings
from rfp_workflow.models.ai import ChatTurn
from rfp_workflow.providers.base import AIProvider


class AnthropicProvider(AIProvider):
    name = "anthropic"

    def __init__(self, api_key: str | None = None, default_model: str | None = None):
        settings = get_settings()
        if api_key is None and settings.anthropic_api_key is not None:
            api_key = settings.anthropic_api_key.get_secret_value()
        super().__init__(api_key or "", default_model or settings.anthropic_model)

    def _build_client(self, model: str, temperature: float, max_tokens: int) -> ChatAnthropic:
        return ChatAnthropic(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            anthropic_api_key=self._api_key,
        )

    def _to_messages(self, turns: list[ChatTurn]) -> list[BaseMessage]:
        # Anthropic accepts a system prompt only as the first message
        rewritten = [
            ChatTurn(role="user", content=f"System: {turn.content}")
            if turn.role == "system" and index > 0
            else turn
            for index, turn in enumerate(turns)
        ]
        return super()._to_messages(rewritten)
