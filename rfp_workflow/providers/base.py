"""Provider-neutral interface over LangChain chat models."""

from abc import ABC, abstractmethod
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from tenacity import retry, stop_after_attempt, wait_exponential

from rfp_workflow.errors import AIProviderError
from rfp_workflow.models.ai import AIResponse, AIUsage, ChatTurn
from rfp_workflow.utils.logging import LoggerMixin


class AIProvider(ABC, LoggerMixin):
    """Base class for chat completion providers.

    Subclasses only say how to build the LangChain client and how to map
    chat turns onto provider messages; calling, retrying and usage
    accounting live here.
    """

    name: str = ""
    default_temperature: float = 0.7
    default_max_tokens: int = 4096

    def __init__(self, api_key: str, default_model: str):
        if not api_key:
            raise AIProviderError(
                f"No API key configured for provider '{self.name}'",
                code="PROVIDER_NOT_CONFIGURED",
            )
        self._api_key = api_key
        self.default_model = default_model

    @abstractmethod
    def _build_client(self, model: str, temperature: float, max_tokens: int) -> BaseChatModel:
        """Create the LangChain chat model for one call."""

    def _to_messages(self, turns: list[ChatTurn]) -> list[BaseMessage]:
        messages: list[BaseMessage] = []
        for turn in turns:
            if turn.role == "system":
                messages.append(SystemMessage(content=turn.content))
            elif turn.role == "assistant":
                messages.append(AIMessage(content=turn.content))
            else:
                messages.append(HumanMessage(content=turn.content))
        return messages

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _invoke(self, client: BaseChatModel, messages: list[BaseMessage]) -> AIMessage:
        return client.invoke(messages)

    def send_messages(
        self,
        messages: list[ChatTurn],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AIResponse:
        """Send a conversation and return the assistant reply.

        Args:
            messages: Conversation turns, oldest first.
            model: Model ID, defaults to the provider's default model.
            temperature: Sampling temperature.
            max_tokens: Completion token limit.

        Returns:
            The reply with token usage.

        Raises:
            AIProviderError: If the provider call fails after retries.
        """
        model = model or self.default_model
        client = self._build_client(
            model,
            self.default_temperature if temperature is None else temperature,
            max_tokens or self.default_max_tokens,
        )

        try:
            reply = self._invoke(client, self._to_messages(messages))
        except Exception as e:
            self.log_error("Provider call failed", provider=self.name, model=model, error=str(e))
            raise AIProviderError(f"{self.name} request failed: {e}", provider=self.name) from e

        response = AIResponse(
            content=self._content_text(reply.content),
            usage=self._usage(reply),
            model=model,
            finish_reason=self._finish_reason(reply),
        )
        self.log_debug(
            "Provider call complete",
            provider=self.name,
            model=model,
            total_tokens=response.usage.total_tokens,
        )
        return response

    def send_message(
        self,
        prompt: str,
        *,
        system: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AIResponse:
        """Send a single prompt, optionally with a system message."""
        turns = []
        if system:
            turns.append(ChatTurn(role="system", content=system))
        turns.append(ChatTurn(role="user", content=prompt))
        return self.send_messages(turns, model=model, temperature=temperature, max_tokens=max_tokens)

    def validate_api_key(self) -> bool:
        """Check the key with a one-token request.

        Only an authentication failure counts as invalid; any other error
        means the key itself was accepted.
        """
        client = self._build_client(self.default_model, 0.0, 1)
        try:
            client.invoke([HumanMessage(content="Hi")])
        except Exception as e:
            if getattr(e, "status_code", None) == 401 or "authentication" in type(e).__name__.lower():
                self.log_warning("API key rejected", provider=self.name)
                return False
            self.log_debug("Key check hit a non-auth error", provider=self.name, error=str(e))
        return True

    @staticmethod
    def _content_text(content: Any) -> str:
        if isinstance(content, str):
            return content
        # Anthropic may return a list of content blocks
        parts = []
        for block in content or []:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)

    @staticmethod
    def _usage(reply: AIMessage) -> AIUsage:
        usage = getattr(reply, "usage_metadata", None) or {}
        input_tokens = int(usage.get("input_tokens", 0))
        output_tokens = int(usage.get("output_tokens", 0))
        return AIUsage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=int(usage.get("total_tokens", input_tokens + output_tokens)),
        )

    @staticmethod
    def _finish_reason(reply: AIMessage) -> str | None:
        metadata = getattr(reply, "response_metadata", None) or {}
        return metadata.get("finish_reason") or metadata.get("stop_reason")
