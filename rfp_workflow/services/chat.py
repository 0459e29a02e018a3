"""Persisted chat sessions and stateless chat completions."""

import time

from sqlalchemy import select
from sqlalchemy.orm import Session

from rfp_workflow.db.base import utcnow
from rfp_workflow.db.tables import ChatMessage, ChatSession
from rfp_workflow.errors import NotFoundError, RFPWorkflowError, ValidationFailedError
from rfp_workflow.models.ai import (
    AIResponse,
    ChatMessageCreate,
    ChatMessageOut,
    ChatRequest,
    ChatSessionCreate,
    ChatSessionOut,
    ChatTurn,
)
from rfp_workflow.providers import ModelRegistry, ProviderFactory
from rfp_workflow.services.usage import UsageLimiter
from rfp_workflow.utils.logging import LoggerMixin


DEFAULT_TITLE = "New chat"
TITLE_LENGTH = 50
MIN_ESTIMATED_TOKENS = 100


def estimate_tokens(text: str) -> int:
    """Rough token estimate used for the quota check, four characters per token."""
    return max(len(text) // 4, MIN_ESTIMATED_TOKENS)


class ChatService(LoggerMixin):
    """Chat completions through the configured providers, with quota accounting."""

    def __init__(self, session: Session, limiter: UsageLimiter | None = None):
        self._session = session
        self._limiter = limiter or UsageLimiter(session)
        self._registry = ModelRegistry(session)

    def _complete(
        self,
        user_id: str,
        turns: list[ChatTurn],
        model_id: str | None,
        temperature: float,
        max_tokens: int,
        endpoint: str,
    ) -> AIResponse:
        self._limiter.enforce(user_id, estimate_tokens("".join(t.content for t in turns)))
        model = self._registry.resolve(model_id)

        started = time.perf_counter()
        try:
            provider = ProviderFactory.create_for_model(model)
            response = provider.send_messages(turns, temperature=temperature, max_tokens=max_tokens)
        except RFPWorkflowError:
            self._limiter.increment_usage(
                user_id,
                "chat",
                endpoint,
                response_time_ms=int((time.perf_counter() - started) * 1000),
                success=False,
                model=model.model_id,
            )
            self._session.commit()
            raise

        self._limiter.increment_usage(
            user_id,
            "chat",
            endpoint,
            tokens_used=response.usage.total_tokens,
            response_time_ms=int((time.perf_counter() - started) * 1000),
            model=model.model_id,
        )
        return response

    def chat(self, user_id: str, request: ChatRequest) -> AIResponse:
        """Stateless completion from a prompt or a message list.

        Raises:
            ValidationFailedError: No model, or neither prompt nor messages.
            QuotaExceededError: The caller is over their quota.
        """
        if not request.model:
            raise ValidationFailedError("A model is required", code="MODEL_REQUIRED")
        if not request.prompt and not request.messages:
            raise ValidationFailedError("A prompt or messages are required", code="PROMPT_REQUIRED")

        turns = request.messages or [ChatTurn(role="user", content=request.prompt)]
        return self._complete(
            user_id, turns, request.model, request.temperature, request.max_tokens, "/ai/chat"
        )

    def _get_session(self, session_id: str, user_id: str) -> ChatSession:
        chat = self._session.get(ChatSession, session_id)
        if chat is None or chat.user_id != user_id:
            raise NotFoundError(f"Chat session not found: {session_id}", code="SESSION_NOT_FOUND")
        return chat

    def create_session(self, user_id: str, payload: ChatSessionCreate) -> ChatSessionOut:
        chat = ChatSession(user_id=user_id, title=payload.title or DEFAULT_TITLE, model_id=payload.model_id)
        self._session.add(chat)
        self._session.flush()
        self.log_info("Chat session created", session_id=chat.id, user_id=user_id)
        return ChatSessionOut.model_validate(chat)

    def list_sessions(self, user_id: str) -> list[ChatSessionOut]:
        sessions = self._session.scalars(
            select(ChatSession).where(ChatSession.user_id == user_id).order_by(ChatSession.updated_at.desc())
        )
        return [
            ChatSessionOut(
                id=s.id, title=s.title, model_id=s.model_id, created_at=s.created_at, updated_at=s.updated_at
            )
            for s in sessions
        ]

    def get_session(self, session_id: str, user_id: str) -> ChatSessionOut:
        return ChatSessionOut.model_validate(self._get_session(session_id, user_id))

    def delete_session(self, session_id: str, user_id: str) -> None:
        self._session.delete(self._get_session(session_id, user_id))
        self._session.flush()
        self.log_info("Chat session deleted", session_id=session_id)

    def send_message(self, session_id: str, user_id: str, payload: ChatMessageCreate) -> ChatMessageOut:
        """Append a user message, ask the model with the full history and store the reply."""
        chat = self._get_session(session_id, user_id)
        history = [ChatTurn(role=m.role, content=m.content) for m in chat.messages]
        history.append(ChatTurn(role="user", content=payload.content))

        response = self._complete(
            user_id,
            history,
            payload.model_id or chat.model_id,
            payload.temperature,
            payload.max_tokens,
            f"/chat/sessions/{session_id}/messages",
        )

        chat.messages.append(
            ChatMessage(role="user", content=payload.content, input_tokens=response.usage.input_tokens)
        )
        reply = ChatMessage(
            role="assistant",
            content=response.content,
            model=response.model,
            output_tokens=response.usage.output_tokens,
        )
        chat.messages.append(reply)
        if chat.title == DEFAULT_TITLE:
            chat.title = payload.content[:TITLE_LENGTH]
        chat.updated_at = utcnow()
        self._session.flush()

        self.log_info(
            "Chat message answered",
            session_id=session_id,
            model=response.model,
            tokens=response.usage.total_tokens,
        )
        return ChatMessageOut.model_validate(reply)
