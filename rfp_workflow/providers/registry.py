"""Database-backed registry of selectable AI models."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from rfp_workflow.config import get_settings
from rfp_workflow.db.tables import AIModelRecord
from rfp_workflow.errors import ConflictError, NotFoundError
from rfp_workflow.models.ai import AIModel, AIModelUpdate
from rfp_workflow.utils.logging import LoggerMixin


PRESET_MODELS: list[AIModel] = [
    AIModel(
        provider="anthropic",
        model_id="claude-3-5-sonnet-20241022",
        name="Claude 3.5 Sonnet",
        max_tokens=8192,
        input_cost=0.003,
        output_cost=0.015,
        capabilities=["chat", "analysis", "long_context"],
        is_default=True,
    ),
    AIModel(
        provider="anthropic",
        model_id="claude-3-haiku-20240307",
        name="Claude 3 Haiku",
        max_tokens=4096,
        input_cost=0.00025,
        output_cost=0.00125,
        capabilities=["chat", "fast"],
    ),
    AIModel(
        provider="openai",
        model_id="gpt-4o",
        name="GPT-4o",
        max_tokens=4096,
        input_cost=0.0025,
        output_cost=0.01,
        capabilities=["chat", "analysis", "vision"],
    ),
    AIModel(
        provider="openai",
        model_id="gpt-4o-mini",
        name="GPT-4o mini",
        max_tokens=4096,
        input_cost=0.00015,
        output_cost=0.0006,
        capabilities=["chat", "fast"],
    ),
]


class ModelRegistry(LoggerMixin):
    """CRUD over the ``ai_models`` table."""

    def __init__(self, session: Session):
        self._session = session

    def seed(self) -> int:
        """Insert any preset models that are missing; returns how many were added."""
        existing = set(self._session.scalars(select(AIModelRecord.model_id)))
        has_default = any(self._session.scalars(select(AIModelRecord.is_default).where(AIModelRecord.is_default)))
        added = 0
        for preset in PRESET_MODELS:
            if preset.model_id in existing:
                continue
            record = AIModelRecord(**preset.model_dump(exclude={"id"}))
            if has_default:
                record.is_default = False
            self._session.add(record)
            added += 1
        self._session.flush()
        if added:
            self.log_info("Seeded AI models", added=added)
        return added

    def list_models(self, active_only: bool = True) -> list[AIModel]:
        query = select(AIModelRecord).order_by(AIModelRecord.provider, AIModelRecord.name)
        if active_only:
            query = query.where(AIModelRecord.is_active)
        return [AIModel.model_validate(r) for r in self._session.scalars(query)]

    def _get_record(self, model_id: str) -> AIModelRecord:
        record = self._session.scalar(select(AIModelRecord).where(AIModelRecord.model_id == model_id))
        if record is None:
            raise NotFoundError(f"AI model not found: {model_id}")
        return record

    def get(self, model_id: str) -> AIModel:
        return AIModel.model_validate(self._get_record(model_id))

    def resolve(self, model_id: str | None = None) -> AIModel:
        """Return the requested model, else the default one, else the configured fallback."""
        if model_id:
            record = self._session.scalar(
                select(AIModelRecord).where(AIModelRecord.model_id == model_id)
            )
            if record is not None:
                return AIModel.model_validate(record)
            # Unknown IDs are passed through so callers can target new models
            provider = "anthropic" if model_id.startswith("claude") else "openai"
            return AIModel(provider=provider, model_id=model_id, name=model_id)

        record = self._session.scalar(
            select(AIModelRecord).where(AIModelRecord.is_default, AIModelRecord.is_active)
        )
        if record is not None:
            return AIModel.model_validate(record)

        settings = get_settings()
        model = settings.anthropic_model if settings.default_provider == "anthropic" else settings.openai_model
        return AIModel(provider=settings.default_provider, model_id=model, name=model)

    def create(self, model: AIModel) -> AIModel:
        if self._session.scalar(select(AIModelRecord.id).where(AIModelRecord.model_id == model.model_id)):
            raise ConflictError(f"AI model already exists: {model.model_id}", code="MODEL_EXISTS")
        record = AIModelRecord(**model.model_dump(exclude={"id", "is_default"}))
        self._session.add(record)
        self._session.flush()
        if model.is_default:
            self._set_default(record)
        self.log_info("AI model registered", model_id=model.model_id, provider=model.provider)
        return AIModel.model_validate(record)

    def update(self, model_id: str, update: AIModelUpdate) -> AIModel:
        record = self._get_record(model_id)
        changes = update.model_dump(exclude_unset=True)
        make_default = changes.pop("is_default", None)
        for field, value in changes.items():
            setattr(record, field, value)
        if make_default:
            self._set_default(record)
        elif make_default is False:
            record.is_default = False
        self._session.flush()
        return AIModel.model_validate(record)

    def _set_default(self, record: AIModelRecord) -> None:
        for other in self._session.scalars(select(AIModelRecord).where(AIModelRecord.is_default)):
            other.is_default = False
        record.is_default = True
        self._session.flush()
