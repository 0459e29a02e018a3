"""Provider lookup by name."""

from rfp_workflow.errors import ValidationFailedError
from rfp_workflow.models.ai import AIModel
from rfp_workflow.providers.anthropic_provider import AnthropicProvider
from rfp_workflow.providers.base import AIProvider
from rfp_workflow.providers.openai_provider import OpenAIProvider


class ProviderFactory:
    """Registry of provider classes keyed by lower-cased name."""

    _providers: dict[str, type[AIProvider]] = {
        "openai": OpenAIProvider,
        "anthropic": AnthropicProvider,
    }

    @classmethod
    def register(cls, name: str, provider_cls: type[AIProvider]) -> None:
        cls._providers[name.lower()] = provider_cls

    @classmethod
    def available(cls) -> list[str]:
        return sorted(cls._providers)

    @classmethod
    def create(cls, name: str, api_key: str | None = None, default_model: str | None = None) -> AIProvider:
        """Instantiate a provider.

        Raises:
            ValidationFailedError: If no provider is registered under ``name``.
        """
        provider_cls = cls._providers.get((name or "").lower())
        if provider_cls is None:
            raise ValidationFailedError(
                f"Unsupported AI provider: {name}",
                code="UNSUPPORTED_PROVIDER",
                available=cls.available(),
            )
        return provider_cls(api_key=api_key, default_model=default_model)

    @classmethod
    def create_for_model(cls, model: AIModel, api_key: str | None = None) -> AIProvider:
        return cls.create(model.provider, api_key=api_key, default_model=model.model_id)
