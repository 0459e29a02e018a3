"""AI provider abstraction and model registry."""

from rfp_workflow.providers.anthropic_provider import AnthropicProvider
from rfp_workflow.providers.base import AIProvider
from rfp_workflow.providers.factory import ProviderFactory
from rfp_workflow.providers.openai_provider import OpenAIProvider
from rfp_workflow.providers.registry import PRESET_MODELS, ModelRegistry

__all__ = [
    "AIProvider",
    "AnthropicProvider",
    "ModelRegistry",
    "OpenAIProvider",
    "PRESET_MODELS",
    "ProviderFactory",
]
