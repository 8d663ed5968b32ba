"""Map configured model ids onto provider backends."""

import logging

from config.config_loader import AppConfig
from magpie.providers.anthropic import AnthropicProvider
from magpie.providers.base import AIProvider
from magpie.providers.claude_code import ClaudeCodeProvider
from magpie.providers.codex_cli import CodexCliProvider
from magpie.providers.gemini import GeminiProvider
from magpie.providers.gemini_cli import GeminiCliProvider
from magpie.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "google": GeminiProvider,
    "claude-code": ClaudeCodeProvider,
    "codex-cli": CodexCliProvider,
    "gemini-cli": GeminiCliProvider,
}

_OPENAI_PREFIXES = ("gpt", "o1", "o3", "o4")


def provider_kind(model: str) -> str:
    """Return the provider key serving the given model id.

    Raises:
        ValueError: If no backend serves the model.
    """
    if model in ("claude-code", "codex-cli", "gemini-cli"):
        return model
    if model.startswith("claude"):
        return "anthropic"
    if model.startswith(_OPENAI_PREFIXES):
        return "openai"
    if model.startswith("gemini"):
        return "google"
    raise ValueError(f"Unknown model: {model}")


def create_provider(model: str, config: AppConfig) -> AIProvider:
    """Instantiate the backend for a model using its provider settings.

    Raises:
        ValueError: If the backend is not configured, disabled, or has no API key.
    """
    kind = provider_kind(model)
    provider_cfg = config.providers.get(kind)
    if provider_cfg is None:
        raise ValueError(f"Provider {kind} not configured for model {model}")
    if kind not in config.available_providers:
        raise ValueError(f"Provider {kind} is not available for model {model} (disabled or missing API key)")

    logger.debug("Creating %s provider for model %s", kind, model)
    return PROVIDER_CLASSES[kind](provider_cfg, model)
