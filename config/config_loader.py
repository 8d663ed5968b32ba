"""Load settings.yaml into typed dataclasses. Checks API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

_OUTPUT_FORMATS = ("markdown", "json")

# Backends driven through a local CLI; they need no API key, only `enabled: true`
CLI_PROVIDERS = frozenset({"claude-code", "codex-cli", "gemini-cli"})


@dataclass
class ProviderConfig:
    name: str
    api_key_env: str | None = None
    timeout_sec: int = 300
    max_tokens: int = 4096
    base_url: str | None = None
    enabled: bool = True


@dataclass
class RoleConfig:
    model: str
    prompt: str


@dataclass
class DiscussConfig:
    reviewer: str = ""
    analyzer: str = ""
    summarizer: str = ""
    devil_advocate: str = ""
    language_rule: str = ""

    def with_rule(self, prompt: str) -> str:
        """Append the language rule, if any, to a discuss prompt."""
        if not self.language_rule:
            return prompt
        return f"{prompt}\n\n{self.language_rule}"


@dataclass
class DefaultsConfig:
    max_rounds: int
    output_format: str = "markdown"
    check_convergence: bool = True
    output_dir: Path = Path("./output")
    cost_per_token: float = 0.00001


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    providers: dict[str, ProviderConfig]
    reviewers: dict[str, RoleConfig]
    summarizer: RoleConfig
    analyzer: RoleConfig
    discuss: DiscussConfig = field(default_factory=DiscussConfig)
    available_providers: set[str] = field(default_factory=set)


def _require(raw: dict, key: str, where: str) -> object:
    if not isinstance(raw, dict) or key not in raw:
        raise ValueError(f"Missing required setting: {where}{key}")
    return raw[key]


def _role(raw: dict, key: str) -> RoleConfig:
    role_raw = _require(raw, key, "")
    return RoleConfig(
        model=str(_require(role_raw, "model", f"{key}.")),
        prompt=str(role_raw.get("prompt", "")).strip(),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if a
    required section is absent or malformed. Logs missing API keys but
    does not raise; callers check available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    defaults_raw = _require(raw, "defaults", "")
    output_format = str(defaults_raw.get("output_format", "markdown"))
    if output_format not in _OUTPUT_FORMATS:
        raise ValueError(
            f"defaults.output_format must be one of {', '.join(_OUTPUT_FORMATS)}, got {output_format!r}"
        )
    defaults = DefaultsConfig(
        max_rounds=int(_require(defaults_raw, "max_rounds", "defaults.")),
        output_format=output_format,
        check_convergence=bool(defaults_raw.get("check_convergence", True)),
        output_dir=Path(defaults_raw.get("output_dir", "./output")),
        cost_per_token=float(defaults_raw.get("cost_per_token", 0.00001)),
    )

    providers: dict[str, ProviderConfig] = {}
    available_providers: set[str] = set()

    for provider_name, provider_raw in (raw.get("providers") or {}).items():
        provider_raw = provider_raw or {}
        provider_cfg = ProviderConfig(
            name=provider_name,
            api_key_env=provider_raw.get("api_key_env"),
            timeout_sec=int(provider_raw.get("timeout_sec", 300)),
            max_tokens=int(provider_raw.get("max_tokens", 4096)),
            base_url=provider_raw.get("base_url"),
            enabled=bool(provider_raw.get("enabled", True)),
        )
        providers[provider_name] = provider_cfg

        if provider_name in CLI_PROVIDERS:
            if provider_cfg.enabled:
                available_providers.add(provider_name)
                logger.info("Provider available: %s", provider_name)
            continue

        api_key = os.environ.get(provider_cfg.api_key_env or "", "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                provider_cfg.api_key_env,
            )

    reviewers_raw = _require(raw, "reviewers", "")
    if not reviewers_raw:
        raise ValueError("At least one reviewer must be configured under 'reviewers'")
    reviewers = {rid: _role(reviewers_raw, rid) for rid in reviewers_raw}

    discuss_raw = raw.get("discuss") or {}
    discuss = DiscussConfig(
        reviewer=str(discuss_raw.get("reviewer", "")).strip(),
        analyzer=str(discuss_raw.get("analyzer", "")).strip(),
        summarizer=str(discuss_raw.get("summarizer", "")).strip(),
        devil_advocate=str(discuss_raw.get("devil_advocate", "")).strip(),
        language_rule=str(discuss_raw.get("language_rule", "")).strip(),
    )

    return AppConfig(
        defaults=defaults,
        providers=providers,
        reviewers=reviewers,
        summarizer=_role(raw, "summarizer"),
        analyzer=_role(raw, "analyzer"),
        discuss=discuss,
        available_providers=available_providers,
    )
