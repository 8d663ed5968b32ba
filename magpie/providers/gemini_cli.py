"""Gemini CLI provider. Resumes the latest session after the first call."""

from config.config_loader import ProviderConfig
from magpie.models import Message
from magpie.providers.base import SessionProvider
from magpie.providers.cli_base import CliProvider


class GeminiCliProvider(CliProvider, SessionProvider):
    """Runs `gemini -y -o text <prompt>`; the prompt is a positional argument."""

    executable = "gemini"
    use_stdin = False

    def __init__(self, config: ProviderConfig, model: str | None = None) -> None:
        super().__init__(config, model)
        self._session = False
        self._first_message = True

    def start_session(self) -> None:
        self._session = True
        self._first_message = True

    def end_session(self) -> None:
        self._session = False
        self._first_message = True

    @property
    def has_session(self) -> bool:
        return self._session

    def _args(self) -> list[str]:
        args = ["-y", "-o", "text"]
        if self._session and not self._first_message:
            args += ["-r", "latest"]
        return args

    def _prompt(self, messages: list[Message], system_prompt: str | None) -> str:
        if self._session and not self._first_message:
            return super()._prompt(messages, None)
        return super()._prompt(messages, system_prompt)

    def _after_call(self) -> None:
        self._first_message = False
