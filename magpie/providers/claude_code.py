"""Claude Code CLI provider. Keeps a server-side session across calls."""

import logging
import uuid

from config.config_loader import ProviderConfig
from magpie.models import Message
from magpie.providers.base import SessionProvider
from magpie.providers.cli_base import CliProvider

logger = logging.getLogger(__name__)


class ClaudeCodeProvider(CliProvider, SessionProvider):
    """Runs `claude -p -`. With a session, later calls resume the same conversation."""

    executable = "claude"

    def __init__(self, config: ProviderConfig, model: str | None = None) -> None:
        super().__init__(config, model)
        self._session_id: str | None = None
        self._first_message = True

    def start_session(self) -> None:
        self._session_id = str(uuid.uuid4())
        self._first_message = True
        logger.debug("Claude Code session %s started", self._session_id)

    def end_session(self) -> None:
        self._session_id = None
        self._first_message = True

    @property
    def has_session(self) -> bool:
        return self._session_id is not None

    def _args(self) -> list[str]:
        args = ["-p", "-"]
        if self._session_id:
            flag = "--session-id" if self._first_message else "--resume"
            args += [flag, self._session_id]
        return args

    def _prompt(self, messages: list[Message], system_prompt: str | None) -> str:
        # A resumed session already holds the system prompt
        if self.has_session and not self._first_message:
            return super()._prompt(messages, None)
        return super()._prompt(messages, system_prompt)

    def _after_call(self) -> None:
        self._first_message = False
