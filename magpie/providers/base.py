"""Abstract base for all AI model providers."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from magpie.models import Message


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class AIProvider(ABC):
    """Stateless agent: every call must carry the full conversation."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'anthropic', 'claude-code')."""
        ...

    @abstractmethod
    async def chat(self, messages: list[Message], system_prompt: str | None = None) -> str:
        """Generate a complete response for the given conversation.

        Args:
            messages: Ordered user/assistant messages; the last one is a user message.
            system_prompt: Fixed instruction for the agent.

        Returns:
            The response text.

        Raises:
            ProviderError: On API failure, timeout, or invalid response.
        """
        ...

    async def chat_stream(
        self, messages: list[Message], system_prompt: str | None = None
    ) -> AsyncIterator[str]:
        """Yield response chunks. Concatenated chunks equal the ``chat`` result.

        Providers without native streaming inherit this single-chunk version.
        """
        yield await self.chat(messages, system_prompt)


class SessionProvider(AIProvider):
    """Agent that remembers prior turns while a session is active."""

    @abstractmethod
    def start_session(self) -> None:
        ...

    @abstractmethod
    def end_session(self) -> None:
        ...

    @property
    @abstractmethod
    def has_session(self) -> bool:
        ...


def render_transcript(messages: list[Message], system_prompt: str | None = None) -> str:
    """Flatten a conversation into one text prompt for CLI-driven agents."""
    parts: list[str] = []
    if system_prompt:
        parts.append(f"System: {system_prompt}")
    for msg in messages:
        parts.append(f"{msg.role}: {msg.content}")
    return "\n\n".join(parts)
