"""Shared pytest fixtures."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, DefaultsConfig, DiscussConfig, ProviderConfig, RoleConfig
from magpie.events import DebateObserver
from magpie.models import ANALYZER_ID, SUMMARIZER_ID, Message, Reviewer, ReviewerStatus
from magpie.providers.base import AIProvider, SessionProvider


class MockProvider(AIProvider):
    """Test double AIProvider returning scripted responses in order."""

    def __init__(
        self,
        provider_name: str = "mock",
        responses: list[str] | None = None,
        default: str = "Mock response",
        delay: float = 0.0,
    ) -> None:
        self._name = provider_name
        self._responses = list(responses or [])
        self._default = default
        self._delay = delay
        self.calls: list[list[Message]] = []
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because chat is defined in the class body below.
        self.chat = AsyncMock(side_effect=self._respond)  # type: ignore[method-assign]

    async def _respond(self, messages: list[Message], system_prompt: str | None = None) -> str:
        self.calls.append(list(messages))
        if self._delay:
            await asyncio.sleep(self._delay)
        return self._responses.pop(0) if self._responses else self._default

    def name(self) -> str:
        return self._name

    async def chat(self, messages: list[Message], system_prompt: str | None = None) -> str:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return self._default


class MockSessionProvider(MockProvider, SessionProvider):
    """MockProvider that reports a server-side session once started."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._active = False
        self.started = 0
        self.ended = 0

    def start_session(self) -> None:
        self._active = True
        self.started += 1

    def end_session(self) -> None:
        self._active = False
        self.ended += 1

    @property
    def has_session(self) -> bool:
        return self._active


class RecordingObserver(DebateObserver):
    """Observer that records every event and replays scripted inputs."""

    def __init__(
        self,
        interjections: list[str | None] | None = None,
        questions: list[tuple[str, str]] | None = None,
    ) -> None:
        self.messages: list[tuple[str, str]] = []
        self.waiting: list[str] = []
        self.rounds: list[tuple[int, bool]] = []
        self.statuses: list[tuple[int, list[ReviewerStatus]]] = []
        self.context: list[str] = []
        self._interjections = list(interjections or [])
        self._questions = list(questions or [])

    def on_message(self, author_id: str, chunk: str) -> None:
        self.messages.append((author_id, chunk))

    def on_waiting(self, target: str) -> None:
        self.waiting.append(target)

    def on_round_complete(self, round_number: int, converged: bool) -> None:
        self.rounds.append((round_number, converged))

    def on_parallel_status(self, round_number: int, statuses: list[ReviewerStatus]) -> None:
        self.statuses.append((round_number, statuses))

    def on_context_gathered(self, summary: str) -> None:
        self.context.append(summary)

    async def get_interjection(self, round_number: int) -> str | None:
        return self._interjections.pop(0) if self._interjections else None

    async def get_question(self, reviewer_ids: list[str]) -> tuple[str, str] | None:
        return self._questions.pop(0) if self._questions else None


def make_reviewer(rid: str, responses: list[str] | None = None, session: bool = False, **kwargs) -> Reviewer:
    cls = MockSessionProvider if session else MockProvider
    return Reviewer(id=rid, provider=cls(rid, responses, **kwargs), system_prompt=f"You are {rid}")


@pytest.fixture
def analyzer() -> Reviewer:
    return Reviewer(ANALYZER_ID, MockProvider("analyzer", ["A"]), "You are an analyzer")


@pytest.fixture
def summarizer() -> Reviewer:
    return Reviewer(SUMMARIZER_ID, MockProvider("summarizer", default="Final conclusion"), "You are a summarizer")


@pytest.fixture
def two_reviewers() -> list[Reviewer]:
    return [
        make_reviewer("reviewer-a", ["R1a", "R2a", "R3a", "Summary A"]),
        make_reviewer("reviewer-b", ["R1b", "R2b", "R3b", "Summary B"]),
    ]


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        max_rounds=2,
        output_format="markdown",
        check_convergence=False,
        output_dir=tmp_path / "output",
    )


@pytest.fixture
def sample_app_config(sample_defaults_config: DefaultsConfig) -> AppConfig:
    return AppConfig(
        defaults=sample_defaults_config,
        providers={
            "anthropic": ProviderConfig(name="anthropic", api_key_env="TEST_ANTHROPIC_KEY"),
            "openai": ProviderConfig(name="openai", api_key_env="TEST_OPENAI_KEY"),
            "claude-code": ProviderConfig(name="claude-code", timeout_sec=900),
        },
        reviewers={
            "claude": RoleConfig(model="claude-code", prompt="Review carefully."),
            "gpt": RoleConfig(model="gpt-5", prompt="Review the design."),
        },
        summarizer=RoleConfig(model="claude-sonnet-4-5", prompt="Summarize."),
        analyzer=RoleConfig(model="claude-code", prompt="Analyze."),
        discuss=DiscussConfig(reviewer="Discuss.", language_rule="Match the topic language."),
        available_providers={"anthropic", "openai", "claude-code"},
    )
