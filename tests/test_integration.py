"""Integration tests: real backend calls, no mocks. Requires .env with at least one API key."""

import os

import pytest
from dotenv import load_dotenv

load_dotenv()

pytestmark = pytest.mark.integration

if not os.environ.get("ANTHROPIC_API_KEY", "").strip():
    pytestmark = pytest.mark.skip(reason="ANTHROPIC_API_KEY not set")


async def test_one_round_debate_with_real_provider(tmp_path):
    """Two reviewers on the same API backend, one round, no convergence."""
    from config.config_loader import load_config
    from magpie.debate import DebateOrchestrator
    from magpie.models import ANALYZER_ID, SUMMARIZER_ID, DebateOptions, Reviewer
    from magpie.output import save_result
    from magpie.providers.factory import create_provider

    config = load_config()
    model = "claude-haiku-4-5"

    def agent(rid: str, prompt: str) -> Reviewer:
        return Reviewer(rid, create_provider(model, config), prompt)

    orchestrator = DebateOrchestrator(
        [agent("optimist", "Argue for the proposal. One paragraph."),
         agent("skeptic", "Argue against the proposal. One paragraph.")],
        agent(SUMMARIZER_ID, "Summarize the debate in three bullets."),
        agent(ANALYZER_ID, "List the key trade-offs in two sentences."),
        DebateOptions(max_rounds=1),
    )

    result = await orchestrator.run("tabs", "Should a small team standardize on tabs over spaces?")

    assert len(result.messages) == 2
    assert all(m.content.strip() for m in result.messages)
    assert result.final_conclusion.strip()
    assert save_result(result, tmp_path / "debate.md").exists()
