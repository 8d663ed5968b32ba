"""Tests for magpie/models.py dataclasses."""

import dataclasses

import pytest

from magpie.models import RESERVED_IDS, DebateMessage, DebateOptions, ReviewerStatus, TokenUsage


def test_debate_message_defaults():
    msg = DebateMessage("claude", "Looks good", 1)
    assert msg.private_to is None
    assert msg.timestamp is not None


def test_debate_message_is_frozen():
    msg = DebateMessage("claude", "Looks good", 1)
    with pytest.raises(dataclasses.FrozenInstanceError):
        msg.content = "changed"


def test_token_usage_total():
    assert TokenUsage("claude", 10, 5, 0.0).total_tokens == 15


def test_reviewer_status_duration():
    status = ReviewerStatus("claude")
    assert status.status == "pending"
    assert status.duration is None
    status.started_at, status.finished_at = 2.0, 5.0
    assert status.duration == 3.0


def test_debate_options_defaults():
    options = DebateOptions()
    assert options.max_rounds == 3
    assert options.interactive is False
    assert options.check_convergence is False
    assert options.cost_per_token == pytest.approx(0.00001)


def test_reserved_ids():
    assert RESERVED_IDS == {"analyzer", "summarizer", "human"}
