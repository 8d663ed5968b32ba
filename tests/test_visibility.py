"""Tests for magpie/visibility.py."""

import pytest

from magpie.history import ConversationHistory
from magpie.models import HUMAN_ID, DebateMessage
from magpie.visibility import (
    CONTINUE_INSTRUCTION,
    FIRST_ROUND_INSTRUCTION,
    FOLLOW_UP_INSTRUCTION,
    VisibilityPolicy,
)

IDS = ["alpha", "beta", "gamma"]


@pytest.fixture
def history() -> ConversationHistory:
    return ConversationHistory()


def _policy(history: ConversationHistory, session_backed: dict[str, bool] | None = None) -> VisibilityPolicy:
    policy = VisibilityPolicy(history)
    policy.reset(IDS, session_backed or {}, "Review PR 7", "Touches auth.")
    return policy


def _commit_round(history: ConversationHistory, round_number: int) -> None:
    for rid in IDS:
        history.append(DebateMessage(rid, f"{rid}-r{round_number}", round_number))


def test_opening_request_has_prompt_analysis_and_first_round_instruction(history):
    policy = _policy(history)

    messages = policy.build("alpha", 1)

    assert len(messages) == 1
    assert messages[0].role == "user"
    assert messages[0].content.startswith("Review PR 7\n\n## Pre-analysis\n\nTouches auth.")
    assert messages[0].content.endswith(FIRST_ROUND_INSTRUCTION)


def test_opening_without_analysis_is_just_the_prompt(history):
    policy = VisibilityPolicy(history)
    policy.reset(IDS, {}, "Review PR 7", "")

    messages = policy.build("alpha", 1)

    assert "Pre-analysis" not in messages[0].content


def test_opening_never_contains_peer_turns_even_in_later_rounds(history):
    policy = _policy(history)
    _commit_round(history, 1)

    messages = policy.build("alpha", 2)

    assert len(messages) == 1
    assert "beta-r1" not in messages[0].content


def test_build_moves_cursor_to_history_length(history):
    policy = _policy(history)
    assert policy.cursor("alpha") is None

    policy.build("alpha", 1)
    assert policy.cursor("alpha") == 0

    _commit_round(history, 1)
    policy.build("alpha", 2)
    assert policy.cursor("alpha") == 3


def test_same_round_turns_from_peers_are_hidden(history):
    policy = _policy(history)
    for rid in IDS:
        policy.build(rid, 1)
    _commit_round(history, 1)
    # alpha's round-2 turn is already committed when gamma's request is built
    history.append(DebateMessage("alpha", "alpha-r2", 2))

    text = "\n".join(m.content for m in policy.build("gamma", 2))

    assert "alpha-r1" in text
    assert "alpha-r2" not in text


def test_reconstruction_replays_own_turns_as_assistant(history):
    policy = _policy(history)
    for rid in IDS:
        policy.build(rid, 1)
    _commit_round(history, 1)

    messages = policy.build("beta", 2)

    assert [m.role for m in messages] == ["user", "assistant", "user"]
    assert "Review PR 7" in messages[0].content
    assert "alpha, gamma" in messages[0].content
    assert messages[0].content.count("[alpha]: alpha-r1") == 1
    assert messages[1].content == "beta-r1"
    assert messages[2].content == f"[gamma]: gamma-r1\n\n{FOLLOW_UP_INSTRUCTION}"


def test_reconstruction_without_peer_turns_asks_to_continue(history):
    policy = VisibilityPolicy(history)
    policy.reset(["solo"], {}, "Topic", "")
    policy.build("solo", 1)
    history.append(DebateMessage("solo", "solo-r1", 1))

    messages = policy.build("solo", 2)

    assert [m.role for m in messages] == ["user", "assistant", "user"]
    assert messages[-1].content == CONTINUE_INSTRUCTION


def test_incremental_sends_only_unseen_peer_turns(history):
    policy = _policy(history, {"alpha": True})
    for rid in IDS:
        policy.build(rid, 1)
    _commit_round(history, 1)

    messages = policy.build("alpha", 2)

    assert len(messages) == 1
    content = messages[0].content
    assert "[beta]: beta-r1" in content
    assert "[gamma]: gamma-r1" in content
    assert "alpha-r1" not in content
    assert "Review PR 7" not in content
    assert content.endswith(FOLLOW_UP_INSTRUCTION)


def test_incremental_with_nothing_new_asks_to_continue(history):
    policy = VisibilityPolicy(history)
    policy.reset(["solo"], {"solo": True}, "Topic", "")
    policy.build("solo", 1)
    history.append(DebateMessage("solo", "solo-r1", 1))

    messages = policy.build("solo", 2)

    assert len(messages) == 1
    assert messages[0].content == CONTINUE_INSTRUCTION


def test_incremental_does_not_repeat_turns(history):
    policy = _policy(history, {"alpha": True})
    for rid in IDS:
        policy.build(rid, 1)
    _commit_round(history, 1)
    for rid in IDS:
        policy.build(rid, 2)
    _commit_round(history, 2)

    content = policy.build("alpha", 3)[0].content

    assert "beta-r2" in content
    assert "beta-r1" not in content


def test_human_turns_are_labelled_and_visible_in_their_round(history):
    policy = _policy(history)
    for rid in IDS:
        policy.build(rid, 1)
    _commit_round(history, 1)
    history.append(DebateMessage(HUMAN_ID, "Consider latency", 2))

    text = "\n".join(m.content for m in policy.build("alpha", 2))

    assert "[Human]: Consider latency" in text


def test_private_turns_only_visible_to_target(history):
    policy = _policy(history)
    history.append(DebateMessage(HUMAN_ID, "Why?", 0, private_to="alpha"))
    history.append(DebateMessage("alpha", "Because.", 0, private_to="alpha"))
    policy.mark_seen("alpha", 2)
    policy.mark_seen("beta", 0)

    alpha_text = "\n".join(m.content for m in policy.build("alpha", 1))
    beta_text = "\n".join(m.content for m in policy.build("beta", 1))

    assert "[Human]: Why?" in alpha_text
    assert "Because." in alpha_text
    assert "Why?" not in beta_text
    assert "Because." not in beta_text


def test_custom_instruction_replaces_default(history):
    policy = _policy(history)

    messages = policy.build("alpha", 0, instruction="[Human]: What about caching?")

    assert messages[0].content.endswith("[Human]: What about caching?")
    assert FIRST_ROUND_INSTRUCTION not in messages[0].content


def test_reset_clears_cursors(history):
    policy = _policy(history)
    policy.build("alpha", 1)

    policy.reset(IDS, {}, "Other", "")

    assert policy.cursor("alpha") is None


def test_messages_alternate_roles(history):
    policy = _policy(history)
    for rnd in (1, 2, 3):
        for rid in IDS:
            policy.build(rid, rnd)
        _commit_round(history, rnd)
        history.append(DebateMessage(HUMAN_ID, f"note {rnd}", rnd + 1))

    roles = [m.role for m in policy.build("gamma", 4)]

    assert roles[0] == "user"
    assert roles[-1] == "user"
    assert all(a != b for a, b in zip(roles, roles[1:]))


def test_opening_includes_interjections_made_before_first_call(history):
    policy = _policy(history, {"alpha": True})
    history.append(DebateMessage(HUMAN_ID, "Focus on security", 1))

    for rid in ("alpha", "beta"):
        content = policy.build(rid, 1)[0].content
        assert "Touches auth.\n\n[Human]: Focus on security\n\n" in content
        assert content.endswith(FIRST_ROUND_INSTRUCTION)


def test_opening_leaves_out_private_questions_for_others(history):
    policy = _policy(history)
    history.append(DebateMessage(HUMAN_ID, "Why?", 0, private_to="alpha"))

    assert "Why?" not in policy.build("beta", 1)[0].content
