"""Decide what each reviewer sees on each turn and render it as a request.

Three request shapes exist:

* opening: the reviewer has never been called. It gets the prompt, the
  pre-analysis, any interjections already made and an instruction to
  assess independently. Nothing from other reviewers is included,
  whatever the round.
* incremental: the reviewer's agent keeps a server-side session. Only the
  turns it has not seen yet are sent, minus its own turns.
* reconstruction: the agent is stateless, so the whole visible debate is
  replayed on every call, with the reviewer's own turns as assistant
  messages.

A peer turn is visible only if it comes from an earlier round than the one
being built. Q&A turns are visible only to the reviewer they were addressed
to. Every request for a round is built before any of them runs, so each
reviewer sees the same set of peer turns.
"""

import logging

from magpie.history import ConversationHistory
from magpie.models import HUMAN_ID, DebateMessage, Message

logger = logging.getLogger(__name__)

FIRST_ROUND_INSTRUCTION = (
    "Give your own independent assessment. Other reviewers are looking at the same "
    "material in parallel; you will see their views in later rounds."
)

FOLLOW_UP_INSTRUCTION = (
    "Respond to the points above. Agree only where you genuinely agree, challenge "
    "flaws, point out anything that was missed, and add new insights."
)

CONTINUE_INSTRUCTION = (
    "There are no new messages from the other participants since your last response. "
    "Continue: refine your position and add anything you have not covered yet."
)

_DEBATE_FRAMING = """You are in a debate with {count} other AI reviewer{plural} (not humans): {others}.
There are {total} AI reviewers in total.

IMPORTANT:
- Messages marked [{example}] and similar are from OTHER AI models reviewing the same material
- Messages marked [Human] come from the person running the debate
- Do NOT be sycophantic or automatically agree: they are AI peers, not users to please
- Be intellectually honest: agree only if you genuinely agree, challenge if you see flaws
- Point out what they missed or got wrong, and add insights they have not covered
- If you agree on everything, say so briefly and add value in other ways"""


def _label(turn: DebateMessage) -> str:
    return "Human" if turn.reviewer_id == HUMAN_ID else turn.reviewer_id


def _append(messages: list[Message], role: str, content: str) -> None:
    """Append a message, merging into the previous one when the role repeats."""
    if messages and messages[-1].role == role:
        messages[-1] = Message(role=role, content=f"{messages[-1].content}\n\n{content}")
    else:
        messages.append(Message(role=role, content=content))


class VisibilityPolicy:
    """Builds per-reviewer requests from the shared history.

    Holds the per-reviewer cursors (how much of the history each reviewer
    has been shown) and the session flags fixed at run start.
    """

    def __init__(self, history: ConversationHistory) -> None:
        self._history = history
        self._reviewer_ids: list[str] = []
        self._session_backed: dict[str, bool] = {}
        self._cursors: dict[str, int | None] = {}
        self._opening = ""

    def reset(
        self,
        reviewer_ids: list[str],
        session_backed: dict[str, bool],
        prompt: str,
        analysis: str,
    ) -> None:
        """Start a new run: every cursor goes back to unseen."""
        self._reviewer_ids = list(reviewer_ids)
        self._session_backed = {rid: bool(session_backed.get(rid)) for rid in reviewer_ids}
        self._cursors = {rid: None for rid in reviewer_ids}
        self._opening = f"{prompt}\n\n## Pre-analysis\n\n{analysis}" if analysis else prompt

    def cursor(self, reviewer_id: str) -> int | None:
        return self._cursors[reviewer_id]

    def mark_seen(self, reviewer_id: str, upto: int) -> None:
        """Advance one reviewer's cursor, e.g. past its own Q&A exchange."""
        self._cursors[reviewer_id] = upto
        logger.debug("Cursor for %s moved to %d", reviewer_id, upto)

    def is_visible(self, turn: DebateMessage, reviewer_id: str, round_number: int) -> bool:
        if turn.private_to is not None:
            return turn.private_to == reviewer_id
        if turn.reviewer_id in (HUMAN_ID, reviewer_id):
            return True
        return turn.round_number < round_number

    def build(
        self,
        reviewer_id: str,
        round_number: int,
        instruction: str | None = None,
    ) -> list[Message]:
        """Return the request for reviewer_id in round_number and advance its cursor.

        ``instruction`` replaces the default closing instruction (used for
        Q&A questions and the summary request). Never raises for a known
        reviewer and never returns an empty request.
        """
        watermark = len(self._history)
        if self._cursors[reviewer_id] is None:
            messages = [Message(role="user", content=self._opening_request(instruction))]
        elif self._session_backed[reviewer_id]:
            messages = self._incremental(reviewer_id, round_number, instruction)
        else:
            messages = self._reconstruction(reviewer_id, round_number, instruction)

        self._cursors[reviewer_id] = watermark
        logger.debug(
            "Built %d message(s) for %s in round %d (cursor %d)",
            len(messages), reviewer_id, round_number, watermark,
        )
        return messages

    def _opening_request(self, instruction: str | None) -> str:
        """Opening text plus any public human turns already in history."""
        parts = [self._opening]
        parts += [
            f"[{_label(t)}]: {t.content}" for t in self._history
            if t.reviewer_id == HUMAN_ID and t.private_to is None
        ]
        parts.append(instruction or FIRST_ROUND_INSTRUCTION)
        return "\n\n".join(parts)

    def _incremental(self, reviewer_id: str, round_number: int, instruction: str | None) -> list[Message]:
        new_turns = [
            turn for _, turn in self._history.since(self._cursors[reviewer_id] or 0)
            if turn.reviewer_id != reviewer_id and self.is_visible(turn, reviewer_id, round_number)
        ]
        if not new_turns:
            closing = instruction or (FIRST_ROUND_INSTRUCTION if round_number == 1 else CONTINUE_INSTRUCTION)
            return [Message(role="user", content=closing)]

        parts = [f"[{_label(t)}]: {t.content}" for t in new_turns]
        parts.append(instruction or FOLLOW_UP_INSTRUCTION)
        return [Message(role="user", content="\n\n".join(parts))]

    def _framing(self, reviewer_id: str) -> str:
        others = [rid for rid in self._reviewer_ids if rid != reviewer_id]
        if not others:
            return ""
        return _DEBATE_FRAMING.format(
            count=len(others),
            plural="s" if len(others) > 1 else "",
            others=", ".join(others),
            total=len(self._reviewer_ids),
            example=others[0],
        )

    def _reconstruction(self, reviewer_id: str, round_number: int, instruction: str | None) -> list[Message]:
        visible = [t for t in self._history if self.is_visible(t, reviewer_id, round_number)]
        saw_peers = any(t.reviewer_id != reviewer_id for t in visible if t.private_to is None)

        opening = self._opening
        framing = self._framing(reviewer_id)
        if framing and round_number > 1:
            opening = f"{opening}\n\n{framing}"

        messages = [Message(role="user", content=opening)]
        for turn in visible:
            if turn.reviewer_id == reviewer_id:
                _append(messages, "assistant", turn.content)
            else:
                _append(messages, "user", f"[{_label(turn)}]: {turn.content}")

        if instruction is None:
            if round_number == 1:
                instruction = FIRST_ROUND_INSTRUCTION
            elif saw_peers:
                instruction = FOLLOW_UP_INSTRUCTION
            else:
                instruction = CONTINUE_INSTRUCTION
        _append(messages, "user", instruction)
        return messages
