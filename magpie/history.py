"""Append-only conversation history shared by one debate run."""

from collections.abc import Iterator

from magpie.models import DebateMessage


class ConversationHistory:
    """Ordered log of turns. Turns are never edited or removed."""

    def __init__(self) -> None:
        self._turns: list[DebateMessage] = []

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[DebateMessage]:
        return iter(self._turns)

    def __getitem__(self, index: int) -> DebateMessage:
        return self._turns[index]

    def append(self, turn: DebateMessage) -> int:
        """Append a turn and return its index."""
        self._turns.append(turn)
        return len(self._turns) - 1

    def clear(self) -> None:
        """Reset the log. Only called at the start of a run."""
        self._turns = []

    def snapshot(self) -> tuple[DebateMessage, ...]:
        return tuple(self._turns)

    def since(self, index: int) -> list[tuple[int, DebateMessage]]:
        """Return (index, turn) pairs for every turn at or after index."""
        return [(i, self._turns[i]) for i in range(max(index, 0), len(self._turns))]

    def round_turns(self, round_number: int, reviewer_ids: list[str]) -> list[DebateMessage]:
        """Turns committed by reviewers in the given round, in commit order."""
        ids = set(reviewer_ids)
        return [
            t for t in self._turns
            if t.round_number == round_number and t.reviewer_id in ids and t.private_to is None
        ]
