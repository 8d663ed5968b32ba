"""Observer interface for debate progress. Observers never steer the debate."""

from magpie.models import ReviewerStatus


class DebateObserver:
    """No-op base observer; subclass and override what you need.

    The two async hooks are the only inputs a caller can feed back in:
    ``get_interjection`` (checked before each round in interactive mode) and
    ``get_question`` (the post-analysis Q&A loop).
    """

    def on_message(self, author_id: str, chunk: str) -> None:
        """Text from an agent: whole responses in buffered runs, chunks when streaming."""

    def on_waiting(self, target: str) -> None:
        """An agent call is about to start: 'analyzer', 'round-<n>', 'convergence-check',
        'summarizer', or a reviewer id answering a question."""

    def on_round_complete(self, round_number: int, converged: bool) -> None:
        pass

    def on_parallel_status(self, round_number: int, statuses: list[ReviewerStatus]) -> None:
        pass

    def on_context_gathered(self, summary: str) -> None:
        pass

    async def get_interjection(self, round_number: int) -> str | None:
        """Return text to interject before the round, 'q' to stop, or None to continue."""
        return None

    async def get_question(self, reviewer_ids: list[str]) -> tuple[str, str] | None:
        """Return (reviewer_id, question) to ask one reviewer, or None to proceed."""
        return None
