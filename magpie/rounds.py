"""Run one debate round: every reviewer in parallel, results returned as a batch."""

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass

from magpie.events import DebateObserver
from magpie.models import Message, Reviewer, ReviewerStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundRequest:
    reviewer: Reviewer
    messages: list[Message]


class RoundRunner:
    """Fan out pre-built requests, fan the responses back in input order.

    Responses are only handed back once every reviewer has finished; nothing
    here touches the conversation history.
    """

    def __init__(self, observer: DebateObserver) -> None:
        self._observer = observer

    async def run(
        self,
        round_number: int,
        requests: list[RoundRequest],
        stream: bool = False,
    ) -> list[str]:
        """Execute all requests concurrently.

        Args:
            round_number: The round being executed (for status reporting).
            requests: One request per reviewer, already built.
            stream: Use ``chat_stream`` and forward every chunk to the observer.

        Returns:
            Response texts in the same order as ``requests``.

        Raises:
            ProviderError: If any reviewer's agent fails; the other calls are
                cancelled and the round is abandoned.
        """
        statuses = [ReviewerStatus(reviewer_id=r.reviewer.id) for r in requests]
        self._publish(round_number, statuses)

        async def execute(index: int, request: RoundRequest) -> str:
            status = statuses[index]
            status.status = "thinking"
            status.started_at = time.monotonic()
            self._publish(round_number, statuses)

            reviewer = request.reviewer
            if stream:
                chunks: list[str] = []
                async for chunk in reviewer.provider.chat_stream(request.messages, reviewer.system_prompt):
                    chunks.append(chunk)
                    self._observer.on_message(reviewer.id, chunk)
                response = "".join(chunks)
            else:
                response = await reviewer.provider.chat(request.messages, reviewer.system_prompt)

            status.status = "done"
            status.finished_at = time.monotonic()
            logger.info("Round %d: %s done in %.1fs", round_number, reviewer.id, status.duration)
            self._publish(round_number, statuses)
            return response

        # First failure cancels the remaining calls before it propagates
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(execute(i, r)) for i, r in enumerate(requests)]
        except ExceptionGroup as failed:
            raise failed.exceptions[0] from None
        return [task.result() for task in tasks]

    def _publish(self, round_number: int, statuses: list[ReviewerStatus]) -> None:
        self._observer.on_parallel_status(round_number, [dataclasses.replace(s) for s in statuses])
