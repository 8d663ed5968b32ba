"""Debate orchestration: pre-analysis, Q&A, parallel rounds, summaries, conclusion."""

import logging

from magpie.accounting import TokenAccountant
from magpie.convergence import ConvergenceJudge
from magpie.events import DebateObserver
from magpie.history import ConversationHistory
from magpie.models import (
    ANALYZER_ID,
    HUMAN_ID,
    RESERVED_IDS,
    SUMMARIZER_ID,
    DebateMessage,
    DebateOptions,
    DebateResult,
    DebateSummary,
    Message,
    Reviewer,
)
from magpie.providers.base import SessionProvider
from magpie.rounds import RoundRequest, RoundRunner
from magpie.synthesis import SUMMARY_INSTRUCTION, conclude
from magpie.visibility import VisibilityPolicy

logger = logging.getLogger(__name__)

QUIT_SIGNAL = "q"


def _input_text(messages: list[Message], system_prompt: str | None) -> str:
    return "\n".join(m.content for m in messages) + (system_prompt or "")


class DebateOrchestrator:
    """Coordinates one debate at a time.

    History, cursors and token counts live on the instance and are reset at
    the start of every run, so one instance must not run two debates
    concurrently.
    """

    def __init__(
        self,
        reviewers: list[Reviewer],
        summarizer: Reviewer,
        analyzer: Reviewer,
        options: DebateOptions | None = None,
        observer: DebateObserver | None = None,
    ) -> None:
        if not reviewers:
            raise ValueError("At least one reviewer is required")
        ids = [r.id for r in reviewers]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Reviewer ids must be unique, got {ids}")
        reserved = RESERVED_IDS.intersection(ids)
        if reserved:
            raise ValueError(f"Reserved reviewer id(s): {', '.join(sorted(reserved))}")
        session_providers = [id(r.provider) for r in reviewers if isinstance(r.provider, SessionProvider)]
        if len(set(session_providers)) != len(session_providers):
            raise ValueError("Session-backed reviewers must each have their own provider instance")

        self._options = options or DebateOptions()
        if self._options.max_rounds < 1:
            raise ValueError(f"max_rounds must be at least 1, got {self._options.max_rounds}")

        self._reviewers = list(reviewers)
        self._by_id = {r.id: r for r in reviewers}
        self._summarizer = summarizer
        self._analyzer = analyzer
        self._observer = observer or DebateObserver()

        self._history = ConversationHistory()
        self._accountant = TokenAccountant(self._options.cost_per_token)
        self._policy = VisibilityPolicy(self._history)
        self._runner = RoundRunner(self._observer)
        self._judge = ConvergenceJudge(summarizer, self._accountant)
        self._rounds_completed = 0

    @property
    def reviewer_ids(self) -> list[str]:
        return [r.id for r in self._reviewers]

    async def run(self, label: str, prompt: str) -> DebateResult:
        """Run the full debate; the observer receives whole responses."""
        return await self._run(label, prompt, stream=False)

    async def run_streaming(self, label: str, prompt: str) -> DebateResult:
        """Run the full debate; the observer receives response chunks as they arrive."""
        return await self._run(label, prompt, stream=True)

    async def _run(self, label: str, prompt: str, stream: bool) -> DebateResult:
        self._history.clear()
        self._accountant.reset()
        self._rounds_completed = 0

        session_backed = self._open_sessions()
        try:
            analysis = await self._pre_analyze(prompt, stream)
            self._policy.reset(self.reviewer_ids, session_backed, prompt, analysis)
            await self._question_phase(stream)
            converged_at_round = await self._debate_rounds(stream)

            self._observer.on_waiting(SUMMARIZER_ID)
            summaries = await self._collect_summaries()
            final_conclusion = await conclude(self._summarizer, summaries, self._accountant)
        finally:
            self._close_sessions(session_backed)

        return DebateResult(
            label=label,
            analysis=analysis,
            messages=self._history.snapshot(),
            summaries=tuple(summaries),
            final_conclusion=final_conclusion,
            token_usage=tuple(self._accountant.usage()),
            converged_at_round=converged_at_round,
        )

    def _open_sessions(self) -> dict[str, bool]:
        """Start sessions once and record which reviewers are session-backed for this run."""
        session_backed: dict[str, bool] = {}
        for reviewer in self._reviewers:
            provider = reviewer.provider
            if isinstance(provider, SessionProvider):
                provider.start_session()
                session_backed[reviewer.id] = provider.has_session
            else:
                session_backed[reviewer.id] = False
        logger.debug("Session-backed reviewers: %s", [rid for rid, s in session_backed.items() if s])
        return session_backed

    def _close_sessions(self, session_backed: dict[str, bool]) -> None:
        for reviewer in self._reviewers:
            if session_backed.get(reviewer.id):
                reviewer.provider.end_session()

    async def _call(self, agent: Reviewer, messages: list[Message], stream: bool, author_id: str) -> str:
        """One agent call, emitting its text to the observer under author_id."""
        if stream:
            chunks: list[str] = []
            async for chunk in agent.provider.chat_stream(messages, agent.system_prompt):
                chunks.append(chunk)
                self._observer.on_message(author_id, chunk)
            return "".join(chunks)

        response = await agent.provider.chat(messages, agent.system_prompt)
        self._observer.on_message(author_id, response)
        return response

    async def _pre_analyze(self, prompt: str, stream: bool) -> str:
        logger.info("Running pre-analysis via %s", self._analyzer.provider.name())
        self._observer.on_waiting(ANALYZER_ID)
        messages = [Message(role="user", content=prompt)]
        analysis = await self._call(self._analyzer, messages, stream, ANALYZER_ID)
        self._accountant.track(ANALYZER_ID, _input_text(messages, self._analyzer.system_prompt), analysis)
        return analysis

    async def _question_phase(self, stream: bool) -> None:
        """Route targeted human questions to single reviewers until the caller proceeds."""
        while True:
            asked = await self._observer.get_question(self.reviewer_ids)
            if asked is None:
                return
            target_id, question = asked
            reviewer = self._by_id.get(target_id)
            if reviewer is None or not question.strip():
                logger.debug("Ignoring question for unknown reviewer %r", target_id)
                continue

            messages = self._policy.build(target_id, 0, instruction=f"[Human]: {question}")
            self._observer.on_waiting(target_id)
            answer = await self._call(reviewer, messages, stream, target_id)
            self._accountant.track(target_id, _input_text(messages, reviewer.system_prompt), answer)

            self._history.append(DebateMessage(HUMAN_ID, question, 0, private_to=target_id))
            index = self._history.append(DebateMessage(target_id, answer, 0, private_to=target_id))
            self._policy.mark_seen(target_id, index + 1)

    async def _debate_rounds(self, stream: bool) -> int | None:
        """Run rounds until max_rounds, convergence, or a quit signal."""
        options = self._options
        for round_number in range(1, options.max_rounds + 1):
            if options.interactive:
                interjection = await self._observer.get_interjection(round_number)
                if interjection is not None and interjection.strip() == QUIT_SIGNAL:
                    logger.info("Debate stopped by user before round %d", round_number)
                    break
                if interjection and interjection.strip():
                    self._history.append(DebateMessage(HUMAN_ID, interjection.strip(), round_number))

            # All requests are built before any reviewer runs: identical visibility per round
            requests = [
                RoundRequest(reviewer, self._policy.build(reviewer.id, round_number))
                for reviewer in self._reviewers
            ]

            logger.info("Starting round %d with %d reviewers", round_number, len(requests))
            self._observer.on_waiting(f"round-{round_number}")
            responses = await self._runner.run(round_number, requests, stream=stream)

            for request, response in zip(requests, responses):
                reviewer = request.reviewer
                self._history.append(DebateMessage(reviewer.id, response, round_number))
                self._accountant.track(reviewer.id, _input_text(request.messages, reviewer.system_prompt), response)
                if not stream:
                    self._observer.on_message(reviewer.id, response)
            self._rounds_completed = round_number

            converged = False
            if options.check_convergence and round_number < options.max_rounds and round_number >= 2:
                self._observer.on_waiting("convergence-check")
                turns = self._history.round_turns(round_number, self.reviewer_ids)
                converged = await self._judge.check(round_number, turns, len(self._reviewers))

            self._observer.on_round_complete(round_number, converged)
            if converged:
                logger.info("Consensus reached at round %d, stopping early", round_number)
                return round_number

        return None

    async def _collect_summaries(self) -> list[DebateSummary]:
        """Ask every reviewer for an anonymous self-summary.

        Summaries are always buffered, even in streaming runs, and are not
        added to history.
        """
        summary_round = self._rounds_completed + 1
        requests = [
            RoundRequest(reviewer, self._policy.build(reviewer.id, summary_round, instruction=SUMMARY_INSTRUCTION))
            for reviewer in self._reviewers
        ]
        responses = await self._runner.run(summary_round, requests)

        summaries: list[DebateSummary] = []
        for request, summary in zip(requests, responses):
            reviewer = request.reviewer
            self._accountant.track(reviewer.id, _input_text(request.messages, reviewer.system_prompt), summary)
            summaries.append(DebateSummary(reviewer_id=reviewer.id, summary=summary))
        return summaries
