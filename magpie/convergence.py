"""Convergence judge: one extra agent call classifying the latest round."""

import logging

from magpie.accounting import TokenAccountant
from magpie.models import SUMMARIZER_ID, DebateMessage, Message, Reviewer

logger = logging.getLogger(__name__)

CONVERGED = "CONVERGED"
NOT_CONVERGED = "NOT_CONVERGED"

# Round 1 holds independent opinions only, so it can never show convergence
MIN_ROUNDS_FOR_CONVERGENCE = 2

JUDGE_SYSTEM_PROMPT = (
    "You are a neutral, strict judge evaluating whether a debate has converged. "
    f"Reply with exactly one token: {CONVERGED} or {NOT_CONVERGED}."
)

_JUDGE_PROMPT = """There are exactly {count} reviewers in this debate. Below are their messages from round {round}.

Consensus requires ALL of the following:
1. Every reviewer reaches the same overall verdict.
2. No critical issue raised by any reviewer is left unacknowledged by the others.
3. No reviewer explicitly disagrees with another.
4. No reviewer silently ignores a point another reviewer made. Silence is NOT agreement.

If any condition fails, or you are unsure, the answer is {not_converged}.
Reply with exactly one token: {converged} or {not_converged}.

{messages}"""

_STRIP_CHARS = "*_`'\".,:;!"


def build_convergence_prompt(turns: list[DebateMessage], reviewer_count: int, round_number: int) -> str:
    messages_text = "\n\n".join(f"[{t.reviewer_id}]: {t.content}" for t in turns)
    return _JUDGE_PROMPT.format(
        count=reviewer_count,
        round=round_number,
        messages=messages_text,
        converged=CONVERGED,
        not_converged=NOT_CONVERGED,
    )


def parse_verdict(response: str) -> bool:
    """True only when the first whitespace-delimited token is CONVERGED.

    Anything else, including an empty or rambling reply, counts as not converged.
    """
    tokens = response.split()
    if not tokens:
        logger.warning("Empty convergence verdict, treating as %s", NOT_CONVERGED)
        return False
    verdict = tokens[0].strip(_STRIP_CHARS).upper()
    if verdict not in (CONVERGED, NOT_CONVERGED):
        logger.warning("Unrecognised convergence verdict %r, treating as %s", tokens[0], NOT_CONVERGED)
    return verdict == CONVERGED


class ConvergenceJudge:
    """Asks the judge agent (the summarizer) whether a round reached consensus."""

    def __init__(self, judge: Reviewer, accountant: TokenAccountant) -> None:
        self._judge = judge
        self._accountant = accountant

    async def check(self, round_number: int, turns: list[DebateMessage], reviewer_count: int) -> bool:
        if round_number < MIN_ROUNDS_FOR_CONVERGENCE:
            return False

        prompt = build_convergence_prompt(turns, reviewer_count, round_number)
        response = await self._judge.provider.chat([Message(role="user", content=prompt)], JUDGE_SYSTEM_PROMPT)
        self._accountant.track(SUMMARIZER_ID, prompt + JUDGE_SYSTEM_PROMPT, response)

        converged = parse_verdict(response)
        logger.info("Round %d convergence verdict: %s", round_number, CONVERGED if converged else NOT_CONVERGED)
        return converged
