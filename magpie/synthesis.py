"""Final conclusion: anonymize reviewer summaries, call the summarizer."""

import logging

from magpie.accounting import TokenAccountant
from magpie.models import SUMMARIZER_ID, DebateSummary, Message, Reviewer

logger = logging.getLogger(__name__)

SUMMARY_INSTRUCTION = "Please summarize your key points and conclusions. Do not reveal your identity or role."

_CONCLUSION_PROMPT = """There are exactly {count} reviewers in this debate. Based on their anonymous summaries below, provide a final conclusion including:
- Points of consensus
- Points of disagreement with analysis
- Recommended action items

{summaries}"""


def format_summaries(summaries: list[DebateSummary]) -> str:
    """Number the summaries; reviewer ids are never shown to the summarizer."""
    return "\n\n---\n\n".join(f"Reviewer {i}:\n{s.summary}" for i, s in enumerate(summaries, start=1))


def build_conclusion_prompt(summaries: list[DebateSummary]) -> str:
    return _CONCLUSION_PROMPT.format(count=len(summaries), summaries=format_summaries(summaries))


async def conclude(
    summarizer: Reviewer,
    summaries: list[DebateSummary],
    accountant: TokenAccountant,
) -> str:
    """Ask the summarizer for the final conclusion.

    Args:
        summarizer: The agent producing the conclusion.
        summaries: One self-summary per reviewer, in reviewer order.
        accountant: Charged under the summarizer id.

    Returns:
        The summarizer's response text.

    Raises:
        ProviderError: If the summarizer call fails.
    """
    prompt = build_conclusion_prompt(summaries)
    logger.info("Running final conclusion via %s", summarizer.provider.name())
    response = await summarizer.provider.chat([Message(role="user", content=prompt)], summarizer.system_prompt)
    accountant.track(SUMMARIZER_ID, prompt + (summarizer.system_prompt or ""), response)
    return response
