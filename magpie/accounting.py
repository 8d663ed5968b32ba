"""Estimated token accounting per debate participant."""

import logging
import math

from magpie.models import TokenUsage

logger = logging.getLogger(__name__)

# ~4 characters per token; good enough for cost estimates across providers
_CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / _CHARS_PER_TOKEN)


class TokenAccountant:
    """Accumulates input/output token estimates keyed by participant id.

    Counts only ever grow during a run; ``reset`` is called once at run start.
    """

    def __init__(self, cost_per_token: float = 0.00001) -> None:
        self._cost_per_token = cost_per_token
        self._usage: dict[str, list[int]] = {}

    def reset(self) -> None:
        self._usage = {}

    def track(self, participant_id: str, input_text: str, output_text: str) -> None:
        """Record one agent call's estimated input and output tokens."""
        counts = self._usage.setdefault(participant_id, [0, 0])
        counts[0] += estimate_tokens(input_text)
        counts[1] += estimate_tokens(output_text)
        logger.debug(
            "Tokens for %s now %d in / %d out", participant_id, counts[0], counts[1]
        )

    def usage(self) -> list[TokenUsage]:
        """Per-participant usage in first-seen order."""
        return [
            TokenUsage(
                reviewer_id=participant_id,
                input_tokens=inp,
                output_tokens=out,
                estimated_cost=(inp + out) * self._cost_per_token,
            )
            for participant_id, (inp, out) in self._usage.items()
        ]
