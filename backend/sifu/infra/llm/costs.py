"""Answer cost model.

Token counts are estimated from text length, so this is a rough,
token-proportional figure rather than the provider's invoice amount.
Pricing is in USD per 1 million tokens (input, output).
"""

import math
from typing import Final

# Anthropic models (Claude 3.5 Sonnet)
ANTHROPIC_CLAUDE_35_SONNET_PRICING: Final[tuple[float, float]] = (3.00, 15.00)

CHARS_PER_TOKEN: Final[int] = 4
MIN_COST_CENTS: Final[int] = 1


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_cost_cents(
    question_text: str,
    response_text: str,
    *,
    pricing: tuple[float, float] = ANTHROPIC_CLAUDE_35_SONNET_PRICING,
) -> int:
    """Whole cents for one generated answer, never below MIN_COST_CENTS."""
    input_cents = estimate_tokens(question_text) / 1_000_000 * pricing[0] * 100
    output_cents = estimate_tokens(response_text) / 1_000_000 * pricing[1] * 100
    return max(MIN_COST_CENTS, round(input_cents + output_cents))
