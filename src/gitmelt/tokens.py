"""Approximate token counting.

The estimate is a fixed characters-per-token ratio, close to what common LLM
tokenizers produce on source code and English prose. It never looks at the
content, so it is an approximation and must be reported as one.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from gitmelt.config import CHARS_PER_TOKEN

if TYPE_CHECKING:
    from collections.abc import Iterable


def estimate_tokens(char_count: int, *, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Estimate the number of tokens in a text of `char_count` characters.

    Args:
        char_count (int): number of characters (or bytes, when characters are unknown)
        chars_per_token (int): characters per token ratio

    Raises:
        ValueError: if `chars_per_token` is not positive.

    Returns:
        int: the estimated token count, rounded up
    """
    if chars_per_token <= 0:
        msg = "chars_per_token must be positive"
        raise ValueError(msg)
    return math.ceil(max(0, char_count) / chars_per_token)


def estimate_tokens_for(counts: Iterable[int], *, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Estimate tokens for several per-file counts taken together."""
    return estimate_tokens(sum(counts), chars_per_token=chars_per_token)
