from __future__ import annotations

import pytest

from gitmelt.tokens import estimate_tokens, estimate_tokens_for


@pytest.mark.unit
@pytest.mark.parametrize(
    ("chars", "tokens"),
    [(0, 0), (1, 1), (4, 1), (5, 2), (4000, 1000), (-3, 0)],
)
def test_estimate_tokens_rounds_up(chars: int, tokens: int) -> None:
    assert estimate_tokens(chars) == tokens


@pytest.mark.unit
def test_estimate_tokens_custom_ratio() -> None:
    assert estimate_tokens(10, chars_per_token=3) == 4


@pytest.mark.unit
def test_estimate_tokens_rejects_non_positive_ratio() -> None:
    with pytest.raises(ValueError, match="chars_per_token must be positive"):
        estimate_tokens(10, chars_per_token=0)


@pytest.mark.unit
def test_estimate_tokens_for_sums_before_rounding() -> None:
    assert estimate_tokens_for([3, 5]) == 2
    assert estimate_tokens_for([]) == 0
