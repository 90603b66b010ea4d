"""Score -> token reward math.

All amounts are Python ints in the token's smallest unit (wei-style). With 18
decimals a few thousand tokens already overflow 64 bits, so no floats here.
"""

from decimal import Decimal, InvalidOperation

DEFAULT_DECIMALS = 18


def compute_reward(score: int, difficulty_numerator: int = 1, decimals: int = DEFAULT_DECIMALS) -> int:
    """Return the reward for an already validated score.

    reward = floor(score * difficulty / 100) whole tokens, scaled to base units.
    """
    whole_units = (int(score) * int(difficulty_numerator)) // 100
    return whole_units * (10 ** int(decimals))


def parse_token_amount(value, decimals: int = DEFAULT_DECIMALS) -> int:
    """Parse a human token amount ("2000", "0.5") into base units."""
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid token amount: {value!r}")
    if not d.is_finite() or d < 0:
        raise ValueError(f"Invalid token amount: {value!r}")
    scaled = d.scaleb(int(decimals))
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Token amount {value!r} has more than {decimals} decimals")
    return int(scaled)


def format_token_amount(amount: int, decimals: int = DEFAULT_DECIMALS) -> str:
    """Base units -> human string, e.g. 2500000000000000000 -> "2.5"."""
    amount = int(amount)
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10 ** int(decimals))
    if not decimals or frac == 0:
        return f"{sign}{whole}.0"
    frac_str = str(frac).rjust(int(decimals), "0").rstrip("0")
    return f"{sign}{whole}.{frac_str}"
