"""
Bijou Pricing - Rounding Policies

Two independent policies:
- round_to_luxury_step: retail prices land on xx00 or xx90
- round_supplement_value: admin-edited surcharges land on a step or on xx00/xx50/xx90
"""

import math
from typing import Optional

LUXURY_STEP_OFFSETS = (0, 90, 100)
LUXURY_SUPPLEMENT_ENDINGS = (0, 50, 90)

STRATEGY_STEP = "step"
STRATEGY_LUXURY_CEIL = "luxury-ceil"
SUPPLEMENT_STRATEGIES = (STRATEGY_STEP, STRATEGY_LUXURY_CEIL)


def _is_finite(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def round_to_luxury_step(value: float) -> float:
    """
    Nearest of {⌊x/100⌋*100, +90, +100}.

    Ties go to the first candidate in ascending order; result is clamped at 0.
    Non-finite input yields 0.

    Examples:
    - 1540 → 1500
    - 1560 → 1590
    - 1995 → 1990 (|1995-1990| == |1995-2000|, first wins)
    """
    if not _is_finite(value):
        return 0

    base = math.floor(value / 100) * 100
    winner = base + LUXURY_STEP_OFFSETS[0]
    min_distance = abs(value - winner)
    for offset in LUXURY_STEP_OFFSETS[1:]:
        candidate = base + offset
        distance = abs(value - candidate)
        if distance < min_distance:
            winner = candidate
            min_distance = distance

    return max(winner, 0)


def apply_percentage(price: float, percent: float) -> float:
    """Scale a price by percent and round it to the luxury step"""
    return round_to_luxury_step(price * (1 + percent / 100))


def _luxury_ceil(value: float) -> int:
    target = math.floor(value)
    block = math.floor(target / 100) * 100
    # two blocks always suffice: block+90 or the next block's 00 is ≥ target
    while True:
        for ending in LUXURY_SUPPLEMENT_ENDINGS:
            candidate = block + ending
            if candidate >= target:
                return candidate
        block += 100


def round_supplement_value(
    value: float,
    step: float = 10,
    minimum: float = 0,
    strategy: Optional[str] = None,
) -> float:
    """
    Round a raw supplement entered by an admin.

    strategy="step": ⌈x/step⌉*step
    strategy="luxury-ceil" (default): smallest value ending in 00, 50 or 90 that is ≥ ⌊x⌋
    The result never goes below `minimum`.
    """
    strategy = strategy or STRATEGY_LUXURY_CEIL
    if strategy not in SUPPLEMENT_STRATEGIES:
        raise ValueError(f"Unknown supplement rounding strategy: {strategy}")

    if not _is_finite(value):
        return minimum

    if strategy == STRATEGY_STEP:
        if not step or step <= 0:
            raise ValueError("step must be a positive number")
        rounded = math.ceil(value / step) * step
    else:
        rounded = _luxury_ceil(value)

    return max(rounded, minimum)
