"""
Expected-goal rate (lambda) calculator.
"""

from __future__ import annotations

from typing import Tuple

from footycast.utils.numeric import clamp

LAMBDA_BOUNDS: Tuple[float, float] = (0.2, 3.8)


def base_lambda(mu_side: float, offense: float, opponent_defense: float) -> float:
    """
    mu_side * (Offense / 100) * (100 / opponent Defense).

    Two average teams (100/100) give exactly the league baseline.
    """
    if opponent_defense <= 0:
        raise ValueError("Opponent defense rating must be positive.")
    return mu_side * (offense / 100.0) * (100.0 / opponent_defense)


def clamp_lambda(value: float, bounds: Tuple[float, float] = LAMBDA_BOUNDS) -> float:
    return clamp(value, bounds[0], bounds[1])
