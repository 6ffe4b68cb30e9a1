"""
Score matrix generator.

Expands two expected-goal rates into a 7x7 grid of final-score probabilities
(rows = home goals 0..6, columns = away goals 0..6) under independent Poisson
scoring, then applies low-score corrections:

- a Dixon-Coles-style multiplier on (0,0), (1,0), (0,1), (1,1);
- an optional head-to-head boost when recent meetings were low scoring.

Every returned grid is renormalised to sum to 1.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np
from scipy.stats import poisson

from footycast.config import MatrixConfig
from footycast.data.schema import MatchRecord
from footycast.utils.numeric import clamp

LOW_SCORE_CELLS = ((0, 0), (1, 0), (0, 1), (1, 1))


def poisson_pmf(lam: float, size: int) -> np.ndarray:
    """P(k) for k = 0..size-1."""
    return poisson.pmf(np.arange(size), lam)


def independent_poisson_matrix(lambda_home: float, lambda_away: float, size: int = 7) -> np.ndarray:
    """Outer product of the two Poisson pmfs (not renormalised)."""
    return np.outer(poisson_pmf(lambda_home, size), poisson_pmf(lambda_away, size))


def normalize(matrix: np.ndarray) -> np.ndarray:
    total = matrix.sum()
    if total <= 0:
        raise ValueError("Score matrix has no probability mass.")
    return matrix / total


def dixon_coles_factor(
    lambda_home: float,
    lambda_away: float,
    mu_total: Optional[float] = None,
    cfg: Optional[MatrixConfig] = None,
) -> float:
    """
    Low-score multiplier.

    In "fixed" mode this is `cfg.dixon_coles_factor`. In "league" mode it
    grows when the combined lambda is below the league's total goal rate and
    shrinks when above, within `cfg.dixon_coles_bounds`.
    """
    cfg = cfg or MatrixConfig()
    if cfg.dixon_coles_mode != "league" or not mu_total:
        return cfg.dixon_coles_factor
    gap = (mu_total - (lambda_home + lambda_away)) / mu_total
    return clamp(
        cfg.dixon_coles_factor + cfg.dixon_coles_sensitivity * gap,
        *cfg.dixon_coles_bounds,
    )


def build_score_matrix(
    lambda_home: float,
    lambda_away: float,
    correction: Optional[float] = None,
    cfg: Optional[MatrixConfig] = None,
) -> np.ndarray:
    """
    Poisson grid with the low-score correction applied and renormalised.

    Parameters
    ----------
    lambda_home, lambda_away : float
        Expected goals per side (already clamped by the caller).
    correction : float | None
        Low-score multiplier; defaults to the fixed Dixon-Coles factor.
        Pass 1.0 for a plain (renormalised) Poisson grid.
    cfg : MatrixConfig | None
        Grid size and default factor.
    """
    cfg = cfg or MatrixConfig()
    factor = cfg.dixon_coles_factor if correction is None else correction
    matrix = independent_poisson_matrix(lambda_home, lambda_away, cfg.size)
    for h, a in LOW_SCORE_CELLS:
        matrix[h, a] *= factor
    return normalize(matrix)


@dataclass(frozen=True)
class LowScoreBoost:
    applied: bool
    meetings: int = 0
    avg_goals: Optional[float] = None
    low_count: int = 0


def h2h_low_score_pattern(
    meetings: Iterable[MatchRecord], cfg: Optional[MatrixConfig] = None
) -> LowScoreBoost:
    """
    Inspect the most recent meetings (newest first) for a low-scoring pattern.

    The last `cfg.h2h_recent` meetings are taken first and then filtered to
    completed ones; at least `cfg.h2h_min_meetings` must remain.
    """
    cfg = cfg or MatrixConfig()
    recent = [m for m in list(meetings)[: cfg.h2h_recent] if m.is_finished]
    if len(recent) < cfg.h2h_min_meetings:
        return LowScoreBoost(applied=False, meetings=len(recent))

    totals = [m.total_goals for m in recent]
    avg = sum(totals) / len(totals)
    low_count = sum(1 for t in totals if t <= cfg.h2h_low_total)
    strong = avg < cfg.h2h_low_avg_goals or low_count >= cfg.h2h_low_count
    return LowScoreBoost(applied=strong, meetings=len(recent), avg_goals=avg, low_count=low_count)


def apply_low_score_boost(matrix: np.ndarray, boost: float) -> np.ndarray:
    """Add `boost` to each low-score cell and renormalise (returns a copy)."""
    out = matrix.copy()
    for h, a in LOW_SCORE_CELLS:
        out[h, a] += boost
    return normalize(out)
