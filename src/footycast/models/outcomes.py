"""
Outcome aggregation over a score matrix.

Read-only reductions: 1X2, both teams to score, over/under a goal line, and
the most likely scorelines.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

import numpy as np


@dataclass(frozen=True)
class ScoreProbability:
    home_goals: int
    away_goals: int
    prob: float

    @property
    def score(self) -> str:
        return f"{self.home_goals}-{self.away_goals}"


def one_x_two(matrix: np.ndarray) -> Dict[str, float]:
    """Home win (row > col), draw (diagonal), away win (row < col)."""
    return {
        "home": float(np.tril(matrix, k=-1).sum()),
        "draw": float(np.trace(matrix)),
        "away": float(np.triu(matrix, k=1).sum()),
    }


def btts_yes(matrix: np.ndarray) -> float:
    return float(matrix[1:, 1:].sum())


def over_line(matrix: np.ndarray, line: float = 2.5) -> float:
    """P(total goals > line)."""
    rows, cols = np.indices(matrix.shape)
    return float(matrix[(rows + cols) > line].sum())


def over_under_25(matrix: np.ndarray) -> Dict[str, float]:
    over = over_line(matrix, 2.5)
    return {"over25": over, "under25": 1.0 - over}


def top_scores(matrix: np.ndarray, n: int = 5) -> List[ScoreProbability]:
    """
    The `n` most likely scorelines, highest first.

    Ties keep row-major order (0-0, 0-1, ..., 1-0, ...), so identical inputs
    always give the identical list.
    """
    cells = [
        ScoreProbability(h, a, float(matrix[h, a]))
        for h in range(matrix.shape[0])
        for a in range(matrix.shape[1])
    ]
    # sorted() is stable
    return sorted(cells, key=lambda c: -c.prob)[:n]
