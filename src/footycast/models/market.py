"""
Market parsing, 1X2 blending and total-goals calibration.

Bookmaker decimal odds become implied probabilities (1 / odds), are de-vigged
per bookmaker by normalising each outcome set, then averaged across books.
The model's 1X2 split is blended toward the market with a weight that
depends on time to kickoff, and the two lambdas are rescaled by one common
factor so the matrix's Over 2.5 matches the market.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from footycast.config import MarketConfig
from footycast.data.schema import OddsRecord
from footycast.utils.logging_utils import get_logger
from footycast.utils.numeric import clamp

logger = get_logger(__name__)

ONE_X_TWO_ALLOW = re.compile(r"(^|\s)(full\s*time\s*result|match\s*winner|1x2)(\s|$)", re.I)
ONE_X_TWO_BLOCK = re.compile(
    r"(to\s*qualify|double\s*chance|draw\s*no\s*bet|handicap|asian|1st|2nd|"
    r"first\s*half|second\s*half|overtime|extra\s*time|penalt)",
    re.I,
)
TOTALS_ALLOW = re.compile(r"(over/under|totals?|total\s*goals)", re.I)
TOTALS_BLOCK = re.compile(
    r"(1st|2nd|first\s*half|second\s*half|asian|handicap|overtime|extra\s*time|home|away|team)",
    re.I,
)
BTTS_ALLOW = re.compile(r"(both\s*teams\s*(to\s*)?score|btts)", re.I)
BTTS_BLOCK = re.compile(r"(1st|2nd|first\s*half|second\s*half|overtime|extra\s*time)", re.I)
OVER_25 = re.compile(r"^over2\.?5$")
UNDER_25 = re.compile(r"^under2\.?5$")


@dataclass(frozen=True)
class Implied1X2:
    home: float
    draw: float
    away: float
    samples: int = 1

    def as_dict(self) -> Dict[str, float]:
        return {"home": self.home, "draw": self.draw, "away": self.away}


@dataclass(frozen=True)
class ImpliedOverUnder:
    over25: float
    under25: float
    samples: int = 1


@dataclass(frozen=True)
class ImpliedBTTS:
    yes: float
    no: float
    samples: int = 1


def _implied(odd: float, cfg: MarketConfig) -> Optional[float]:
    if not odd or odd <= cfg.min_odds:
        return None
    return 1.0 / odd


def parse_1x2(odds: OddsRecord, cfg: Optional[MarketConfig] = None) -> Optional[Implied1X2]:
    """Average de-vigged full-time result probabilities across bookmakers."""
    cfg = cfg or MarketConfig()
    triplets: List[Tuple[float, float, float]] = []
    for bm in odds.bookmakers:
        for market in bm.markets:
            name = market.name.lower()
            if not ONE_X_TWO_ALLOW.search(name) or ONE_X_TWO_BLOCK.search(name):
                continue
            home = draw = away = None
            for label, odd in market.outcomes.items():
                lab = label.strip().lower()
                p = _implied(odd, cfg)
                if p is None:
                    continue
                if lab == "1" or "home" in lab:
                    home = p
                elif lab == "x" or "draw" in lab:
                    draw = p
                elif lab == "2" or "away" in lab:
                    away = p
            if home and draw and away:
                total = home + draw + away
                triplets.append((home / total, draw / total, away / total))

    if not triplets:
        return None
    mean = np.mean(np.array(triplets), axis=0)
    return Implied1X2(float(mean[0]), float(mean[1]), float(mean[2]), samples=len(triplets))


def _parse_two_way(
    odds: OddsRecord,
    allow: re.Pattern,
    block: re.Pattern,
    classify: Callable[[str], Optional[str]],
    cfg: MarketConfig,
) -> Optional[Tuple[float, float, int]]:
    """
    Shared de-vig for yes/no style markets.

    A bookmaker quoting both sides contributes a normalised pair; a lone side
    contributes `min(cap, 1/odds)` to that side only. The two side averages
    are renormalised when both exist.
    """
    firsts: List[float] = []
    seconds: List[float] = []
    for bm in odds.bookmakers:
        for market in bm.markets:
            name = market.name.lower()
            if not allow.search(name) or block.search(name):
                continue
            first = second = None
            for label, odd in market.outcomes.items():
                side = classify(label)
                p = _implied(odd, cfg)
                if side is None or p is None:
                    continue
                if side == "first":
                    first = p
                else:
                    second = p
            if first and second:
                total = first + second
                firsts.append(first / total)
                seconds.append(second / total)
            elif first:
                firsts.append(min(cfg.lone_side_cap, first))
            elif second:
                seconds.append(min(cfg.lone_side_cap, second))

    if not firsts and not seconds:
        return None
    if firsts and seconds:
        f, s = float(np.mean(firsts)), float(np.mean(seconds))
        total = f + s
        return f / total, s / total, max(len(firsts), len(seconds))
    if firsts:
        f = float(np.mean(firsts))
        return f, 1.0 - f, len(firsts)
    s = float(np.mean(seconds))
    return 1.0 - s, s, len(seconds)


def _classify_total(label: str) -> Optional[str]:
    lab = re.sub(r"\s+", "", label.lower())
    if OVER_25.match(lab):
        return "first"
    if UNDER_25.match(lab):
        return "second"
    return None


def _classify_btts(label: str) -> Optional[str]:
    lab = label.strip().lower()
    if lab == "yes":
        return "first"
    if lab == "no":
        return "second"
    return None


def parse_over_under_25(
    odds: OddsRecord, cfg: Optional[MarketConfig] = None
) -> Optional[ImpliedOverUnder]:
    """Market-implied Over/Under 2.5 total goals."""
    cfg = cfg or MarketConfig()
    out = _parse_two_way(odds, TOTALS_ALLOW, TOTALS_BLOCK, _classify_total, cfg)
    return None if out is None else ImpliedOverUnder(*out)


def parse_btts(odds: OddsRecord, cfg: Optional[MarketConfig] = None) -> Optional[ImpliedBTTS]:
    """Market-implied both-teams-to-score."""
    cfg = cfg or MarketConfig()
    out = _parse_two_way(odds, BTTS_ALLOW, BTTS_BLOCK, _classify_btts, cfg)
    return None if out is None else ImpliedBTTS(*out)


def blend_alpha(minutes_to_kickoff: float, cfg: Optional[MarketConfig] = None) -> float:
    """
    Model weight for the 1X2 blend.

    Piecewise linear over `cfg.alpha_anchors` and flat outside them: small
    (more market weight) close to kickoff, large far from it.
    """
    cfg = cfg or MarketConfig()
    xs = [m for m, _ in cfg.alpha_anchors]
    ys = [a for _, a in cfg.alpha_anchors]
    return float(np.interp(max(minutes_to_kickoff, 0.0), xs, ys))


@dataclass(frozen=True)
class BlendResult:
    probs: Dict[str, float]
    alpha: Optional[float]
    applied: bool
    renormalized: bool


def blend_1x2(
    model: Dict[str, float],
    market: Optional[Implied1X2],
    alpha: float,
    cfg: Optional[MarketConfig] = None,
) -> BlendResult:
    """
    alpha * model + (1 - alpha) * market per outcome, clamped to [0, 1].

    With `cfg.renormalize_blend` the three values are rescaled to sum to 1.
    Without a market the model split is returned unchanged.
    """
    cfg = cfg or MarketConfig()
    if market is None:
        return BlendResult(dict(model), None, applied=False, renormalized=False)

    mk = market.as_dict()
    blended = {
        k: clamp(alpha * model[k] + (1.0 - alpha) * mk[k], 0.0, 1.0) for k in ("home", "draw", "away")
    }
    renormalized = False
    total = sum(blended.values())
    if cfg.renormalize_blend and total > 0:
        blended = {k: v / total for k, v in blended.items()}
        renormalized = True
    return BlendResult(blended, alpha, applied=True, renormalized=renormalized)


@dataclass(frozen=True)
class CalibrationResult:
    applied: bool
    scale: float = 1.0
    target: Optional[float] = None
    model_over25: Optional[float] = None
    achieved: Optional[float] = None
    iterations: int = 0
    converged: bool = False


def calibrate_total_goals(
    lambda_home: float,
    lambda_away: float,
    target_over25: float,
    over25_for: Callable[[float, float], float],
    cfg: Optional[MarketConfig] = None,
) -> CalibrationResult:
    """
    Bisection for one common scale on both lambdas so Over 2.5 hits `target_over25`.

    Parameters
    ----------
    lambda_home, lambda_away : float
        Pre-calibration expected goals.
    target_over25 : float
        Market-implied Over 2.5 probability.
    over25_for : Callable[[float, float], float]
        Over 2.5 probability of the matrix built from (scaled) lambdas.
        Must be increasing in the scale.
    cfg : MarketConfig | None
        Search bounds, iteration budget and tolerance.

    The home/away ratio is preserved. Targets outside what the bounds can
    reach end at the nearest bound with `converged=False`.
    """
    cfg = cfg or MarketConfig()
    lo, hi = cfg.calibration_bounds
    model_over = over25_for(lambda_home, lambda_away)

    def over_at(scale: float) -> float:
        return over25_for(lambda_home * scale, lambda_away * scale)

    for _ in range(cfg.calibration_iterations):
        mid = (lo + hi) / 2.0
        if over_at(mid) < target_over25:
            lo = mid
        else:
            hi = mid

    scale = (lo + hi) / 2.0
    achieved = over_at(scale)
    converged = abs(achieved - target_over25) < cfg.calibration_tolerance
    if not converged:
        logger.info(
            "Total-goals calibration stopped at scale %.3f (achieved %.3f, target %.3f).",
            scale,
            achieved,
            target_over25,
        )
    return CalibrationResult(
        applied=True,
        scale=scale,
        target=target_over25,
        model_over25=model_over,
        achieved=achieved,
        iterations=cfg.calibration_iterations,
        converged=converged,
    )
