"""
Global configuration for the FootyCast project.

This module centralizes the upstream API settings and every coefficient the
prediction engine uses (weight tables, clamp bounds, blend anchors), so you
can recalibrate in one place without touching the engine code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

# Upstream data provider (API-Football v3)
API_BASE_URL: str = os.getenv("FOOTYCAST_API_BASE", "https://v3.football.api-sports.io")
API_KEY_ENV: str = "APIFOOTBALL_KEY"
API_TIMEOUT_SECONDS: float = float(os.getenv("FOOTYCAST_API_TIMEOUT", "10"))

# Lookup cache (league baseline, referee profile, team tempo)
CACHE_TTL_SECONDS: float = float(os.getenv("FOOTYCAST_CACHE_TTL", "21600"))
CACHE_MAX_ITEMS: int = 2048

# Number of concurrent upstream fetches per prediction request
LOADER_MAX_WORKERS: int = int(os.getenv("FOOTYCAST_LOADER_WORKERS", "8"))

# Screener fan-out (odds fetched per fixture)
SCREENER_CONCURRENCY: int = max(2, min(12, int(os.getenv("SCREENER_CONCURRENCY", "6"))))

# Completed-match status codes used by the provider
FINISHED_STATUSES: Tuple[str, ...] = ("FT", "AET", "PEN")

# Recent-match windows for derived signals
TEAM_RECENT_MATCHES: int = 5
REFEREE_RECENT_MATCHES: int = 8
H2H_LAST: int = 10

SCORE_MATRIX_SIZE: int = 7  # 0..6 goals per side
ENGINE_VERSION: str = "footycast 1.0.0"


def _position_offense_weights() -> Dict[str, Dict[str, float]]:
    return {
        "FWD": {"goals": 0.45, "assists": 0.20, "shots_on": 0.15, "key_passes": 0.12, "dribbles": 0.08},
        "MID": {"goals": 0.25, "assists": 0.25, "key_passes": 0.20, "dribbles": 0.15, "shots_on": 0.15},
        "DEF": {"assists": 0.15, "key_passes": 0.15, "dribbles": 0.20, "shots_on": 0.10},
    }


def _position_defense_weights() -> Dict[str, Dict[str, float]]:
    return {
        "FWD": {"tackles": 0.35, "interceptions": 0.25, "blocks": 0.15, "duels_won": 0.25},
        "MID": {"tackles": 0.30, "interceptions": 0.30, "blocks": 0.15, "duels_won": 0.25},
        "DEF": {"tackles": 0.35, "interceptions": 0.35, "blocks": 0.15, "duels_won": 0.15},
    }


@dataclass(frozen=True)
class RatingConfig:
    """Coefficients for turning a player's season stats into Offense/Defense."""

    offense_weights: Dict[str, Dict[str, float]] = field(default_factory=_position_offense_weights)
    defense_weights: Dict[str, Dict[str, float]] = field(default_factory=_position_defense_weights)
    # weighted per-90 sum that maps to a full 100 score
    offense_scale: Dict[str, float] = field(
        default_factory=lambda: {"FWD": 1.2, "MID": 0.9, "DEF": 0.6}
    )
    defense_scale: Dict[str, float] = field(
        default_factory=lambda: {"FWD": 1.0, "MID": 1.2, "DEF": 1.4}
    )
    goalkeeper_offense: float = 20.0
    gk_save_weight: float = 0.7
    gk_conceded_weight: float = 0.2
    gk_conceded_cap: float = 2.0
    gk_penalty_weight: float = 0.1
    gk_penalty_cap: float = 0.2
    yellow_penalty: float = 0.02
    red_penalty: float = 0.08
    discipline_floor: float = 0.85
    neutral: float = 50.0
    shrink_minutes: float = 540.0
    shrink_floor: float = 0.35


@dataclass(frozen=True)
class TeamProfileConfig:
    """Weights for aggregating a lineup into a team profile."""

    position_weights: Dict[str, Tuple[float, float]] = field(
        default_factory=lambda: {
            "GK": (0.0, 1.0),
            "FWD": (1.0, 0.4),
            "MID": (0.6, 0.6),
            "DEF": (0.3, 0.9),
        }
    )
    fallback_rating: float = 80.0
    rating_floor: float = 20.0
    rating_ceiling: float = 180.0
    lineup_weight: float = 0.6  # the rest goes to the season baseline
    default_goals_avg: Optional[float] = None  # None: the league mean (rates 100)
    ideal_xi_size: int = 11


@dataclass(frozen=True)
class BaselineConfig:
    """League goal baseline (mu) settings."""

    default_mu_home: float = 1.60
    default_mu_away: float = 1.20
    min_matches: int = 30


@dataclass(frozen=True)
class ModifierConfig:
    """Bounds and coefficients of the lambda modifiers."""

    enabled: Tuple[str, ...] = (
        "lineup_confidence",
        "formation",
        "two_leg",
        "referee_tempo",
        "team_tempo",
        "rest_days",
        "set_piece",
        "season_form",
    )
    lineup_factors: Dict[str, float] = field(
        default_factory=lambda: {"high": 1.0, "medium": 0.97, "low": 0.94}
    )
    lineup_medium_window_minutes: float = 90.0

    formation_attack_boost: float = 1.02
    formation_defensive_opponent: float = 0.98
    formation_bounds: Tuple[float, float] = (0.98, 1.02)

    two_leg_window_days: float = 35.0
    two_leg_trail_per_goal: float = 0.04
    two_leg_trail_cap: float = 1.12
    two_leg_lead_factor: float = 0.97

    referee_min_matches: int = 5
    referee_base_cards: float = 4.4
    referee_base_fouls: float = 24.0
    referee_cards_weight: float = 0.6
    referee_sensitivity: float = 0.05
    referee_bounds: Tuple[float, float] = (0.92, 1.02)

    tempo_min_matches: int = 3
    tempo_base_shots: float = 12.5
    tempo_base_possession: float = 50.0
    tempo_base_shots_on_target: float = 4.2
    tempo_sensitivity: float = 0.1
    tempo_bounds: Tuple[float, float] = (0.94, 1.06)

    rest_fatigue_days: float = 2.0
    rest_fatigue_factor: float = 0.96
    rest_fresh_range: Tuple[float, float] = (7.0, 10.0)
    rest_fresh_factor: float = 1.01

    set_piece_min_diff: float = 1.5
    set_piece_per_corner: float = 0.01
    set_piece_bounds: Tuple[float, float] = (0.96, 1.04)

    form_bounds: Tuple[float, float] = (0.8, 1.2)


@dataclass(frozen=True)
class MatrixConfig:
    """Score grid and low-score correction settings."""

    size: int = SCORE_MATRIX_SIZE
    lambda_bounds: Tuple[float, float] = (0.2, 3.8)
    dixon_coles_mode: str = "fixed"  # "fixed" or "league"
    dixon_coles_factor: float = 1.06
    dixon_coles_sensitivity: float = 0.04
    dixon_coles_bounds: Tuple[float, float] = (1.02, 1.12)
    h2h_recent: int = 6
    h2h_min_meetings: int = 3
    h2h_low_avg_goals: float = 1.8
    h2h_low_total: int = 1
    h2h_low_count: int = 3
    h2h_boost: float = 0.015


@dataclass(frozen=True)
class MarketConfig:
    """Market parsing, blending and calibration settings."""

    min_odds: float = 1.01
    lone_side_cap: float = 0.95
    # (minutes to kickoff, model weight alpha)
    alpha_anchors: List[Tuple[float, float]] = field(
        default_factory=lambda: [(20.0, 0.55), (90.0, 0.60), (360.0, 0.68), (720.0, 0.75)]
    )
    renormalize_blend: bool = True
    calibration_bounds: Tuple[float, float] = (0.6, 1.6)
    calibration_iterations: int = 16
    calibration_tolerance: float = 0.01


@dataclass(frozen=True)
class EngineConfig:
    """Single configuration structure for the prediction engine."""

    rating: RatingConfig = field(default_factory=RatingConfig)
    team: TeamProfileConfig = field(default_factory=TeamProfileConfig)
    baseline: BaselineConfig = field(default_factory=BaselineConfig)
    modifiers: ModifierConfig = field(default_factory=ModifierConfig)
    matrix: MatrixConfig = field(default_factory=MatrixConfig)
    market: MarketConfig = field(default_factory=MarketConfig)
    top_scores: int = 5
