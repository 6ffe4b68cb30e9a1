"""
Prediction engine.

Wires the rating engine, team profiles, modifier pipeline, score matrix,
market calibration/blending and outcome aggregation into one pure,
synchronous computation over a `MatchInputs` snapshot:

    ratings -> team profiles -> base lambdas -> modifiers -> clamp
            -> H2H pattern -> market calibration on the final grid -> aggregates
            -> 1X2 blend

Only a fixture without id, kickoff or team ids is an error; every other
missing signal resolves to its neutral default.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import numpy as np

from footycast.config import ENGINE_VERSION, EngineConfig
from footycast.data.provider_predictions import ProviderPrediction, parse_provider_prediction
from footycast.data.schema import MatchInputs, MatchRecord, validate_fixture
from footycast.features.league_baseline import LeagueBaseline, default_baseline
from footycast.features.ratings import PlayerRating, rate_players
from footycast.features.signals import (
    detect_two_leg_tie,
    formation_shape,
    lineup_confidence,
    minutes_to_kickoff,
    rest_days,
)
from footycast.features.team_profile import (
    TeamRatingProfile,
    blend_profiles,
    build_team_profile,
    ideal_xi,
    key_absentees,
    season_baseline_profile,
    xi_factors,
)
from footycast.models.lambdas import base_lambda, clamp_lambda
from footycast.models.market import (
    BlendResult,
    CalibrationResult,
    Implied1X2,
    ImpliedOverUnder,
    blend_1x2,
    blend_alpha,
    calibrate_total_goals,
    parse_1x2,
    parse_over_under_25,
)
from footycast.models.modifiers import AppliedModifier, ModifierContext, ModifierPipeline
from footycast.models.outcomes import ScoreProbability, btts_yes, one_x_two, over_under_25, top_scores
from footycast.models.score_matrix import (
    LowScoreBoost,
    apply_low_score_boost,
    build_score_matrix,
    dixon_coles_factor,
    h2h_low_score_pattern,
)
from footycast.utils.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass
class SideDetail:
    """Lineup/rating detail for one team, kept for explainability."""

    profile: TeamRatingProfile
    lineup_profile: TeamRatingProfile
    season_profile: TeamRatingProfile
    ideal_xi: List[int]
    current_xi: List[int]
    xi_factors: Dict[str, float]
    key_out: List[int]
    injuries: int
    formation: Optional[str]
    formation_shape: Optional[str]


@dataclass
class PredictionResult:
    """Everything the engine produces for one fixture."""

    fixture_id: int
    as_of: datetime
    baseline: LeagueBaseline
    lambda_home: float
    lambda_away: float
    lambda_home_raw: float
    lambda_away_raw: float
    matrix: np.ndarray
    win_probs_model: Dict[str, float]
    win_probs_blended: Dict[str, float]
    btts_yes: float
    over25: float
    under25: float
    top_scores: List[ScoreProbability]
    home: SideDetail
    away: SideDetail
    modifiers: List[AppliedModifier]
    lineup_confidence: str
    calibration: CalibrationResult
    blend: BlendResult
    h2h_boost: LowScoreBoost
    dixon_coles: float
    market_1x2: Optional[Implied1X2] = None
    market_ou25: Optional[ImpliedOverUnder] = None
    provider: Optional[ProviderPrediction] = None
    missing_sources: List[str] = field(default_factory=list)
    player_ratings: Dict[str, Dict[int, PlayerRating]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Flat JSON-ready view; probabilities/lambdas to 3 dp, ratings to 1 dp."""

        def r3(x: float) -> float:
            return round(float(x), 3)

        def side(detail: SideDetail, ratings: Dict[int, PlayerRating]) -> Dict[str, Any]:
            def lite(ids: List[int]) -> List[Dict[str, Any]]:
                out = []
                for pid in ids:
                    pr = ratings.get(pid)
                    out.append(
                        {"id": pid, "grp": pr.position_group, "off": round(pr.offense), "def": round(pr.defense)}
                        if pr
                        else {"id": pid}
                    )
                return out

            return {
                "ideal_xi": lite(detail.ideal_xi),
                "current_xi": lite(detail.current_xi),
                "key_out": detail.key_out,
                "xi_factors": {k: r3(v) for k, v in detail.xi_factors.items()},
                "injuries": detail.injuries,
                "formation": detail.formation,
                "formation_shape": detail.formation_shape,
            }

        return {
            "version": ENGINE_VERSION,
            "fixture_id": self.fixture_id,
            "asof_utc": self.as_of.isoformat(),
            "mu": {
                "mu_home": round(self.baseline.mu_home, 2),
                "mu_away": round(self.baseline.mu_away, 2),
                "matches": self.baseline.matches,
                "source": self.baseline.source,
            },
            "prediction": {
                "lambda_home": r3(self.lambda_home),
                "lambda_away": r3(self.lambda_away),
                "win_probs_model": {k: r3(v) for k, v in self.win_probs_model.items()},
                "win_probs_blended": {k: r3(v) for k, v in self.win_probs_blended.items()},
                "btts_yes": r3(self.btts_yes),
                "over25": r3(self.over25),
                "under25": r3(self.under25),
                "top_scores": [{"score": s.score, "prob": r3(s.prob)} for s in self.top_scores],
                "score_matrix": [[round(float(x), 6) for x in row] for row in self.matrix],
                "offdef": {
                    "home_off": round(self.home.profile.offense, 1),
                    "home_def": round(self.home.profile.defense, 1),
                    "away_off": round(self.away.profile.offense, 1),
                    "away_def": round(self.away.profile.defense, 1),
                },
            },
            "modifiers": {
                "applied": [m.to_dict() for m in self.modifiers],
                "lambda_pre_clamp": {
                    "home": r3(self.lambda_home_raw),
                    "away": r3(self.lambda_away_raw),
                },
                "dixon_coles": round(self.dixon_coles, 4),
                "h2h_low_boost_applied": self.h2h_boost.applied,
                "calibration": {
                    "applied": self.calibration.applied,
                    "scale": round(self.calibration.scale, 4),
                    "target_over25": None if self.calibration.target is None else r3(self.calibration.target),
                    "model_over25": None
                    if self.calibration.model_over25 is None
                    else r3(self.calibration.model_over25),
                    "achieved_over25": None if self.calibration.achieved is None else r3(self.calibration.achieved),
                    "converged": self.calibration.converged,
                },
                "blend": {
                    "applied": self.blend.applied,
                    "alpha": None if self.blend.alpha is None else r3(self.blend.alpha),
                    "renormalized": self.blend.renormalized,
                },
                "market_implied": None if self.market_1x2 is None else {
                    k: r3(v) for k, v in self.market_1x2.as_dict().items()
                },
                "market_implied_ou25": None if self.market_ou25 is None else {
                    "over25": r3(self.market_ou25.over25),
                    "under25": r3(self.market_ou25.under25),
                },
                "xi_players": {
                    "home": side(self.home, self.player_ratings.get("home", {})),
                    "away": side(self.away, self.player_ratings.get("away", {})),
                },
            },
            "xi_confidence": self.lineup_confidence,
            "explanation": {
                "flags": {
                    "low_lineup_confidence": self.lineup_confidence != "high",
                    "missing_sources": bool(self.missing_sources),
                },
                "missing_sources": list(self.missing_sources),
            },
            "provider_predictions": None if self.provider is None else self.provider.to_dict(),
        }


def _newest_first(matches: List[MatchRecord]) -> List[MatchRecord]:
    dated = [m for m in matches if m.date is not None]
    undated = [m for m in matches if m.date is None]
    return sorted(dated, key=lambda m: m.date, reverse=True) + undated


class PredictionEngine:
    """Deterministic score-distribution engine."""

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()
        self.pipeline = ModifierPipeline.from_config(self.config.modifiers)

    # -- building blocks -------------------------------------------------

    def _side(
        self,
        ratings: Dict[int, PlayerRating],
        starters: List[int],
        formation: Optional[str],
        injuries: List[Any],
        season_profile: TeamRatingProfile,
    ) -> SideDetail:
        cfg = self.config.team
        ideal = ideal_xi(ratings, cfg.ideal_xi_size)
        current = starters or ideal
        current_profile = build_team_profile(ratings, current, cfg)
        ideal_profile = build_team_profile(ratings, ideal, cfg)
        return SideDetail(
            profile=blend_profiles(current_profile, season_profile, cfg),
            lineup_profile=current_profile,
            season_profile=season_profile,
            ideal_xi=ideal,
            current_xi=list(current),
            xi_factors=xi_factors(current_profile, ideal_profile),
            key_out=key_absentees(ideal, current, injuries),
            injuries=len(injuries),
            formation=formation,
            formation_shape=formation_shape(formation),
        )

    def _matrix(
        self,
        lambda_home: float,
        lambda_away: float,
        baseline: LeagueBaseline,
        boost: Optional[LowScoreBoost] = None,
    ) -> np.ndarray:
        """Final score grid: Dixon-Coles factor, then the H2H boost when it applies."""
        mcfg = self.config.matrix
        factor = dixon_coles_factor(lambda_home, lambda_away, baseline.mu_total, mcfg)
        matrix = build_score_matrix(lambda_home, lambda_away, factor, mcfg)
        if boost is not None and boost.applied:
            matrix = apply_low_score_boost(matrix, mcfg.h2h_boost)
        return matrix

    # -- main entry point ------------------------------------------------

    def predict(self, inputs: MatchInputs, now: Optional[datetime] = None) -> PredictionResult:
        """
        Compute the full prediction for one fixture.

        Parameters
        ----------
        inputs : MatchInputs
            Snapshot of all signals; only the fixture is required.
        now : datetime | None
            Prediction time (UTC). Defaults to the current time.

        Raises
        ------
        InvalidFixtureError
            If the fixture lacks its id, kickoff time, or a team id.
        """
        fixture = validate_fixture(inputs.fixture)
        now = now or datetime.now(timezone.utc)
        cfg = self.config
        bounds = cfg.matrix.lambda_bounds

        baseline: LeagueBaseline = inputs.league_baseline or default_baseline(cfg.baseline)

        # ratings and profiles
        home_ratings = rate_players(inputs.home_players, cfg.rating)
        away_ratings = rate_players(inputs.away_players, cfg.rating)
        home_lineup = inputs.lineup_for(fixture.home_team_id)
        away_lineup = inputs.lineup_for(fixture.away_team_id)
        home_starters = list(home_lineup.starters) if home_lineup else []
        away_starters = list(away_lineup.starters) if away_lineup else []

        home = self._side(
            home_ratings,
            home_starters,
            home_lineup.formation if home_lineup else None,
            inputs.home_injuries,
            season_baseline_profile(inputs.home_stats, baseline.mu_team, cfg.team),
        )
        away = self._side(
            away_ratings,
            away_starters,
            away_lineup.formation if away_lineup else None,
            inputs.away_injuries,
            season_baseline_profile(inputs.away_stats, baseline.mu_team, cfg.team),
        )

        # base lambdas and modifiers
        lambda_home = base_lambda(baseline.mu_home, home.profile.offense, away.profile.defense)
        lambda_away = base_lambda(baseline.mu_away, away.profile.offense, home.profile.defense)

        confidence = lineup_confidence(
            bool(home_starters),
            bool(away_starters),
            fixture.kickoff_time,
            now,
            cfg.modifiers.lineup_medium_window_minutes,
        )
        meetings = _newest_first(inputs.head_to_head)
        ctx = ModifierContext(
            lineup_confidence=confidence,
            home_formation=home.formation_shape,
            away_formation=away.formation_shape,
            two_leg=detect_two_leg_tie(fixture, meetings, cfg.modifiers.two_leg_window_days),
            referee=inputs.referee,
            home_tempo=inputs.home_tempo,
            away_tempo=inputs.away_tempo,
            home_rest_days=rest_days(inputs.home_recent, fixture.kickoff_time),
            away_rest_days=rest_days(inputs.away_recent, fixture.kickoff_time),
            home_stats=inputs.home_stats,
            away_stats=inputs.away_stats,
        )
        lambda_home_raw, lambda_away_raw, applied = self.pipeline.apply(lambda_home, lambda_away, ctx)
        lambda_home = clamp_lambda(lambda_home_raw, bounds)
        lambda_away = clamp_lambda(lambda_away_raw, bounds)

        # decided before calibration: the boost is part of the grid being fitted
        boost = h2h_low_score_pattern(meetings, cfg.matrix)

        # market calibration of the total-goals scale
        market_1x2 = parse_1x2(inputs.odds, cfg.market)
        market_ou = parse_over_under_25(inputs.odds, cfg.market)
        calibration = CalibrationResult(applied=False)
        if market_ou is not None:

            def over25_for(lh: float, la: float) -> float:
                m = self._matrix(clamp_lambda(lh, bounds), clamp_lambda(la, bounds), baseline, boost)
                return over_under_25(m)["over25"]

            calibration = calibrate_total_goals(
                lambda_home, lambda_away, market_ou.over25, over25_for, cfg.market
            )
            lambda_home = clamp_lambda(lambda_home * calibration.scale, bounds)
            lambda_away = clamp_lambda(lambda_away * calibration.scale, bounds)

        # matrix and low-score corrections
        dc = dixon_coles_factor(lambda_home, lambda_away, baseline.mu_total, cfg.matrix)
        matrix = self._matrix(lambda_home, lambda_away, baseline, boost)

        # aggregates and blend
        win = one_x_two(matrix)
        ou = over_under_25(matrix)
        alpha = blend_alpha(minutes_to_kickoff(fixture.kickoff_time, now), cfg.market)
        blend = blend_1x2(win, market_1x2, alpha, cfg.market)

        logger.info(
            "Fixture %s: lambda %.3f/%.3f (mu %.2f/%.2f, xi %s, calibrated=%s, h2h_boost=%s)",
            fixture.id,
            lambda_home,
            lambda_away,
            baseline.mu_home,
            baseline.mu_away,
            confidence,
            calibration.applied,
            boost.applied,
        )

        return PredictionResult(
            fixture_id=fixture.id,
            as_of=now,
            baseline=baseline,
            lambda_home=lambda_home,
            lambda_away=lambda_away,
            lambda_home_raw=lambda_home_raw,
            lambda_away_raw=lambda_away_raw,
            matrix=matrix,
            win_probs_model=win,
            win_probs_blended=blend.probs,
            btts_yes=btts_yes(matrix),
            over25=ou["over25"],
            under25=ou["under25"],
            top_scores=top_scores(matrix, cfg.top_scores),
            home=home,
            away=away,
            modifiers=applied,
            lineup_confidence=confidence,
            calibration=calibration,
            blend=blend,
            h2h_boost=boost,
            dixon_coles=dc,
            market_1x2=market_1x2,
            market_ou25=market_ou,
            provider=parse_provider_prediction(inputs.provider_payload),
            missing_sources=list(inputs.missing_sources),
            player_ratings={"home": home_ratings, "away": away_ratings},
        )
