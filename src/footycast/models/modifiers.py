"""
Lambda modifier pipeline.

A modifier is a named pure function of the match context returning one
multiplicative factor per side. Modifiers are registered in
`MODIFIER_REGISTRY` in application order; which ones run is configuration
(`ModifierConfig.enabled`), not code. Every applied factor is kept in the
audit trail together with the raw signal it came from.

Missing signals are a valid input: a modifier without data returns 1.0.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from footycast.config import ModifierConfig
from footycast.data.schema import RefereeProfile, TeamSeasonStats, TeamTempoProfile
from footycast.features.signals import TwoLegContext
from footycast.utils.logging_utils import get_logger
from footycast.utils.numeric import clamp

logger = get_logger(__name__)


@dataclass
class ModifierContext:
    """Signals available to the modifiers for one fixture."""

    lineup_confidence: Optional[str] = None
    home_formation: Optional[str] = None  # shape: defensive / attacking / balanced
    away_formation: Optional[str] = None
    two_leg: Optional[TwoLegContext] = None
    referee: Optional[RefereeProfile] = None
    home_tempo: Optional[TeamTempoProfile] = None
    away_tempo: Optional[TeamTempoProfile] = None
    home_rest_days: Optional[float] = None
    away_rest_days: Optional[float] = None
    home_stats: TeamSeasonStats = field(default_factory=TeamSeasonStats)
    away_stats: TeamSeasonStats = field(default_factory=TeamSeasonStats)


@dataclass(frozen=True)
class ModifierOutcome:
    home: float = 1.0
    away: float = 1.0
    raw: Any = None
    note: str = ""


NEUTRAL = ModifierOutcome()


@dataclass(frozen=True)
class AppliedModifier:
    """Audit entry for one modifier."""

    name: str
    home: float
    away: float
    raw: Any = None
    note: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "home": round(self.home, 4),
            "away": round(self.away, 4),
            "raw": self.raw,
            "note": self.note,
        }


ModifierFn = Callable[[ModifierContext, ModifierConfig], ModifierOutcome]


# ---------------------------------------------------------------------------
# Modifiers
# ---------------------------------------------------------------------------


def lineup_confidence_modifier(ctx: ModifierContext, cfg: ModifierConfig) -> ModifierOutcome:
    level = ctx.lineup_confidence
    if level is None:
        return NEUTRAL
    factor = cfg.lineup_factors.get(level, 1.0)
    return ModifierOutcome(factor, factor, raw=level)


def formation_modifier(ctx: ModifierContext, cfg: ModifierConfig) -> ModifierOutcome:
    home_shape, away_shape = ctx.home_formation, ctx.away_formation
    if home_shape is None and away_shape is None:
        return NEUTRAL

    def side_factor(own: Optional[str], opponent: Optional[str]) -> float:
        factor = 1.0
        if own == "attacking":
            factor *= cfg.formation_attack_boost
        if opponent == "defensive":
            factor *= cfg.formation_defensive_opponent
        return clamp(factor, *cfg.formation_bounds)

    return ModifierOutcome(
        side_factor(home_shape, away_shape),
        side_factor(away_shape, home_shape),
        raw={"home": home_shape, "away": away_shape},
    )


def two_leg_modifier(ctx: ModifierContext, cfg: ModifierConfig) -> ModifierOutcome:
    tie = ctx.two_leg
    if tie is None:
        return NEUTRAL
    deficit = tie.home_deficit
    raw = {
        "first_leg_fixture_id": tie.first_leg_fixture_id,
        "home_first_leg_goals": tie.home_first_leg_goals,
        "away_first_leg_goals": tie.away_first_leg_goals,
    }
    if deficit == 0:
        return ModifierOutcome(raw=raw, note="aggregate level")

    trailing = min(1.0 + cfg.two_leg_trail_per_goal * abs(deficit), cfg.two_leg_trail_cap)
    if deficit > 0:
        return ModifierOutcome(trailing, cfg.two_leg_lead_factor, raw=raw, note="home trails")
    return ModifierOutcome(cfg.two_leg_lead_factor, trailing, raw=raw, note="away trails")


def referee_tempo_modifier(ctx: ModifierContext, cfg: ModifierConfig) -> ModifierOutcome:
    ref = ctx.referee
    if ref is None or ref.matches < cfg.referee_min_matches:
        return NEUTRAL

    cards_ratio = ref.cards_per_match / cfg.referee_base_cards
    if ref.fouls_per_match is not None:
        fouls_ratio = ref.fouls_per_match / cfg.referee_base_fouls
        intensity = cfg.referee_cards_weight * cards_ratio + (1.0 - cfg.referee_cards_weight) * fouls_ratio
    else:
        intensity = cards_ratio

    factor = clamp(1.0 - cfg.referee_sensitivity * (intensity - 1.0), *cfg.referee_bounds)
    raw = {
        "referee": ref.name,
        "matches": ref.matches,
        "cards_per_match": round(ref.cards_per_match, 3),
        "fouls_per_match": None if ref.fouls_per_match is None else round(ref.fouls_per_match, 3),
        "intensity": round(intensity, 3),
    }
    return ModifierOutcome(factor, factor, raw=raw)


def _tempo_factor(tempo: Optional[TeamTempoProfile], cfg: ModifierConfig) -> Tuple[float, Any]:
    if tempo is None or tempo.matches < cfg.tempo_min_matches:
        return 1.0, None

    parts = [(0.5, tempo.shots_per_match / cfg.tempo_base_shots)]
    if tempo.possession_avg is not None:
        parts.append((0.25, tempo.possession_avg / cfg.tempo_base_possession))
    if tempo.shots_on_target_per_match is not None:
        parts.append((0.25, tempo.shots_on_target_per_match / cfg.tempo_base_shots_on_target))
    total_weight = sum(w for w, _ in parts)
    index = sum(w * v for w, v in parts) / total_weight

    factor = clamp(1.0 + cfg.tempo_sensitivity * (index - 1.0), *cfg.tempo_bounds)
    return factor, {"matches": tempo.matches, "index": round(index, 3)}


def team_tempo_modifier(ctx: ModifierContext, cfg: ModifierConfig) -> ModifierOutcome:
    home, home_raw = _tempo_factor(ctx.home_tempo, cfg)
    away, away_raw = _tempo_factor(ctx.away_tempo, cfg)
    if home_raw is None and away_raw is None:
        return NEUTRAL
    return ModifierOutcome(home, away, raw={"home": home_raw, "away": away_raw})


def _rest_factor(days: Optional[float], cfg: ModifierConfig) -> float:
    if days is None:
        return 1.0
    if days <= cfg.rest_fatigue_days:
        return cfg.rest_fatigue_factor
    lo, hi = cfg.rest_fresh_range
    if lo <= days <= hi:
        return cfg.rest_fresh_factor
    return 1.0


def rest_days_modifier(ctx: ModifierContext, cfg: ModifierConfig) -> ModifierOutcome:
    if ctx.home_rest_days is None and ctx.away_rest_days is None:
        return NEUTRAL
    return ModifierOutcome(
        _rest_factor(ctx.home_rest_days, cfg),
        _rest_factor(ctx.away_rest_days, cfg),
        raw={
            "home_days": None if ctx.home_rest_days is None else round(ctx.home_rest_days, 2),
            "away_days": None if ctx.away_rest_days is None else round(ctx.away_rest_days, 2),
        },
    )


def set_piece_modifier(ctx: ModifierContext, cfg: ModifierConfig) -> ModifierOutcome:
    home_corners = ctx.home_tempo.corners_per_match if ctx.home_tempo else None
    away_corners = ctx.away_tempo.corners_per_match if ctx.away_tempo else None
    if home_corners is None or away_corners is None:
        return NEUTRAL

    raw = {"home_corners": round(home_corners, 2), "away_corners": round(away_corners, 2)}
    diff = home_corners - away_corners
    if abs(diff) < cfg.set_piece_min_diff:
        return ModifierOutcome(raw=raw)

    boost = clamp(1.0 + cfg.set_piece_per_corner * abs(diff), *cfg.set_piece_bounds)
    if diff > 0:
        return ModifierOutcome(boost, 1.0, raw=raw, note="home edge")
    return ModifierOutcome(1.0, boost, raw=raw, note="away edge")


def season_form_modifier(ctx: ModifierContext, cfg: ModifierConfig) -> ModifierOutcome:
    lo, hi = cfg.form_bounds

    def ratio(value: Optional[float]) -> float:
        return clamp(value, lo, hi) if value else 1.0

    home_att, home_def = ratio(ctx.home_stats.form_attack), ratio(ctx.home_stats.form_defense)
    away_att, away_def = ratio(ctx.away_stats.form_attack), ratio(ctx.away_stats.form_defense)
    if (home_att, home_def, away_att, away_def) == (1.0, 1.0, 1.0, 1.0):
        return NEUTRAL
    return ModifierOutcome(
        home_att / away_def,
        away_att / home_def,
        raw={"home_att": home_att, "home_def": home_def, "away_att": away_att, "away_def": away_def},
    )


MODIFIER_REGISTRY: Dict[str, ModifierFn] = {
    "lineup_confidence": lineup_confidence_modifier,
    "formation": formation_modifier,
    "two_leg": two_leg_modifier,
    "referee_tempo": referee_tempo_modifier,
    "team_tempo": team_tempo_modifier,
    "rest_days": rest_days_modifier,
    "set_piece": set_piece_modifier,
    "season_form": season_form_modifier,
}


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class ModifierPipeline:
    """Ordered list of named modifiers applied multiplicatively to both lambdas."""

    def __init__(
        self,
        modifiers: Sequence[Tuple[str, ModifierFn]],
        cfg: Optional[ModifierConfig] = None,
    ) -> None:
        self.modifiers = list(modifiers)
        self.cfg = cfg or ModifierConfig()

    @classmethod
    def from_config(cls, cfg: Optional[ModifierConfig] = None) -> "ModifierPipeline":
        """Build the pipeline from `cfg.enabled`, keeping registry order."""
        cfg = cfg or ModifierConfig()
        unknown = [name for name in cfg.enabled if name not in MODIFIER_REGISTRY]
        if unknown:
            raise ValueError(f"Unknown modifiers in configuration: {unknown}")
        enabled = set(cfg.enabled)
        return cls([(n, fn) for n, fn in MODIFIER_REGISTRY.items() if n in enabled], cfg)

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.modifiers]

    def evaluate(self, ctx: ModifierContext) -> List[AppliedModifier]:
        """Run every modifier; a failing one is logged and recorded as neutral."""
        applied: List[AppliedModifier] = []
        for name, fn in self.modifiers:
            try:
                out = fn(ctx, self.cfg)
            except (ArithmeticError, AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("Modifier %s failed (%s); using neutral factor.", name, exc)
                out = ModifierOutcome(note=f"error: {exc}")
            applied.append(AppliedModifier(name, out.home, out.away, out.raw, out.note))
        return applied

    def apply(
        self, lambda_home: float, lambda_away: float, ctx: ModifierContext
    ) -> Tuple[float, float, List[AppliedModifier]]:
        """Multiply every factor into the two lambdas and return the audit trail."""
        applied = self.evaluate(ctx)
        for entry in applied:
            lambda_home *= entry.home
            lambda_away *= entry.away
        return lambda_home, lambda_away, applied
