"""
Team profile builder.

Aggregates a lineup's player ratings into team-level Offense/Defense on the
20-180 scale (100 = league average), computes an independent season
baseline from goals for/against, and blends the two.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from footycast.config import TeamProfileConfig
from footycast.data.schema import InjuryRecord, TeamSeasonStats
from footycast.features.ratings import PlayerRating
from footycast.utils.numeric import clamp


@dataclass(frozen=True)
class TeamRatingProfile:
    offense: float
    defense: float
    players_used: List[int] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return bool(self.players_used)


def ideal_xi(
    ratings: Mapping[int, PlayerRating], size: int = 11
) -> List[int]:
    """
    The `size` highest-minutes rated players.

    Ties keep the ratings' insertion order, so the result is deterministic.
    """
    ordered = sorted(ratings.values(), key=lambda r: -(r.minutes or 0.0))
    return [r.player_id for r in ordered[:size]]


def build_team_profile(
    ratings: Mapping[int, PlayerRating],
    lineup: Sequence[int],
    cfg: Optional[TeamProfileConfig] = None,
) -> TeamRatingProfile:
    """
    Weighted Offense/Defense of a lineup.

    Players without a rating are skipped rather than counted as zero. When no
    player resolves, the profile falls back to `cfg.fallback_rating` on both
    axes.
    """
    cfg = cfg or TeamProfileConfig()
    off_sum = off_w = def_sum = def_w = 0.0
    used: List[int] = []

    for pid in lineup:
        rating = ratings.get(pid)
        if rating is None:
            continue
        w_off, w_def = cfg.position_weights.get(rating.position_group, (0.5, 0.5))
        off_sum += rating.offense * w_off
        def_sum += rating.defense * w_def
        off_w += w_off
        def_w += w_def
        used.append(pid)

    offense = off_sum / off_w if off_w > 0 else cfg.fallback_rating
    defense = def_sum / def_w if def_w > 0 else cfg.fallback_rating
    return TeamRatingProfile(
        offense=clamp(offense, cfg.rating_floor, cfg.rating_ceiling),
        defense=clamp(defense, cfg.rating_floor, cfg.rating_ceiling),
        players_used=used,
    )


def season_baseline_profile(
    stats: TeamSeasonStats,
    mu_team: float,
    cfg: Optional[TeamProfileConfig] = None,
) -> TeamRatingProfile:
    """Offense/Defense from season goal averages relative to the league mean."""
    cfg = cfg or TeamProfileConfig()
    fallback = cfg.default_goals_avg if cfg.default_goals_avg is not None else mu_team
    goals_for = stats.goals_for_avg if stats.goals_for_avg is not None else fallback
    goals_against = stats.goals_against_avg if stats.goals_against_avg is not None else fallback

    offense = goals_for / mu_team * 100.0 if mu_team > 0 else 100.0
    # a clean-sheet record rates the ceiling
    defense = mu_team / goals_against * 100.0 if goals_against > 0 else cfg.rating_ceiling
    return TeamRatingProfile(
        offense=clamp(offense, cfg.rating_floor, cfg.rating_ceiling),
        defense=clamp(defense, cfg.rating_floor, cfg.rating_ceiling),
    )


def blend_profiles(
    lineup_profile: TeamRatingProfile,
    season_profile: TeamRatingProfile,
    cfg: Optional[TeamProfileConfig] = None,
) -> TeamRatingProfile:
    cfg = cfg or TeamProfileConfig()
    w = cfg.lineup_weight
    return TeamRatingProfile(
        offense=w * lineup_profile.offense + (1.0 - w) * season_profile.offense,
        defense=w * lineup_profile.defense + (1.0 - w) * season_profile.defense,
        players_used=list(lineup_profile.players_used),
    )


def xi_factors(current: TeamRatingProfile, ideal: TeamRatingProfile) -> Dict[str, float]:
    """Current-XI strength relative to the ideal XI (1.0 = full strength)."""
    return {
        "off": current.offense / ideal.offense if ideal.offense > 0 else 1.0,
        "def": current.defense / ideal.defense if ideal.defense > 0 else 1.0,
    }


def key_absentees(
    ideal: Sequence[int], current: Sequence[int], injuries: Iterable[InjuryRecord]
) -> List[int]:
    """Ideal-XI players missing from the current XI and listed as injured."""
    injured: Set[int] = {inj.player_id for inj in injuries}
    current_set = set(current)
    return [pid for pid in ideal if pid not in current_set and pid in injured]
