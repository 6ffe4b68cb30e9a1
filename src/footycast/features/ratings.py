"""
Player rating engine.

Turns a player's season aggregates into two 0-100 scores:

- Offense: a position-specific weighted sum of per-90 attacking rates.
- Defense: a position-specific weighted sum of per-90 defensive rates
  (goalkeepers use save percentage, goals conceded and penalty saves).

Both scores take a discipline penalty and are shrunk toward 50 for players
with few minutes, so a handful of lucky appearances cannot dominate a team.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from footycast.config import RatingConfig
from footycast.data.schema import PlayerStatSnapshot
from footycast.utils.numeric import clamp

POSITION_GROUPS = ("GK", "DEF", "MID", "FWD")


@dataclass(frozen=True)
class PlayerRating:
    player_id: int
    offense: float
    defense: float
    position_group: str
    minutes: float


def position_group(position: Optional[str]) -> str:
    """
    Map a listed position ("Goalkeeper", "D", "Attacker", "RW", ...) to a group.

    Unknown labels default to MID.
    """
    label = (position or "").strip().upper()
    if label.startswith("G"):
        return "GK"
    if label.startswith("D"):
        return "DEF"
    if label.startswith("M"):
        return "MID"
    if label.startswith("F") or label.startswith("A") or "W" in label:
        return "FWD"
    return "MID"


def per90(value: float, minutes: float, appearances: float = 0.0) -> float:
    """
    Normalise a counting stat to a per-90 rate.

    Falls back to a per-appearance rate when minutes are unknown but
    appearances exist; otherwise 0.
    """
    if minutes > 0:
        return value * 90.0 / minutes
    if appearances > 0:
        return value / appearances
    return 0.0


def per90_rates(stat: PlayerStatSnapshot) -> Dict[str, float]:
    """Per-90 rates for every stat the weight tables refer to."""

    def rate(value: float) -> float:
        return per90(value, stat.minutes, stat.appearances)

    duel_win_rate = stat.duels_won / stat.duels_total if stat.duels_total > 0 else 0.0
    return {
        "goals": rate(stat.goals),
        "assists": rate(stat.assists),
        "shots_on": rate(stat.shots_on),
        "key_passes": rate(stat.key_passes),
        "dribbles": rate(stat.dribbles_success),
        "tackles": rate(stat.tackles),
        "interceptions": rate(stat.interceptions),
        "blocks": rate(stat.blocks),
        "duels_won": rate(stat.duels_total) * duel_win_rate,
        "yellow": rate(stat.yellow_cards),
        "red": rate(stat.red_cards),
        "conceded": rate(stat.goals_conceded),
        "penalties_saved": rate(stat.penalties_saved),
    }


def _weighted_score(rates: Dict[str, float], weights: Dict[str, float], scale: float) -> float:
    raw = sum(w * rates.get(name, 0.0) for name, w in weights.items())
    return 100.0 * clamp(raw / scale, 0.0, 1.0) if scale > 0 else 0.0


def _goalkeeper_defense(stat: PlayerStatSnapshot, rates: Dict[str, float], cfg: RatingConfig) -> float:
    shots_faced = stat.saves + stat.goals_conceded
    save_pct = stat.saves / shots_faced if shots_faced > 0 else 0.0
    score = (
        cfg.gk_save_weight * save_pct
        + cfg.gk_conceded_weight * (1.0 - clamp(rates["conceded"] / cfg.gk_conceded_cap, 0.0, 1.0))
        + cfg.gk_penalty_weight * clamp(rates["penalties_saved"] / cfg.gk_penalty_cap, 0.0, 1.0)
    )
    return 50.0 + 50.0 * score


def minutes_confidence(minutes: float, cfg: RatingConfig) -> float:
    """Shrink weight in [0, 1]; zero minutes means no evidence at all."""
    if minutes <= 0:
        return 0.0
    return clamp(minutes / cfg.shrink_minutes, cfg.shrink_floor, 1.0)


def rate_player(stat: PlayerStatSnapshot, cfg: Optional[RatingConfig] = None) -> PlayerRating:
    """
    Compute a PlayerRating from one season snapshot.

    Parameters
    ----------
    stat : PlayerStatSnapshot
        The player's season aggregates (missing stats are zero).
    cfg : RatingConfig | None
        Coefficients; defaults to RatingConfig().

    Returns
    -------
    PlayerRating
        Offense/Defense in [0, 100].
    """
    cfg = cfg or RatingConfig()
    group = position_group(stat.position)
    rates = per90_rates(stat)

    if group == "GK":
        offense = cfg.goalkeeper_offense
        defense = _goalkeeper_defense(stat, rates, cfg)
    else:
        offense = _weighted_score(rates, cfg.offense_weights[group], cfg.offense_scale[group])
        defense = _weighted_score(rates, cfg.defense_weights[group], cfg.defense_scale[group])

    discipline = clamp(
        1.0 - cfg.yellow_penalty * rates["yellow"] - cfg.red_penalty * rates["red"],
        cfg.discipline_floor,
        1.0,
    )
    offense *= discipline
    defense *= discipline

    shrink = minutes_confidence(stat.minutes, cfg)
    offense = cfg.neutral + (offense - cfg.neutral) * shrink
    defense = cfg.neutral + (defense - cfg.neutral) * shrink

    return PlayerRating(
        player_id=stat.player_id,
        offense=offense,
        defense=defense,
        position_group=group,
        minutes=stat.minutes,
    )


def rate_players(
    stats: Iterable[PlayerStatSnapshot], cfg: Optional[RatingConfig] = None
) -> Dict[int, PlayerRating]:
    """Rate every player, keyed by player id (first snapshot wins)."""
    ratings: Dict[int, PlayerRating] = {}
    for stat in stats:
        if stat.player_id not in ratings:
            ratings[stat.player_id] = rate_player(stat, cfg)
    return ratings
