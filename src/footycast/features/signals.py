"""
Derived match-context signals.

Each function turns raw records into the small signal a lambda modifier
consumes: lineup confidence, formation shape, two-leg tie state, rest days,
and the referee / team-tempo profiles. All of them return None (or a neutral
value) when their inputs are missing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from footycast.data.schema import (
    FixtureRecord,
    MatchRecord,
    RefereeProfile,
    TeamTempoProfile,
)
from footycast.utils.logging_utils import get_logger

logger = get_logger(__name__)

# Statistic labels used by `/fixtures/statistics`
STAT_SHOTS = "Total Shots"
STAT_SHOTS_ON = "Shots on Goal"
STAT_POSSESSION = "Ball Possession"
STAT_CORNERS = "Corner Kicks"
STAT_FOULS = "Fouls"
STAT_YELLOW = "Yellow Cards"
STAT_RED = "Red Cards"


def lineup_confidence(
    home_xi_known: bool,
    away_xi_known: bool,
    kickoff: datetime,
    now: datetime,
    medium_window_minutes: float = 90.0,
) -> str:
    """
    "high" when both official XIs are known before kickoff, "medium" when
    kickoff is within the window, "low" otherwise.
    """
    if home_xi_known and away_xi_known and kickoff > now:
        return "high"
    if kickoff - now < timedelta(minutes=medium_window_minutes):
        return "medium"
    return "low"


def minutes_to_kickoff(kickoff: datetime, now: datetime) -> float:
    return (kickoff - now).total_seconds() / 60.0


_FORMATION_RE = re.compile(r"\d+")


def formation_shape(formation: Optional[str]) -> Optional[str]:
    """
    Classify a formation string such as "4-3-3" or "5-4-1".

    Returns "defensive", "attacking", "balanced", or None when the string
    cannot be read as an outfield formation of ten players.
    """
    if not formation:
        return None
    lines = [int(x) for x in _FORMATION_RE.findall(formation)]
    if len(lines) < 2 or sum(lines) != 10:
        return None

    defenders, forwards = lines[0], lines[-1]
    if defenders >= 5 or (forwards == 1 and len(lines) == 3):
        return "defensive"
    if forwards >= 3:
        return "attacking"
    return "balanced"


@dataclass(frozen=True)
class TwoLegContext:
    """First-leg state, seen from the current fixture's home side."""

    first_leg_fixture_id: Optional[int]
    home_first_leg_goals: int
    away_first_leg_goals: int

    @property
    def home_deficit(self) -> int:
        """Goals the current home side trails by (negative when leading)."""
        return self.away_first_leg_goals - self.home_first_leg_goals


def detect_two_leg_tie(
    fixture: FixtureRecord,
    meetings: Iterable[MatchRecord],
    window_days: float = 35.0,
) -> Optional[TwoLegContext]:
    """
    Best-effort detection of a second leg.

    Looks for a completed meeting with the home/away roles reversed, in the
    same league and season, played within `window_days` before kickoff. A
    miss returns None, which downstream means "neutral".
    """
    if fixture.kickoff_time is None:
        return None

    earliest = fixture.kickoff_time - timedelta(days=window_days)
    candidates: List[MatchRecord] = []
    for m in meetings:
        if not m.is_finished or m.date is None:
            continue
        if m.fixture_id is not None and m.fixture_id == fixture.id:
            continue
        if m.home_team_id != fixture.away_team_id or m.away_team_id != fixture.home_team_id:
            continue
        if fixture.league_id is None or m.league_id != fixture.league_id:
            continue
        if fixture.season is None or m.season != fixture.season:
            continue
        if earliest <= m.date < fixture.kickoff_time:
            candidates.append(m)

    if not candidates:
        return None

    first_leg = max(candidates, key=lambda m: m.date)
    return TwoLegContext(
        first_leg_fixture_id=first_leg.fixture_id,
        # roles were reversed in the first leg
        home_first_leg_goals=int(first_leg.away_goals or 0),
        away_first_leg_goals=int(first_leg.home_goals or 0),
    )


def rest_days(team_matches: Iterable[MatchRecord], before: datetime) -> Optional[float]:
    """Days between the team's last completed match and `before`."""
    previous = [m.date for m in team_matches if m.is_finished and m.date is not None and m.date < before]
    if not previous:
        return None
    return (before - max(previous)).total_seconds() / 86400.0


def referee_key(name: Optional[str]) -> Optional[str]:
    """Normalise "M. Oliver, England" to "m. oliver" for matching."""
    if not name:
        return None
    return name.split(",")[0].strip().lower() or None


def referee_matches(
    matches: Iterable[MatchRecord],
    referee_name: Optional[str],
    before: datetime,
    limit: int,
) -> List[MatchRecord]:
    """The referee's most recent completed matches before `before`."""
    key = referee_key(referee_name)
    if key is None:
        return []
    picked = [
        m
        for m in matches
        if m.is_finished and m.date is not None and m.date < before and referee_key(m.referee_name) == key
    ]
    picked.sort(key=lambda m: m.date, reverse=True)
    return picked[:limit]


def build_referee_profile(
    name: str, per_match_stats: Sequence[Dict[int, Dict[str, Optional[float]]]]
) -> Optional[RefereeProfile]:
    """
    Aggregate cards and fouls per match for a referee.

    `per_match_stats` holds one `/fixtures/statistics` mapping (team id ->
    stats) per officiated match; both teams' numbers are summed per match.
    """
    rows = []
    for stats in per_match_stats:
        if not stats:
            continue
        teams = list(stats.values())
        fouls = [t.get(STAT_FOULS) for t in teams]
        rows.append(
            {
                "yellow": sum(t.get(STAT_YELLOW) or 0.0 for t in teams),
                "red": sum(t.get(STAT_RED) or 0.0 for t in teams),
                "fouls": sum(fouls) if all(f is not None for f in fouls) else None,
            }
        )
    if not rows:
        return None

    df = pd.DataFrame(rows)
    fouls = pd.to_numeric(df["fouls"], errors="coerce")
    return RefereeProfile(
        name=name,
        matches=int(len(df)),
        yellow_per_match=float(df["yellow"].mean()),
        red_per_match=float(df["red"].mean()),
        fouls_per_match=float(fouls.mean()) if fouls.notna().any() else None,
    )


def build_team_tempo(
    team_id: int, per_match_stats: Sequence[Dict[int, Dict[str, Optional[float]]]]
) -> Optional[TeamTempoProfile]:
    """Average shots, possession, shots on target and corners for one team."""
    rows = [stats[team_id] for stats in per_match_stats if stats and team_id in stats]
    rows = [r for r in rows if r.get(STAT_SHOTS) is not None]
    if not rows:
        return None

    df = pd.DataFrame(rows)

    def mean_of(column: str) -> Optional[float]:
        if column not in df.columns:
            return None
        values = pd.to_numeric(df[column], errors="coerce")
        return float(values.mean()) if values.notna().any() else None

    return TeamTempoProfile(
        team_id=team_id,
        matches=int(len(df)),
        shots_per_match=float(pd.to_numeric(df[STAT_SHOTS], errors="coerce").mean()),
        possession_avg=mean_of(STAT_POSSESSION),
        shots_on_target_per_match=mean_of(STAT_SHOTS_ON),
        corners_per_match=mean_of(STAT_CORNERS),
    )
