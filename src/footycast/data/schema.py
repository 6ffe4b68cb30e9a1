"""
Record types consumed by the prediction engine.

These are plain dataclasses built by `footycast.data.parsers` from provider
payloads (or by hand in tests). Optional signals are typed Optional and an
absent value always means "neutral", never an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from footycast.config import FINISHED_STATUSES
from footycast.errors import InvalidFixtureError
from footycast.utils.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class FixtureRecord:
    """The fixture being predicted."""

    id: Optional[int]
    kickoff_time: Optional[datetime]
    league_id: Optional[int]
    season: Optional[int]
    home_team_id: Optional[int]
    away_team_id: Optional[int]
    referee_name: Optional[str] = None
    home_team_name: Optional[str] = None
    away_team_name: Optional[str] = None
    league_name: Optional[str] = None
    league_country: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class TeamSeasonStats:
    """A team's own-season goal averages and the provider's form ratios."""

    goals_for_avg: Optional[float] = None
    goals_against_avg: Optional[float] = None
    form_attack: Optional[float] = None
    form_defense: Optional[float] = None


@dataclass(frozen=True)
class PlayerStatSnapshot:
    """Season aggregates for one player at one team."""

    player_id: int
    name: str = ""
    position: str = ""
    appearances: float = 0.0
    minutes: float = 0.0
    goals: float = 0.0
    assists: float = 0.0
    shots_total: float = 0.0
    shots_on: float = 0.0
    key_passes: float = 0.0
    dribbles_success: float = 0.0
    tackles: float = 0.0
    interceptions: float = 0.0
    blocks: float = 0.0
    duels_total: float = 0.0
    duels_won: float = 0.0
    yellow_cards: float = 0.0
    red_cards: float = 0.0
    saves: float = 0.0
    goals_conceded: float = 0.0
    penalties_saved: float = 0.0


@dataclass(frozen=True)
class LineupRecord:
    team_id: int
    formation: Optional[str] = None
    starters: List[int] = field(default_factory=list)
    bench: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class InjuryRecord:
    player_id: int
    reason: str = ""
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class MarketQuote:
    """One bookmaker market: outcome label -> decimal odds."""

    name: str
    outcomes: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class BookmakerOdds:
    bookmaker: str
    markets: List[MarketQuote] = field(default_factory=list)


@dataclass(frozen=True)
class OddsRecord:
    """Raw bookmaker quotes for one fixture."""

    bookmakers: List[BookmakerOdds] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.bookmakers


@dataclass(frozen=True)
class MatchRecord:
    """A fixture with its (possibly missing) final score."""

    fixture_id: Optional[int]
    date: Optional[datetime]
    status: str
    home_team_id: Optional[int]
    away_team_id: Optional[int]
    home_goals: Optional[int] = None
    away_goals: Optional[int] = None
    league_id: Optional[int] = None
    season: Optional[int] = None
    referee_name: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.status.upper() in FINISHED_STATUSES

    @property
    def total_goals(self) -> int:
        return int(self.home_goals or 0) + int(self.away_goals or 0)


# Head-to-head meetings share the match shape.
HeadToHeadRecord = MatchRecord


@dataclass(frozen=True)
class RefereeProfile:
    """Aggregated recent-match discipline signal for one referee."""

    name: str
    matches: int
    yellow_per_match: float
    red_per_match: float
    fouls_per_match: Optional[float] = None

    @property
    def cards_per_match(self) -> float:
        return self.yellow_per_match + 2.0 * self.red_per_match


@dataclass(frozen=True)
class TeamTempoProfile:
    """Aggregated recent-match attacking tempo for one team."""

    team_id: int
    matches: int
    shots_per_match: float
    possession_avg: Optional[float] = None
    shots_on_target_per_match: Optional[float] = None
    corners_per_match: Optional[float] = None


@dataclass
class MatchInputs:
    """
    Snapshot of everything the engine consumes for one fixture.

    Only `fixture` is required; every other field may be left at its default
    and the engine falls back to the documented neutral value.
    """

    fixture: FixtureRecord
    home_stats: TeamSeasonStats = field(default_factory=TeamSeasonStats)
    away_stats: TeamSeasonStats = field(default_factory=TeamSeasonStats)
    home_players: List[PlayerStatSnapshot] = field(default_factory=list)
    away_players: List[PlayerStatSnapshot] = field(default_factory=list)
    lineups: List[LineupRecord] = field(default_factory=list)
    home_injuries: List[InjuryRecord] = field(default_factory=list)
    away_injuries: List[InjuryRecord] = field(default_factory=list)
    head_to_head: List[MatchRecord] = field(default_factory=list)
    odds: OddsRecord = field(default_factory=OddsRecord)
    league_baseline: Optional[Any] = None  # features.league_baseline.LeagueBaseline
    referee: Optional[RefereeProfile] = None
    home_tempo: Optional[TeamTempoProfile] = None
    away_tempo: Optional[TeamTempoProfile] = None
    home_recent: List[MatchRecord] = field(default_factory=list)
    away_recent: List[MatchRecord] = field(default_factory=list)
    provider_payload: Any = None
    missing_sources: List[str] = field(default_factory=list)

    def lineup_for(self, team_id: Optional[int]) -> Optional[LineupRecord]:
        for lineup in self.lineups:
            if lineup.team_id == team_id:
                return lineup
        return None


def validate_fixture(fixture: Optional[FixtureRecord]) -> FixtureRecord:
    """
    Check the identifiers the engine cannot proceed without.

    Raises
    ------
    InvalidFixtureError
        If the fixture id, kickoff time, or either team id is missing.
    """
    if fixture is None:
        raise InvalidFixtureError("Fixture record is missing.")

    missing = [
        name
        for name, value in (
            ("id", fixture.id),
            ("kickoff_time", fixture.kickoff_time),
            ("home_team_id", fixture.home_team_id),
            ("away_team_id", fixture.away_team_id),
        )
        if value is None
    ]
    if missing:
        raise InvalidFixtureError(f"Fixture is missing required fields: {missing}")

    if fixture.league_id is None or fixture.season is None:
        logger.warning(
            "Fixture %s has no league/season; league baseline will use defaults.",
            fixture.id,
        )
    return fixture
