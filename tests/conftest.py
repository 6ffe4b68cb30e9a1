from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

from footycast.data.schema import FixtureRecord, MatchRecord, PlayerStatSnapshot
from footycast.errors import UpstreamError

NOW = datetime(2024, 10, 1, 12, 0, tzinfo=timezone.utc)
KICKOFF = NOW + timedelta(days=2)

HOME_ID = 10
AWAY_ID = 20
LEAGUE_ID = 39
SEASON = 2024
FIXTURE_ID = 1001


def make_fixture(**overrides: Any) -> FixtureRecord:
    values = dict(
        id=FIXTURE_ID,
        kickoff_time=KICKOFF,
        league_id=LEAGUE_ID,
        season=SEASON,
        home_team_id=HOME_ID,
        away_team_id=AWAY_ID,
        referee_name="M. Oliver, England",
        home_team_name="Home FC",
        away_team_name="Away FC",
        league_name="Premier League",
        status="NS",
    )
    values.update(overrides)
    return FixtureRecord(**values)


def make_match(
    fixture_id: Optional[int],
    date: datetime,
    home_goals: int = 1,
    away_goals: int = 1,
    home_team_id: int = HOME_ID,
    away_team_id: int = AWAY_ID,
    status: str = "FT",
    league_id: Optional[int] = LEAGUE_ID,
    season: Optional[int] = SEASON,
    referee_name: Optional[str] = None,
) -> MatchRecord:
    return MatchRecord(
        fixture_id=fixture_id,
        date=date,
        status=status,
        home_team_id=home_team_id,
        away_team_id=away_team_id,
        home_goals=home_goals,
        away_goals=away_goals,
        league_id=league_id,
        season=season,
        referee_name=referee_name,
    )


def make_player(player_id: int, position: str = "Attacker", minutes: float = 900.0, **stats: Any) -> PlayerStatSnapshot:
    return PlayerStatSnapshot(
        player_id=player_id,
        name=f"Player {player_id}",
        position=position,
        appearances=stats.pop("appearances", minutes / 90.0),
        minutes=minutes,
        **stats,
    )


# ---------------------------------------------------------------------------
# Raw provider payloads
# ---------------------------------------------------------------------------


def fixture_item(
    fixture_id: int = FIXTURE_ID,
    date: datetime = KICKOFF,
    home_id: int = HOME_ID,
    away_id: int = AWAY_ID,
    status: str = "NS",
    home_goals: Optional[int] = None,
    away_goals: Optional[int] = None,
    referee: Optional[str] = "M. Oliver, England",
    league_id: int = LEAGUE_ID,
    season: int = SEASON,
) -> Dict[str, Any]:
    return {
        "fixture": {
            "id": fixture_id,
            "date": date.isoformat(),
            "referee": referee,
            "status": {"short": status},
        },
        "league": {"id": league_id, "name": "Premier League", "country": "England", "season": season},
        "teams": {
            "home": {"id": home_id, "name": f"Team {home_id}"},
            "away": {"id": away_id, "name": f"Team {away_id}"},
        },
        "goals": {"home": home_goals, "away": away_goals},
    }


def player_row(player_id: int, position: str, minutes: int = 900, goals: int = 3) -> Dict[str, Any]:
    return {
        "player": {"id": player_id, "name": f"Player {player_id}"},
        "statistics": [
            {
                "games": {"position": position, "appearences": 10, "minutes": minutes},
                "goals": {"total": goals, "assists": 2, "saves": 0, "conceded": 0},
                "shots": {"total": 20, "on": 9},
                "passes": {"key": 12},
                "dribbles": {"success": 8},
                "tackles": {"total": 15, "interceptions": 10, "blocks": 3},
                "duels": {"total": 80, "won": 44},
                "cards": {"yellow": 2, "red": 0},
                "penalty": {"saved": 0},
            }
        ],
    }


def bookmaker(name: str, bets: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"id": 1, "name": name, "bets": bets}


def bet(name: str, **values: float) -> Dict[str, Any]:
    return {"name": name, "values": [{"value": k, "odd": str(v)} for k, v in values.items()]}


def standard_bookmakers() -> List[Dict[str, Any]]:
    return [
        bookmaker(
            "Book A",
            [
                bet("Match Winner", Home=2.0, Draw=3.5, Away=4.0),
                {
                    "name": "Goals Over/Under",
                    "values": [
                        {"value": "Over 2.5", "odd": "1.80"},
                        {"value": "Under 2.5", "odd": "2.00"},
                    ],
                },
                bet("Both Teams Score", Yes=1.7, No=2.1),
            ],
        )
    ]


# ---------------------------------------------------------------------------
# Fake provider client
# ---------------------------------------------------------------------------


Route = Callable[[Dict[str, Any]], Any]


class FakeClient:
    """In-memory stand-in for ApiFootballClient; routes map path -> response."""

    base_url = "https://api.test"

    def __init__(self, routes: Dict[str, Any], failing: Optional[List[str]] = None) -> None:
        self.routes = routes
        self.failing = set(failing or [])
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def url_for(self, path: str, params: Optional[Dict[str, Any]] = None) -> str:
        query = "&".join(f"{k}={v}" for k, v in (params or {}).items() if v is not None)
        return f"{self.base_url}{path}?{query}" if query else f"{self.base_url}{path}"

    def get_response(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        params = {k: v for k, v in (params or {}).items() if v is not None}
        with self._lock:
            self.calls.append((path, params))
        if path in self.failing:
            raise UpstreamError(f"API error 500 on {path}", status_code=500)
        route = self.routes.get(path)
        if route is None:
            return []
        return route(params) if callable(route) else route

    def get_all(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
        return list(self.get_response(path, params) or [])

    def count(self, path: str) -> int:
        return sum(1 for p, _ in self.calls if p == path)


def league_history(n: int = 40) -> List[Dict[str, Any]]:
    """`n` finished league fixtures before NOW: 2-1 each, refereed by M. Oliver."""
    return [
        fixture_item(
            fixture_id=5000 + i,
            date=NOW - timedelta(days=3 + i),
            home_id=100 + i,
            away_id=200 + i,
            status="FT",
            home_goals=2,
            away_goals=1,
        )
        for i in range(n)
    ]


def match_statistics(home_id: int, away_id: int) -> List[Dict[str, Any]]:
    def block(team_id: int) -> Dict[str, Any]:
        return {
            "team": {"id": team_id},
            "statistics": [
                {"type": "Total Shots", "value": 15},
                {"type": "Shots on Goal", "value": 5},
                {"type": "Ball Possession", "value": "55%"},
                {"type": "Corner Kicks", "value": 6},
                {"type": "Fouls", "value": 12},
                {"type": "Yellow Cards", "value": 2},
                {"type": "Red Cards", "value": None},
            ],
        }

    return [block(home_id), block(away_id)]


def provider_routes() -> Dict[str, Any]:
    """A complete, consistent set of provider responses for FIXTURE_ID."""
    history = league_history()

    def fixtures(params: Dict[str, Any]) -> Any:
        if "id" in params:
            return [fixture_item()] if params["id"] == FIXTURE_ID else []
        if "team" in params and "last" in params:
            team = params["team"]
            return [
                fixture_item(
                    fixture_id=7000 + team * 10 + i,
                    date=KICKOFF - timedelta(days=4 + 7 * i),
                    home_id=team,
                    away_id=999,
                    status="FT",
                    home_goals=1,
                    away_goals=0,
                )
                for i in range(5)
            ]
        if "league" in params and "season" in params:
            return history if params["season"] == SEASON else []
        if "date" in params:
            return [
                fixture_item(),
                fixture_item(fixture_id=FIXTURE_ID + 1, home_id=30, away_id=40),
                fixture_item(fixture_id=FIXTURE_ID + 2, home_id=50, away_id=60, status="FT"),
            ]
        return []

    def statistics(params: Dict[str, Any]) -> Any:
        fid = params["fixture"]
        if 7000 <= fid < 8000:
            # a team's recent fixture, see the "team" branch above
            return match_statistics((fid - 7000) // 10, 999)
        return match_statistics(1, 2)

    def team_statistics(params: Dict[str, Any]) -> Any:
        return {
            "goals": {
                "for": {"average": {"total": "1.8"}},
                "against": {"average": {"total": "1.1"}},
            }
        }

    def players(params: Dict[str, Any]) -> Any:
        base = params["team"] * 100
        positions = ["Goalkeeper"] + ["Defender"] * 4 + ["Midfielder"] * 3 + ["Attacker"] * 3
        return [player_row(base + i, pos) for i, pos in enumerate(positions)]

    def odds(params: Dict[str, Any]) -> Any:
        if "fixture" in params:
            return [{"fixture": {"id": params["fixture"]}, "bookmakers": standard_bookmakers()}]
        return []

    def teams(params: Dict[str, Any]) -> Any:
        names = {"home fc": HOME_ID, "away fc": AWAY_ID}
        team_id = names.get(str(params.get("search", "")).lower())
        return [] if team_id is None else [{"team": {"id": team_id, "name": params["search"]}}]

    return {
        "/fixtures": fixtures,
        "/fixtures/statistics": statistics,
        "/teams/statistics": team_statistics,
        "/players": players,
        "/injuries": [],
        "/fixtures/lineups": [],
        "/fixtures/headtohead": [],
        "/odds": odds,
        "/predictions": [{"predictions": {"winner": {"id": HOME_ID}, "percent": {"home": "50%", "draw": "30%", "away": "20%"}}}],
        "/teams": teams,
    }


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient(provider_routes())
