"""
Fixture lookup by date and team names.

Team names are resolved with the provider's team search (first hit wins),
then the day's fixtures are filtered locally to those teams.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from footycast.data.client import ApiFootballClient
from footycast.data.parsers import parse_fixture
from footycast.data.schema import FixtureRecord
from footycast.utils.logging_utils import get_logger

logger = get_logger(__name__)


def find_team_id(client: ApiFootballClient, name: str) -> Optional[int]:
    results = client.get_response("/teams", {"search": name}) or []
    for item in results:
        team_id = (item.get("team") or {}).get("id") if isinstance(item, dict) else None
        if team_id is not None:
            return int(team_id)
    logger.info("No team matches %r", name)
    return None


def _involves(fixture: FixtureRecord, team_id: Optional[int]) -> bool:
    return team_id is None or team_id in (fixture.home_team_id, fixture.away_team_id)


def find_fixtures(
    client: ApiFootballClient,
    date: str,
    home: Optional[str] = None,
    away: Optional[str] = None,
    league: Optional[int] = None,
    season: Optional[int] = None,
) -> List[FixtureRecord]:
    """Fixtures on `date` involving the named teams (either side)."""
    home_id = find_team_id(client, home) if home else None
    away_id = find_team_id(client, away) if away else None
    if (home and home_id is None) or (away and away_id is None):
        return []

    params = {"date": date, "league": league, "season": season, "team": home_id or away_id}
    rows = client.get_response("/fixtures", params) or []
    fixtures = [parse_fixture(item) for item in rows if isinstance(item, dict)]
    return [f for f in fixtures if _involves(f, home_id) and _involves(f, away_id)]


def fixture_summary(fixture: FixtureRecord) -> Dict[str, Any]:
    return {
        "fixture_id": fixture.id,
        "date_utc": None if fixture.kickoff_time is None else fixture.kickoff_time.isoformat(),
        "status": fixture.status,
        "league": {"id": fixture.league_id, "name": fixture.league_name, "season": fixture.season},
        "home": {"id": fixture.home_team_id, "name": fixture.home_team_name},
        "away": {"id": fixture.away_team_id, "name": fixture.away_team_name},
    }
