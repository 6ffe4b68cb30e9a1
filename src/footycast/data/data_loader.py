"""
Data loading for FootyCast predictions.

`MatchDataLoader` gathers every signal the engine consumes for one fixture
from the upstream provider. After the fixture itself is fetched, the
independent, read-only requests fan out over a thread pool and are joined
before the engine runs.

The fixture fetch is the only fatal step. Any other failed or unparseable
fetch is logged, recorded in `MatchInputs.missing_sources`, and replaced by
its neutral default. Expensive derived quantities (league baseline, referee
profile, team tempo) go through the injected `TTLCache`, keyed by every input
they depend on, including their as-of cutoff.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from footycast.config import (
    H2H_LAST,
    LOADER_MAX_WORKERS,
    REFEREE_RECENT_MATCHES,
    TEAM_RECENT_MATCHES,
    BaselineConfig,
)
from footycast.data.client import ApiFootballClient
from footycast.data.parsers import (
    parse_fixture,
    parse_fixture_statistics,
    parse_injuries,
    parse_lineups,
    parse_matches,
    parse_odds,
    parse_players,
    parse_team_stats,
)
from footycast.data.schema import (
    FixtureRecord,
    MatchInputs,
    MatchRecord,
    RefereeProfile,
    TeamTempoProfile,
    validate_fixture,
)
from footycast.errors import FixtureNotFoundError, UpstreamError
from footycast.features.league_baseline import LeagueBaseline, compute_league_baseline, count_qualifying
from footycast.features.signals import build_referee_profile, build_team_tempo, referee_matches
from footycast.utils.cache import TTLCache
from footycast.utils.logging_utils import get_logger, log_duration

logger = get_logger(__name__)


def _day_start(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


class MatchDataLoader:
    """Fetches and assembles `MatchInputs` for a fixture id."""

    def __init__(
        self,
        client: ApiFootballClient,
        cache: Optional[TTLCache] = None,
        max_workers: int = LOADER_MAX_WORKERS,
        baseline_config: Optional[BaselineConfig] = None,
    ) -> None:
        self.client = client
        self.cache = cache if cache is not None else TTLCache()
        self.max_workers = max_workers
        self.baseline_config = baseline_config or BaselineConfig()

    # ------------------------------------------------------------------
    # Single fetches
    # ------------------------------------------------------------------

    def fetch_fixture(self, fixture_id: int) -> FixtureRecord:
        items = self.client.get_response("/fixtures", {"id": fixture_id}) or []
        if not items:
            raise FixtureNotFoundError(f"Fixture not found: {fixture_id}")
        return validate_fixture(parse_fixture(items[0]))

    def league_fixtures(self, league_id: int, season: int) -> List[MatchRecord]:
        """All fixtures of a league-season (cached, shared by mu and referee)."""

        def compute() -> List[MatchRecord]:
            rows = self.client.get_all(
                "/fixtures",
                {"league": league_id, "season": season},
            )
            return parse_matches(rows)

        return self.cache.get_or_compute(("league_fixtures", league_id, season), compute)

    def league_baseline(self, league_id: int, season: int, as_of: datetime) -> LeagueBaseline:
        """
        League mu from matches completed before the start of the as-of day (UTC).

        Truncating the cutoff to the day lets every request on that day share
        one cache entry with one answer.
        """
        cutoff = _day_start(as_of)

        def compute() -> LeagueBaseline:
            current = self.league_fixtures(league_id, season)
            wider: Optional[List[MatchRecord]] = None
            if count_qualifying(current, cutoff) < self.baseline_config.min_matches:
                wider = self.league_fixtures(league_id, season - 1)
            return compute_league_baseline(current, cutoff, wider, self.baseline_config)

        key = ("league_baseline", league_id, season, cutoff.isoformat())
        return self.cache.get_or_compute(key, compute)

    def fixture_statistics(self, fixture_id: int) -> Dict[int, Dict[str, Optional[float]]]:
        def compute() -> Dict[int, Dict[str, Optional[float]]]:
            return parse_fixture_statistics(
                self.client.get_response("/fixtures/statistics", {"fixture": fixture_id}) or []
            )

        return self.cache.get_or_compute(("fixture_statistics", fixture_id), compute)

    def team_recent(self, team_id: int) -> List[MatchRecord]:
        rows = self.client.get_response("/fixtures", {"team": team_id, "last": TEAM_RECENT_MATCHES * 2}) or []
        return parse_matches(rows)

    def team_tempo(self, team_id: int, recent: List[MatchRecord], before: datetime) -> Optional[TeamTempoProfile]:
        def compute() -> Optional[TeamTempoProfile]:
            finished = sorted(
                (m for m in recent if m.is_finished and m.date is not None and m.date < before),
                key=lambda m: m.date,
                reverse=True,
            )[:TEAM_RECENT_MATCHES]
            stats = [self.fixture_statistics(m.fixture_id) for m in finished if m.fixture_id is not None]
            return build_team_tempo(team_id, stats)

        return self.cache.get_or_compute(("team_tempo", team_id, before.isoformat()), compute)

    def referee_profile(self, fixture: FixtureRecord) -> Optional[RefereeProfile]:
        if not fixture.referee_name or fixture.league_id is None or fixture.season is None:
            return None
        name = fixture.referee_name

        def compute() -> Optional[RefereeProfile]:
            matches = referee_matches(
                self.league_fixtures(fixture.league_id, fixture.season),
                name,
                fixture.kickoff_time,
                REFEREE_RECENT_MATCHES,
            )
            stats = [self.fixture_statistics(m.fixture_id) for m in matches if m.fixture_id is not None]
            return build_referee_profile(name, stats)

        kickoff = fixture.kickoff_time.isoformat() if fixture.kickoff_time else None
        return self.cache.get_or_compute(("referee", name, fixture.league_id, fixture.season, kickoff), compute)

    def source_urls(self, fixture: FixtureRecord) -> List[str]:
        """Upstream URLs a prediction for `fixture` draws on."""
        fid, home, away = fixture.id, fixture.home_team_id, fixture.away_team_id
        league, season = fixture.league_id, fixture.season
        url = self.client.url_for
        return [
            url("/fixtures", {"id": fid}),
            url("/teams/statistics", {"team": home, "league": league, "season": season}),
            url("/teams/statistics", {"team": away, "league": league, "season": season}),
            url("/fixtures", {"league": league, "season": season}),
            url("/fixtures/lineups", {"fixture": fid}),
            url("/injuries", {"team": home, "season": season}),
            url("/injuries", {"team": away, "season": season}),
            url("/fixtures/headtohead", {"h2h": f"{home}-{away}", "last": H2H_LAST}),
            url("/odds", {"fixture": fid}),
            url("/predictions", {"fixture": fid}),
            url("/players", {"team": home, "league": league, "season": season}),
            url("/players", {"team": away, "league": league, "season": season}),
        ]

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def load(self, fixture_id: int, now: datetime) -> MatchInputs:
        """
        Fetch every signal for `fixture_id`.

        Raises
        ------
        FixtureNotFoundError
            If the provider has no such fixture.
        InvalidFixtureError
            If the fixture lacks id, kickoff or team ids.
        UpstreamError
            If the fixture request itself fails.
        """
        with log_duration(logger, f"fixture {fixture_id} fetch"):
            fixture = self.fetch_fixture(fixture_id)

        home, away = fixture.home_team_id, fixture.away_team_id
        league, season = fixture.league_id, fixture.season

        tasks: Dict[str, Callable[[], Any]] = {
            "home_stats": lambda: parse_team_stats(
                self.client.get_response("/teams/statistics", {"team": home, "league": league, "season": season})
            ),
            "away_stats": lambda: parse_team_stats(
                self.client.get_response("/teams/statistics", {"team": away, "league": league, "season": season})
            ),
            "home_players": lambda: parse_players(
                self.client.get_all("/players", {"team": home, "league": league, "season": season})
            ),
            "away_players": lambda: parse_players(
                self.client.get_all("/players", {"team": away, "league": league, "season": season})
            ),
            "home_injuries": lambda: parse_injuries(
                self.client.get_response("/injuries", {"team": home, "season": season})
            ),
            "away_injuries": lambda: parse_injuries(
                self.client.get_response("/injuries", {"team": away, "season": season})
            ),
            "lineups": lambda: parse_lineups(self.client.get_response("/fixtures/lineups", {"fixture": fixture_id})),
            "head_to_head": lambda: parse_matches(
                self.client.get_response("/fixtures/headtohead", {"h2h": f"{home}-{away}", "last": H2H_LAST})
            ),
            "odds": lambda: parse_odds(self.client.get_response("/odds", {"fixture": fixture_id})),
            "provider_payload": lambda: self.client.get_response("/predictions", {"fixture": fixture_id}),
            "referee": lambda: self.referee_profile(fixture),
            "home_recent": lambda: self.team_recent(home),
            "away_recent": lambda: self.team_recent(away),
        }
        if league is not None and season is not None:
            tasks["league_baseline"] = lambda: self.league_baseline(league, season, now)

        results, missing = self._run_all(tasks)

        # tempo needs each team's recent fixtures, fetched above
        tempo_tasks: Dict[str, Callable[[], Any]] = {
            "home_tempo": lambda: self.team_tempo(home, results.get("home_recent") or [], fixture.kickoff_time),
            "away_tempo": lambda: self.team_tempo(away, results.get("away_recent") or [], fixture.kickoff_time),
        }
        tempo, tempo_missing = self._run_all(tempo_tasks)
        results.update(tempo)
        missing.extend(tempo_missing)

        return MatchInputs(fixture=fixture, missing_sources=missing, **results)

    def _run_all(self, tasks: Dict[str, Callable[[], Any]]) -> Tuple[Dict[str, Any], List[str]]:
        results: Dict[str, Any] = {}
        missing: List[str] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures: Dict[str, Future] = {name: pool.submit(fn) for name, fn in tasks.items()}
            for name, future in futures.items():
                try:
                    value = future.result()
                except UpstreamError as exc:
                    logger.warning("Optional source %s unavailable: %s", name, exc)
                    missing.append(name)
                    continue
                except Exception as exc:
                    # a malformed payload only loses its own source
                    logger.warning("Optional source %s unusable: %s", name, exc, exc_info=True)
                    missing.append(name)
                    continue
                if value is not None:
                    results[name] = value
        return results, missing
