from datetime import timedelta

import pytest

from footycast.data.data_loader import MatchDataLoader
from footycast.errors import FixtureNotFoundError, InvalidFixtureError, UpstreamError
from footycast.utils.cache import TTLCache

from conftest import (
    AWAY_ID,
    FIXTURE_ID,
    HOME_ID,
    KICKOFF,
    LEAGUE_ID,
    NOW,
    SEASON,
    FakeClient,
    fixture_item,
    make_fixture,
    provider_routes,
)


def test_load_assembles_every_signal(fake_client):
    inputs = MatchDataLoader(fake_client).load(FIXTURE_ID, NOW)

    assert inputs.fixture.id == FIXTURE_ID
    assert inputs.missing_sources == []
    assert len(inputs.home_players) == 11
    assert len(inputs.away_players) == 11
    assert inputs.home_stats.goals_for_avg == pytest.approx(1.8)
    assert not inputs.odds.is_empty
    assert inputs.provider_payload[0]["predictions"]["percent"]["home"] == "50%"

    baseline = inputs.league_baseline
    assert baseline.source == "season"
    assert baseline.matches == 40
    assert (baseline.mu_home, baseline.mu_away) == (pytest.approx(2.0), pytest.approx(1.0))

    assert inputs.referee.matches == 8
    assert inputs.referee.yellow_per_match == pytest.approx(4.0)
    assert inputs.home_tempo.team_id == HOME_ID
    assert inputs.home_tempo.matches == 5
    assert inputs.away_tempo.team_id == AWAY_ID
    assert len(inputs.home_recent) == 5


def test_optional_failures_degrade_to_missing_sources():
    client = FakeClient(provider_routes(), failing=["/odds", "/injuries"])
    inputs = MatchDataLoader(client).load(FIXTURE_ID, NOW)

    assert inputs.odds.is_empty
    assert sorted(inputs.missing_sources) == ["away_injuries", "home_injuries", "odds"]
    assert inputs.home_injuries == []
    assert len(inputs.home_players) == 11


def test_unknown_fixture_raises_not_found(fake_client):
    with pytest.raises(FixtureNotFoundError):
        MatchDataLoader(fake_client).load(424242, NOW)


def test_fixture_without_kickoff_is_invalid():
    item = fixture_item()
    item["fixture"]["date"] = None
    routes = provider_routes()
    routes["/fixtures"] = [item]

    with pytest.raises(InvalidFixtureError):
        MatchDataLoader(FakeClient(routes)).load(FIXTURE_ID, NOW)


def test_fixture_fetch_failure_propagates():
    client = FakeClient(provider_routes(), failing=["/fixtures"])
    with pytest.raises(UpstreamError):
        MatchDataLoader(client).load(FIXTURE_ID, NOW)


def test_derived_lookups_are_cached_across_requests(fake_client):
    loader = MatchDataLoader(fake_client, cache=TTLCache())
    loader.load(FIXTURE_ID, NOW)
    stats_calls = fake_client.count("/fixtures/statistics")
    league_calls = sum(1 for p, params in fake_client.calls if p == "/fixtures" and "league" in params)

    loader.load(FIXTURE_ID, NOW)

    assert fake_client.count("/fixtures/statistics") == stats_calls
    assert sum(1 for p, params in fake_client.calls if p == "/fixtures" and "league" in params) == league_calls
    assert league_calls == 1


def test_short_season_fetches_previous_season():
    routes = provider_routes()
    inner = routes["/fixtures"]

    def fixtures(params):
        if "league" in params and "season" in params:
            if params["season"] == 2024:
                return [fixture_item(fixture_id=6000, date=NOW - timedelta(days=1), status="FT", home_goals=4, away_goals=0)]
            return [
                fixture_item(
                    fixture_id=6100 + i,
                    date=NOW.replace(year=2024, month=3, day=1 + i),
                    status="FT",
                    home_goals=1,
                    away_goals=1,
                    season=2023,
                )
                for i in range(3)
            ]
        return inner(params)

    routes["/fixtures"] = fixtures
    inputs = MatchDataLoader(FakeClient(routes)).load(FIXTURE_ID, NOW)

    assert inputs.league_baseline.source == "wide"
    assert inputs.league_baseline.matches == 4
    assert inputs.league_baseline.mu_home == pytest.approx(7.0 / 4.0)


def test_source_urls_cover_the_fetches(fake_client):
    loader = MatchDataLoader(fake_client)
    inputs = loader.load(FIXTURE_ID, NOW)
    urls = loader.source_urls(inputs.fixture)

    assert urls[0] == f"https://api.test/fixtures?id={FIXTURE_ID}"
    assert any("/odds?fixture=" in u for u in urls)
    assert any(f"h2h={HOME_ID}-{AWAY_ID}" in u for u in urls)


def test_malformed_optional_payload_is_a_missing_source():
    routes = provider_routes()
    routes["/fixtures/lineups"] = 42
    inputs = MatchDataLoader(FakeClient(routes)).load(FIXTURE_ID, NOW)

    assert inputs.missing_sources == ["lineups"]
    assert inputs.lineups == []
    assert len(inputs.home_players) == 11


def test_overflowing_ids_are_skipped_not_fatal():
    routes = provider_routes()
    routes["/injuries"] = [{"player": {"id": "1e400"}, "team": {"id": "1e400"}}]
    inputs = MatchDataLoader(FakeClient(routes)).load(FIXTURE_ID, NOW)

    assert inputs.missing_sources == []
    assert inputs.home_injuries == []


def test_team_tempo_cache_respects_the_cutoff(fake_client):
    loader = MatchDataLoader(fake_client, cache=TTLCache())
    recent = loader.team_recent(HOME_ID)

    later = loader.team_tempo(HOME_ID, recent, KICKOFF)
    earlier = loader.team_tempo(HOME_ID, recent, KICKOFF - timedelta(days=10))

    assert later.matches == 5
    assert earlier.matches == 4


def test_referee_cache_respects_the_kickoff(fake_client):
    loader = MatchDataLoader(fake_client, cache=TTLCache())

    upcoming = loader.referee_profile(make_fixture())
    # only two league matches predate this kickoff
    early = loader.referee_profile(make_fixture(id=FIXTURE_ID + 5, kickoff_time=NOW - timedelta(days=40)))

    assert upcoming.matches == 8
    assert early.matches == 2


def test_baseline_cache_respects_the_as_of_day(fake_client):
    loader = MatchDataLoader(fake_client, cache=TTLCache())

    today = loader.league_baseline(LEAGUE_ID, SEASON, NOW)
    earlier = loader.league_baseline(LEAGUE_ID, SEASON, NOW - timedelta(days=20))
    same_day = loader.league_baseline(LEAGUE_ID, SEASON, NOW + timedelta(hours=6))

    assert today.matches == 40
    assert earlier.matches == 22
    assert same_day == today


def test_widening_counts_only_matches_before_as_of():
    routes = provider_routes()
    inner = routes["/fixtures"]

    def fixtures(params):
        if params.get("season") == SEASON - 1:
            return [
                fixture_item(
                    fixture_id=6100 + i,
                    date=NOW.replace(year=2024, month=3, day=1 + i),
                    status="FT",
                    home_goals=3,
                    away_goals=0,
                    season=SEASON - 1,
                )
                for i in range(3)
            ]
        return inner(params)

    routes["/fixtures"] = fixtures
    loader = MatchDataLoader(FakeClient(routes))
    # all 40 current-season results are played after this date
    baseline = loader.league_baseline(LEAGUE_ID, SEASON, NOW - timedelta(days=60))

    assert baseline.source == "wide"
    assert baseline.matches == 3
    assert baseline.mu_home == pytest.approx(3.0)
