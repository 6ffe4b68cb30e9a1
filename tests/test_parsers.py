from datetime import datetime, timezone

import pytest

from footycast.data.parsers import (
    parse_datetime,
    parse_fixture,
    parse_fixture_statistics,
    parse_injuries,
    parse_lineups,
    parse_match,
    parse_odds,
    parse_player,
    parse_players,
    parse_team_stats,
)
from footycast.data.schema import validate_fixture
from footycast.errors import InvalidFixtureError
from footycast.utils.numeric import percent_to_prob, to_num

from conftest import FIXTURE_ID, HOME_ID, fixture_item, match_statistics, player_row, standard_bookmakers


def test_parse_datetime_variants():
    assert parse_datetime("2024-10-03T19:00:00+00:00") == datetime(2024, 10, 3, 19, tzinfo=timezone.utc)
    assert parse_datetime("2024-10-03T19:00:00Z") == datetime(2024, 10, 3, 19, tzinfo=timezone.utc)
    assert parse_datetime("2024-10-03T19:00:00").tzinfo is not None
    assert parse_datetime("not a date") is None
    assert parse_datetime(None) is None


def test_parse_fixture_and_validate():
    fixture = parse_fixture(fixture_item())
    assert fixture.id == FIXTURE_ID
    assert fixture.home_team_id == HOME_ID
    assert fixture.referee_name == "M. Oliver, England"
    assert fixture.status == "NS"
    assert fixture.league_country == "England"
    assert validate_fixture(fixture) is fixture


def test_fixture_without_teams_is_invalid():
    item = fixture_item()
    item["teams"]["away"] = {}
    with pytest.raises(InvalidFixtureError):
        validate_fixture(parse_fixture(item))
    with pytest.raises(InvalidFixtureError):
        validate_fixture(None)


def test_parse_match_falls_back_to_fulltime_score():
    item = fixture_item(status="FT")
    item["goals"] = {"home": None, "away": None}
    item["score"] = {"fulltime": {"home": 3, "away": 1}}
    match = parse_match(item)

    assert match.is_finished
    assert (match.home_goals, match.away_goals) == (3, 1)
    assert match.total_goals == 4


def test_parse_team_stats_reads_string_averages():
    stats = parse_team_stats(
        {"goals": {"for": {"average": {"total": "1.9"}}, "against": {"average": {"total": "0.8"}}}}
    )
    assert stats.goals_for_avg == pytest.approx(1.9)
    assert stats.goals_against_avg == pytest.approx(0.8)
    assert stats.form_attack is None
    assert parse_team_stats([]).goals_for_avg is None


def test_parse_player_reads_provider_spelling():
    player = parse_player(player_row(7, "Attacker", minutes=810, goals=6))
    assert player.appearances == 10
    assert player.minutes == 810
    assert player.goals == 6
    assert player.duels_won == 44
    assert player.position == "Attacker"


def test_parse_players_skips_duplicates_and_bad_rows():
    rows = [player_row(7, "Attacker"), player_row(7, "Defender"), {"player": {"id": 8}}, "junk"]
    players = parse_players(rows)
    assert [p.player_id for p in players] == [7]


def test_parse_lineups_and_injuries():
    lineups = parse_lineups(
        [
            {
                "team": {"id": HOME_ID},
                "formation": "4-3-3",
                "startXI": [{"player": {"id": i}} for i in range(1, 12)],
                "substitutes": [{"player": {"id": 12}}],
            }
        ]
    )
    assert lineups[0].formation == "4-3-3"
    assert lineups[0].starters == list(range(1, 12))
    assert lineups[0].bench == [12]

    injuries = parse_injuries([{"player": {"id": 5, "reason": "Knee"}}, {"player": {}}])
    assert [(i.player_id, i.reason) for i in injuries] == [(5, "Knee")]


def test_parse_odds_flattens_bookmakers():
    odds = parse_odds([{"bookmakers": standard_bookmakers()}])
    assert not odds.is_empty
    names = [m.name for m in odds.bookmakers[0].markets]
    assert names == ["Match Winner", "Goals Over/Under", "Both Teams Score"]
    assert odds.bookmakers[0].markets[0].outcomes["Home"] == pytest.approx(2.0)
    assert parse_odds([]).is_empty


def test_parse_fixture_statistics_reads_percentages():
    stats = parse_fixture_statistics(match_statistics(1, 2))
    assert stats[1]["Ball Possession"] == pytest.approx(55.0)
    assert stats[2]["Red Cards"] is None


def test_numeric_helpers():
    assert to_num("54%") == 54.0
    assert to_num(None, 1.5) == 1.5
    assert to_num(float("nan")) == 0.0
    assert percent_to_prob("45%") == pytest.approx(0.45)
    assert percent_to_prob(45) == pytest.approx(0.45)
    assert percent_to_prob(0.45) == pytest.approx(0.45)
    assert percent_to_prob(None) is None


def test_non_finite_numbers_fall_back():
    assert to_num("1e400") == 0.0
    assert to_num(10**400) == 0.0
    assert to_num("-inf", 2.0) == 2.0
    assert parse_injuries([{"player": {"id": "1e400"}, "team": {"id": "1e400"}}]) == []

    item = fixture_item()
    item["fixture"]["id"] = "1e400"
    assert parse_fixture(item).id is None
