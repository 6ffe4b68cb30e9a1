from datetime import timedelta

import pytest

from footycast.config import BaselineConfig
from footycast.features.league_baseline import compute_league_baseline, count_qualifying, default_baseline, matches_frame

from conftest import NOW, make_match


def test_no_matches_gives_default_mu():
    baseline = compute_league_baseline([], NOW)
    assert (baseline.mu_home, baseline.mu_away) == (1.60, 1.20)
    assert baseline.source == "default"
    assert baseline == default_baseline()


def test_only_matches_before_as_of_count():
    matches = [
        make_match(1, NOW - timedelta(days=7), 2, 0),
        make_match(2, NOW - timedelta(days=3), 1, 1),
        # after the as-of instant: must not leak into the baseline
        make_match(3, NOW + timedelta(hours=1), 9, 9),
        make_match(4, NOW, 9, 9),
        # not finished
        make_match(5, NOW - timedelta(days=1), 5, 5, status="NS"),
    ]
    baseline = compute_league_baseline(matches, NOW)

    assert baseline.matches == 2
    assert baseline.mu_home == pytest.approx(1.5)
    assert baseline.mu_away == pytest.approx(0.5)
    assert baseline.source == "season"


def test_short_season_widens_window_without_double_counting():
    cfg = BaselineConfig(min_matches=3)
    season = [make_match(1, NOW - timedelta(days=2), 3, 1)]
    previous = [
        make_match(1, NOW - timedelta(days=2), 3, 1),  # overlaps the season fetch
        make_match(2, NOW - timedelta(days=200), 1, 1),
        make_match(3, NOW - timedelta(days=210), 2, 0),
    ]
    baseline = compute_league_baseline(season, NOW, previous, cfg)

    assert baseline.source == "wide"
    assert baseline.matches == 3
    assert baseline.mu_home == pytest.approx(2.0)
    assert baseline.mu_away == pytest.approx(2.0 / 3.0)


def test_extra_time_and_penalties_count_as_finished():
    matches = [
        make_match(1, NOW - timedelta(days=1), 1, 1, status="AET"),
        make_match(2, NOW - timedelta(days=2), 0, 0, status="PEN"),
    ]
    assert compute_league_baseline(matches, NOW).matches == 2


def test_matches_frame_parses_dates_as_utc():
    df = matches_frame([make_match(1, NOW, 1, 0)])
    assert str(df["date"].dt.tz) == "UTC"
    assert list(df.columns) == ["fixture_id", "date", "status", "home_goals", "away_goals"]


def test_count_qualifying_ignores_later_and_unfinished_matches():
    matches = [
        make_match(1, NOW - timedelta(days=1)),
        make_match(2, NOW),
        make_match(3, NOW + timedelta(days=1)),
        make_match(4, NOW - timedelta(days=2), status="PST"),
    ]
    assert count_qualifying(matches, NOW) == 1
    assert count_qualifying([], NOW) == 0
