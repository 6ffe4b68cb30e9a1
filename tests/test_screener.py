from datetime import timedelta

import pytest

from footycast.data.parsers import parse_bookmakers
from footycast.models.screener import MarketSnapshot, OddsScreener, criterion_value, rank_fixtures

from conftest import FIXTURE_ID, KICKOFF, FakeClient, bet, bookmaker, make_fixture, provider_routes


def _odds(over: float, under: float, home: float = 2.0):
    return parse_bookmakers(
        [
            bookmaker(
                "Book A",
                [
                    bet("Match Winner", Home=home, Draw=3.5, Away=4.0),
                    {
                        "name": "Goals Over/Under",
                        "values": [{"value": "Over 2.5", "odd": over}, {"value": "Under 2.5", "odd": under}],
                    },
                ],
            )
        ]
    )


def test_criterion_value_reads_the_right_market():
    snapshot = MarketSnapshot.from_odds(_odds(2.0, 2.0))
    assert criterion_value("over25", snapshot) == pytest.approx(0.5)
    assert criterion_value("UNDER25", snapshot) == pytest.approx(0.5)
    assert criterion_value("btts", snapshot) is None
    assert criterion_value("home", snapshot) > criterion_value("away", snapshot)
    with pytest.raises(ValueError):
        criterion_value("corners", snapshot)


def test_rank_fixtures_orders_by_value_and_skips_missing_odds():
    fixtures = [make_fixture(id=1), make_fixture(id=2), make_fixture(id=3), make_fixture(id=4)]
    odds = {
        1: _odds(2.2, 1.7),
        2: _odds(1.5, 2.6),
        4: _odds(1.9, 1.9),
    }
    rows = rank_fixtures(fixtures, odds, "over25", k=10)

    assert [r.fixture.id for r in rows] == [2, 4, 1]
    assert [r.rank for r in rows] == [1, 2, 3]
    assert rows[0].to_dict()["criterion_value"] == round(rows[0].value, 4)
    assert len(rank_fixtures(fixtures, odds, "over25", k=1)) == 1


def test_rank_fixtures_keeps_input_order_on_ties():
    fixtures = [make_fixture(id=7), make_fixture(id=5)]
    odds = {7: _odds(1.9, 1.9), 5: _odds(1.9, 1.9)}
    assert [r.fixture.id for r in rank_fixtures(fixtures, odds, "over25")] == [7, 5]


def test_screen_filters_finished_fixtures(fake_client):
    out = OddsScreener(fake_client, concurrency=2).screen("2024-10-03", "over25", k=10)

    assert out["count_total"] == 2
    assert [item["fixture_id"] for item in out["items"]] == [FIXTURE_ID, FIXTURE_ID + 1]
    assert out["items"][0]["market"]["implied_ou25"]["over25"] == pytest.approx(0.5263, abs=1e-4)
    # bulk request came back empty, so each fixture was fetched on its own
    per_fixture = [params for path, params in fake_client.calls if path == "/odds" and "fixture" in params]
    assert sorted(p["fixture"] for p in per_fixture) == [FIXTURE_ID, FIXTURE_ID + 1]


def test_screen_includes_finished_when_asked(fake_client):
    out = OddsScreener(fake_client).screen("2024-10-03", "home", k=1, only_pre=False)
    assert out["count_total"] == 3
    assert out["count_returned"] == 1


def test_screen_uses_bulk_odds_when_available():
    routes = provider_routes()

    def odds(params):
        if "date" in params:
            return [
                {"fixture": {"id": FIXTURE_ID}, "bookmakers": [bookmaker("B", [bet("Both Teams Score", Yes=1.5, No=2.5)])]},
                {"fixture": {"id": FIXTURE_ID + 1}, "bookmakers": [bookmaker("B", [bet("Both Teams Score", Yes=2.5, No=1.5)])]},
            ]
        return []

    routes["/odds"] = odds
    client = FakeClient(routes)
    out = OddsScreener(client).screen("2024-10-03", "btts")

    assert [item["fixture_id"] for item in out["items"]] == [FIXTURE_ID, FIXTURE_ID + 1]
    assert out["items"][0]["criterion_value"] == pytest.approx(0.625)
    assert client.count("/odds") == 1


def test_screen_survives_bulk_odds_failure():
    client = FakeClient(provider_routes(), failing=["/odds"])
    out = OddsScreener(client).screen("2024-10-03")
    assert out["count_total"] == 0
    assert out["items"] == []


@pytest.mark.parametrize("date, criterion", [("03/10/2024", "over25"), ("2024-10-03", "corners")])
def test_screen_rejects_bad_arguments(fake_client, date, criterion):
    with pytest.raises(ValueError):
        OddsScreener(fake_client).screen(date, criterion)


def test_kickoff_is_serialised_in_rows():
    rows = rank_fixtures([make_fixture(kickoff_time=KICKOFF + timedelta(hours=1))], {FIXTURE_ID: _odds(2.0, 2.0)}, "over25")
    assert rows[0].to_dict()["kickoff_utc"] == (KICKOFF + timedelta(hours=1)).isoformat()


def test_rows_carry_country_and_criterion(fake_client):
    out = OddsScreener(fake_client).screen("2024-10-03", "over25", k=1)
    item = out["items"][0]
    assert item["league"]["country"] == "England"
    assert item["criterion"] == "over25"
    assert "notes" not in item


def test_refine_tags_each_pick(fake_client):
    out = OddsScreener(fake_client).screen("2024-10-03", "home", k=5, refine=True)
    assert out["count_returned"] == 2
    assert all(item["notes"] == "screen=odds; refine=light (no model call)" for item in out["items"])
