"""
Odds screener.

Ranks one day's fixtures by a market-implied probability (Over 2.5, BTTS,
home/draw/away) without running the full model, so a whole matchday costs
one odds request per fixture at most.
"""

from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from footycast.config import SCREENER_CONCURRENCY, MarketConfig
from footycast.data.client import ApiFootballClient
from footycast.data.parsers import parse_bookmakers, parse_fixture
from footycast.data.schema import FixtureRecord, OddsRecord
from footycast.errors import UpstreamError
from footycast.models.market import (
    Implied1X2,
    ImpliedBTTS,
    ImpliedOverUnder,
    parse_1x2,
    parse_btts,
    parse_over_under_25,
)
from footycast.utils.logging_utils import get_logger

logger = get_logger(__name__)

CRITERIA = ("over25", "under25", "btts", "home", "draw", "away")
PRE_MATCH_STATUSES = ("NS", "TBD")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
REFINE_NOTE = "screen=odds; refine=light (no model call)"


@dataclass(frozen=True)
class MarketSnapshot:
    """Market-implied probabilities of one fixture."""

    win_1x2: Optional[Implied1X2] = None
    ou25: Optional[ImpliedOverUnder] = None
    btts: Optional[ImpliedBTTS] = None

    @classmethod
    def from_odds(cls, odds: OddsRecord, cfg: Optional[MarketConfig] = None) -> "MarketSnapshot":
        return cls(parse_1x2(odds, cfg), parse_over_under_25(odds, cfg), parse_btts(odds, cfg))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "implied_1x2": None if self.win_1x2 is None else self.win_1x2.as_dict(),
            "implied_ou25": None
            if self.ou25 is None
            else {"over25": self.ou25.over25, "under25": self.ou25.under25},
            "implied_btts": None if self.btts is None else {"yes": self.btts.yes, "no": self.btts.no},
        }


def criterion_value(criterion: str, snapshot: MarketSnapshot) -> Optional[float]:
    """Probability the screen ranks on, or None when that market is absent."""
    crit = criterion.lower()
    if crit in ("home", "draw", "away"):
        return None if snapshot.win_1x2 is None else getattr(snapshot.win_1x2, crit)
    if crit in ("over25", "under25"):
        return None if snapshot.ou25 is None else getattr(snapshot.ou25, crit)
    if crit == "btts":
        return None if snapshot.btts is None else snapshot.btts.yes
    raise ValueError(f"Unknown criterion {criterion!r}; expected one of {', '.join(CRITERIA)}")


@dataclass(frozen=True)
class ScreenRow:
    fixture: FixtureRecord
    snapshot: MarketSnapshot
    value: float
    criterion: str = ""
    rank: int = 0

    def to_dict(self) -> Dict[str, Any]:
        f = self.fixture
        return {
            "rank": self.rank,
            "fixture_id": f.id,
            "kickoff_utc": None if f.kickoff_time is None else f.kickoff_time.isoformat(),
            "league": {"id": f.league_id, "name": f.league_name, "country": f.league_country, "season": f.season},
            "home": {"id": f.home_team_id, "name": f.home_team_name},
            "away": {"id": f.away_team_id, "name": f.away_team_name},
            "market": self.snapshot.to_dict(),
            "criterion": self.criterion,
            "criterion_value": round(self.value, 4),
        }


def rank_fixtures(
    fixtures: Iterable[FixtureRecord],
    odds_by_fixture: Dict[int, OddsRecord],
    criterion: str,
    k: int = 10,
    cfg: Optional[MarketConfig] = None,
) -> List[ScreenRow]:
    """
    Score fixtures on `criterion` and return the top `k`.

    Fixtures without odds, or without the criterion's market, are left out.
    Ties keep the input order.
    """
    rows: List[ScreenRow] = []
    for fixture in fixtures:
        odds = odds_by_fixture.get(fixture.id)
        if odds is None or odds.is_empty:
            continue
        snapshot = MarketSnapshot.from_odds(odds, cfg)
        value = criterion_value(criterion, snapshot)
        if value is None:
            continue
        rows.append(ScreenRow(fixture=fixture, snapshot=snapshot, value=value, criterion=criterion.lower()))

    rows.sort(key=lambda r: -r.value)
    return [
        ScreenRow(fixture=r.fixture, snapshot=r.snapshot, value=r.value, criterion=r.criterion, rank=i + 1)
        for i, r in enumerate(rows[: max(1, k)])
    ]


class OddsScreener:
    """Fetches a day's fixtures and odds, then ranks them."""

    def __init__(self, client: ApiFootballClient, concurrency: int = SCREENER_CONCURRENCY) -> None:
        self.client = client
        self.concurrency = concurrency

    def fixtures_for(
        self,
        date: str,
        league: Optional[int] = None,
        season: Optional[int] = None,
        only_pre: bool = True,
    ) -> List[FixtureRecord]:
        rows = self.client.get_all("/fixtures", {"date": date, "league": league})
        fixtures = [parse_fixture(item) for item in rows if isinstance(item, dict)]
        return [
            f
            for f in fixtures
            if f.id is not None
            and (season is None or f.season == season)
            and (not only_pre or f.status in PRE_MATCH_STATUSES)
        ]

    def odds_for(self, fixture_ids: List[int], date: str) -> Dict[int, OddsRecord]:
        """Bulk `/odds?date=` first, then per-fixture requests for the rest."""
        odds: Dict[int, OddsRecord] = {}
        try:
            for item in self.client.get_response("/odds", {"date": date}) or []:
                fid = (item.get("fixture") or {}).get("id") if isinstance(item, dict) else None
                record = parse_bookmakers(item.get("bookmakers") or []) if fid else None
                if record is not None and not record.is_empty:
                    odds[fid] = record
        except UpstreamError as exc:
            logger.warning("Bulk odds request for %s failed: %s", date, exc)

        wanted = set(fixture_ids)
        need = [fid for fid in fixture_ids if fid not in odds]

        def fetch(fid: int) -> Optional[OddsRecord]:
            try:
                items = self.client.get_response("/odds", {"fixture": fid}) or []
            except UpstreamError as exc:
                logger.warning("Odds for fixture %s unavailable: %s", fid, exc)
                return None
            return parse_bookmakers((items[0].get("bookmakers") or []) if items else [])

        with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
            for fid, record in zip(need, pool.map(fetch, need)):
                if record is not None and not record.is_empty:
                    odds[fid] = record
        return {fid: rec for fid, rec in odds.items() if fid in wanted}

    def screen(
        self,
        date: str,
        criterion: str = "over25",
        k: int = 10,
        league: Optional[int] = None,
        season: Optional[int] = None,
        only_pre: bool = True,
        refine: bool = False,
    ) -> Dict[str, Any]:
        """
        Rank the day's fixtures by `criterion` and keep the top `k`.

        With `refine`, each pick is tagged with a note saying the ranking is
        odds-only and no model was run for it.
        """
        if not DATE_RE.match(date or ""):
            raise ValueError("date must be YYYY-MM-DD")
        criterion = criterion.lower()
        if criterion not in CRITERIA:
            raise ValueError(f"Unknown criterion {criterion!r}; expected one of {', '.join(CRITERIA)}")
        k = max(1, min(50, k))

        fixtures = self.fixtures_for(date, league, season, only_pre)
        odds = self.odds_for([f.id for f in fixtures], date)
        ranked = rank_fixtures(fixtures, odds, criterion, len(fixtures) or 1)
        picks = ranked[:k]
        items = [row.to_dict() for row in picks]
        if refine:
            for item in items:
                item["notes"] = REFINE_NOTE
        logger.info("Screened %d fixtures on %s by %s, %d with odds", len(fixtures), date, criterion, len(ranked))

        return {
            "asof_utc": datetime.now(timezone.utc).isoformat(),
            "date": date,
            "criterion": criterion,
            "count_total": len(ranked),
            "count_returned": len(picks),
            "items": items,
        }
