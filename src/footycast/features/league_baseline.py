"""
League goal baseline (mu).

mu_home / mu_away are the average home and away goals per completed match in
the league-season window, using only matches kicked off strictly before the
as-of timestamp. A team Offense of 100 means "scores at exactly this rate".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

import pandas as pd

from footycast.config import FINISHED_STATUSES, BaselineConfig
from footycast.data.schema import MatchRecord
from footycast.utils.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LeagueBaseline:
    mu_home: float
    mu_away: float
    matches: int = 0
    source: str = "default"  # "season", "wide" or "default"

    @property
    def mu_team(self) -> float:
        return (self.mu_home + self.mu_away) / 2.0

    @property
    def mu_total(self) -> float:
        return self.mu_home + self.mu_away


def default_baseline(cfg: Optional[BaselineConfig] = None) -> LeagueBaseline:
    cfg = cfg or BaselineConfig()
    return LeagueBaseline(cfg.default_mu_home, cfg.default_mu_away, 0, "default")


def matches_frame(matches: Iterable[MatchRecord]) -> pd.DataFrame:
    """One row per match with date, status and goals."""
    rows = [
        {
            "fixture_id": m.fixture_id,
            "date": m.date,
            "status": (m.status or "").upper(),
            "home_goals": m.home_goals,
            "away_goals": m.away_goals,
        }
        for m in matches
    ]
    df = pd.DataFrame(rows, columns=["fixture_id", "date", "status", "home_goals", "away_goals"])
    df["date"] = pd.to_datetime(df["date"], utc=True, errors="coerce")
    return df


def _qualifying(df: pd.DataFrame, as_of: datetime) -> pd.DataFrame:
    as_of_ts = pd.Timestamp(as_of)
    if as_of_ts.tzinfo is None:
        as_of_ts = as_of_ts.tz_localize("UTC")
    mask = df["status"].isin(FINISHED_STATUSES) & df["date"].notna() & (df["date"] < as_of_ts)
    out = df.loc[mask].copy()
    out["home_goals"] = pd.to_numeric(out["home_goals"], errors="coerce").fillna(0)
    out["away_goals"] = pd.to_numeric(out["away_goals"], errors="coerce").fillna(0)
    return out


def count_qualifying(matches: Iterable[MatchRecord], as_of: datetime) -> int:
    """Completed matches kicked off strictly before `as_of`."""
    return int(len(_qualifying(matches_frame(matches), as_of)))


def compute_league_baseline(
    season_matches: Iterable[MatchRecord],
    as_of: datetime,
    wider_matches: Optional[Iterable[MatchRecord]] = None,
    cfg: Optional[BaselineConfig] = None,
) -> LeagueBaseline:
    """
    Average home/away goals over qualifying matches.

    Parameters
    ----------
    season_matches : Iterable[MatchRecord]
        Fixtures of the current league-season.
    as_of : datetime
        Only matches strictly before this instant count (no lookahead).
    wider_matches : Iterable[MatchRecord] | None
        Extra fixtures (e.g. the previous season) added when the current
        season has fewer than `cfg.min_matches` qualifying matches.
    cfg : BaselineConfig | None
        Defaults and thresholds.

    Returns
    -------
    LeagueBaseline
        The fixed defaults when no match qualifies.
    """
    cfg = cfg or BaselineConfig()
    df = _qualifying(matches_frame(season_matches), as_of)
    source = "season"

    if len(df) < cfg.min_matches and wider_matches is not None:
        wide = _qualifying(matches_frame(wider_matches), as_of)
        if len(wide):
            df = pd.concat([df, wide], ignore_index=True)
            source = "wide"
            logger.info(
                "Season has too few completed matches; widened mu window to %d matches.",
                len(df),
            )

    # the widened window may overlap the season fetch
    df = df.loc[df["fixture_id"].isna() | ~df.duplicated(subset=["fixture_id"])]

    if df.empty:
        logger.info("No completed matches before %s; using default mu.", as_of)
        return default_baseline(cfg)

    return LeagueBaseline(
        mu_home=float(df["home_goals"].mean()),
        mu_away=float(df["away_goals"].mean()),
        matches=int(len(df)),
        source=source,
    )
