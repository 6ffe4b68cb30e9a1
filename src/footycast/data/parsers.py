"""
Parsers from API-Football v3 payloads into FootyCast records.

Every parser is tolerant: missing blocks become None/0 and malformed rows are
skipped with a debug log, because the engine treats absent signals as
neutral rather than as errors.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from footycast.data.schema import (
    BookmakerOdds,
    FixtureRecord,
    InjuryRecord,
    LineupRecord,
    MarketQuote,
    MatchRecord,
    OddsRecord,
    PlayerStatSnapshot,
    TeamSeasonStats,
)
from footycast.utils.logging_utils import get_logger
from footycast.utils.numeric import to_num, to_optional_num

logger = get_logger(__name__)


def _dig(obj: Any, *keys: Any) -> Any:
    """Walk nested dicts/lists, returning None as soon as a level is missing."""
    cur = obj
    for key in keys:
        if isinstance(cur, dict):
            cur = cur.get(key)
        elif isinstance(cur, list) and isinstance(key, int):
            cur = cur[key] if -len(cur) <= key < len(cur) else None
        else:
            return None
        if cur is None:
            return None
    return cur


def _int_or_none(value: Any) -> Optional[int]:
    num = to_optional_num(value)
    return None if num is None else int(num)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip().replace("Z", "+00:00")
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Unparseable timestamp %r", value)
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_fixture(item: Dict[str, Any]) -> FixtureRecord:
    """Build a FixtureRecord from one `/fixtures` response item."""
    return FixtureRecord(
        id=_int_or_none(_dig(item, "fixture", "id")),
        kickoff_time=parse_datetime(_dig(item, "fixture", "date")),
        league_id=_int_or_none(_dig(item, "league", "id")),
        season=_int_or_none(_dig(item, "league", "season")),
        home_team_id=_int_or_none(_dig(item, "teams", "home", "id")),
        away_team_id=_int_or_none(_dig(item, "teams", "away", "id")),
        referee_name=_dig(item, "fixture", "referee") or None,
        home_team_name=_dig(item, "teams", "home", "name"),
        away_team_name=_dig(item, "teams", "away", "name"),
        league_name=_dig(item, "league", "name"),
        league_country=_dig(item, "league", "country"),
        status=(_dig(item, "fixture", "status", "short") or "").upper() or None,
    )


def parse_match(item: Dict[str, Any]) -> MatchRecord:
    """Build a MatchRecord (fixture + final score) from a `/fixtures` item."""
    home_goals = _dig(item, "goals", "home")
    if home_goals is None:
        home_goals = _dig(item, "score", "fulltime", "home")
    away_goals = _dig(item, "goals", "away")
    if away_goals is None:
        away_goals = _dig(item, "score", "fulltime", "away")

    return MatchRecord(
        fixture_id=_int_or_none(_dig(item, "fixture", "id")),
        date=parse_datetime(_dig(item, "fixture", "date")),
        status=(_dig(item, "fixture", "status", "short") or "").upper(),
        home_team_id=_int_or_none(_dig(item, "teams", "home", "id")),
        away_team_id=_int_or_none(_dig(item, "teams", "away", "id")),
        home_goals=_int_or_none(home_goals),
        away_goals=_int_or_none(away_goals),
        league_id=_int_or_none(_dig(item, "league", "id")),
        season=_int_or_none(_dig(item, "league", "season")),
        referee_name=_dig(item, "fixture", "referee") or None,
    )


def parse_matches(items: List[Dict[str, Any]]) -> List[MatchRecord]:
    return [parse_match(item) for item in items or [] if isinstance(item, dict)]


def parse_team_stats(response: Any) -> TeamSeasonStats:
    """Build TeamSeasonStats from a `/teams/statistics` response object."""
    if not isinstance(response, dict):
        return TeamSeasonStats()
    return TeamSeasonStats(
        goals_for_avg=to_optional_num(_dig(response, "goals", "for", "average", "total")),
        goals_against_avg=to_optional_num(
            _dig(response, "goals", "against", "average", "total")
        ),
        form_attack=to_optional_num(_dig(response, "form", "att", "value")),
        form_defense=to_optional_num(_dig(response, "form", "def", "value")),
    )


def parse_player(row: Dict[str, Any]) -> Optional[PlayerStatSnapshot]:
    """Build a PlayerStatSnapshot from one `/players` row (first statistics block)."""
    player_id = _int_or_none(_dig(row, "player", "id"))
    stat = _dig(row, "statistics", 0)
    if player_id is None or not isinstance(stat, dict):
        return None

    return PlayerStatSnapshot(
        player_id=player_id,
        name=_dig(row, "player", "name") or "",
        position=_dig(stat, "games", "position") or "",
        # the provider spells it "appearences"
        appearances=to_num(
            _dig(stat, "games", "appearences") or _dig(stat, "games", "appearances")
        ),
        minutes=to_num(_dig(stat, "games", "minutes")),
        goals=to_num(_dig(stat, "goals", "total")),
        assists=to_num(_dig(stat, "goals", "assists")),
        shots_total=to_num(_dig(stat, "shots", "total")),
        shots_on=to_num(_dig(stat, "shots", "on")),
        key_passes=to_num(_dig(stat, "passes", "key")),
        dribbles_success=to_num(_dig(stat, "dribbles", "success")),
        tackles=to_num(_dig(stat, "tackles", "total")),
        interceptions=to_num(_dig(stat, "tackles", "interceptions")),
        blocks=to_num(_dig(stat, "tackles", "blocks")),
        duels_total=to_num(_dig(stat, "duels", "total")),
        duels_won=to_num(_dig(stat, "duels", "won")),
        yellow_cards=to_num(_dig(stat, "cards", "yellow")),
        red_cards=to_num(_dig(stat, "cards", "red")),
        saves=to_num(_dig(stat, "goals", "saves")),
        goals_conceded=to_num(_dig(stat, "goals", "conceded")),
        penalties_saved=to_num(_dig(stat, "penalty", "saved")),
    )


def parse_players(rows: List[Dict[str, Any]]) -> List[PlayerStatSnapshot]:
    players: List[PlayerStatSnapshot] = []
    seen = set()
    for row in rows or []:
        snapshot = parse_player(row) if isinstance(row, dict) else None
        if snapshot is None or snapshot.player_id in seen:
            continue
        seen.add(snapshot.player_id)
        players.append(snapshot)
    return players


def _player_ids(entries: Any) -> List[int]:
    ids: List[int] = []
    for entry in entries or []:
        pid = _int_or_none(_dig(entry, "player", "id"))
        if pid is not None:
            ids.append(pid)
    return ids


def parse_lineups(items: List[Dict[str, Any]]) -> List[LineupRecord]:
    """Build LineupRecords from a `/fixtures/lineups` response list."""
    lineups: List[LineupRecord] = []
    for item in items or []:
        team_id = _int_or_none(_dig(item, "team", "id"))
        if team_id is None:
            continue
        lineups.append(
            LineupRecord(
                team_id=team_id,
                formation=_dig(item, "formation") or None,
                starters=_player_ids(_dig(item, "startXI")),
                bench=_player_ids(_dig(item, "substitutes")),
            )
        )
    return lineups


def parse_injuries(items: List[Dict[str, Any]]) -> List[InjuryRecord]:
    injuries: List[InjuryRecord] = []
    for item in items or []:
        pid = _int_or_none(_dig(item, "player", "id"))
        if pid is None:
            continue
        injuries.append(
            InjuryRecord(
                player_id=pid,
                reason=_dig(item, "player", "reason") or "",
                timestamp=parse_datetime(_dig(item, "fixture", "date")),
            )
        )
    return injuries


def parse_bookmakers(bookmakers: List[Dict[str, Any]]) -> OddsRecord:
    """Build an OddsRecord from a list of provider bookmaker blocks."""
    parsed: List[BookmakerOdds] = []
    for bm in bookmakers or []:
        markets: List[MarketQuote] = []
        for bet in _dig(bm, "bets") or []:
            outcomes: Dict[str, float] = {}
            for value in _dig(bet, "values") or []:
                label = str(_dig(value, "value") or "").strip()
                odd = to_optional_num(_dig(value, "odd"))
                if label and odd is not None:
                    outcomes[label] = odd
            if outcomes:
                markets.append(MarketQuote(name=str(_dig(bet, "name") or ""), outcomes=outcomes))
        if markets:
            parsed.append(BookmakerOdds(bookmaker=str(_dig(bm, "name") or ""), markets=markets))
    return OddsRecord(bookmakers=parsed)


def parse_odds(items: List[Dict[str, Any]]) -> OddsRecord:
    """Build an OddsRecord from a `/odds?fixture=` response list."""
    bookmakers: List[Dict[str, Any]] = []
    for item in items or []:
        bookmakers.extend(_dig(item, "bookmakers") or [])
    return parse_bookmakers(bookmakers)


def parse_fixture_statistics(items: List[Dict[str, Any]]) -> Dict[int, Dict[str, Optional[float]]]:
    """
    Map team id -> {statistic type: value} from `/fixtures/statistics`.

    Percent strings ("55%") become plain numbers (55.0).
    """
    out: Dict[int, Dict[str, Optional[float]]] = {}
    for item in items or []:
        team_id = _int_or_none(_dig(item, "team", "id"))
        if team_id is None:
            continue
        out[team_id] = {
            str(_dig(s, "type") or ""): to_optional_num(_dig(s, "value"))
            for s in _dig(item, "statistics") or []
        }
    return out
