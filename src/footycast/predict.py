"""
Prediction service and command-line entry point.

Usage (with APIFOOTBALL_KEY set):

    python -m footycast.predict --fixture 1035046
    python -m footycast.predict --fixture 1035046 --debug

Prints the prediction as JSON.
"""

from __future__ import annotations

import argparse
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from footycast.config import CACHE_MAX_ITEMS, CACHE_TTL_SECONDS, EngineConfig
from footycast.data.client import ApiFootballClient
from footycast.data.data_loader import MatchDataLoader
from footycast.models.engine import PredictionEngine
from footycast.utils.cache import TTLCache
from footycast.utils.logging_utils import get_logger

logger = get_logger(__name__)

PROVIDER_EXCERPT_CHARS = 1000


class PredictionService:
    """Loader + engine, sharing one client and one lookup cache."""

    def __init__(
        self,
        client: Optional[ApiFootballClient] = None,
        cache: Optional[TTLCache] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.client = client or ApiFootballClient()
        self.cache = cache if cache is not None else TTLCache(CACHE_TTL_SECONDS, CACHE_MAX_ITEMS)
        self.loader = MatchDataLoader(self.client, self.cache)
        self.engine = PredictionEngine(config)

    def predict(self, fixture_id: int, debug: bool = False, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        inputs = self.loader.load(fixture_id, now)
        result = self.engine.predict(inputs, now)

        out = result.to_dict()
        out["sources"] = self.loader.source_urls(inputs.fixture)
        if debug:
            payload = inputs.provider_payload
            first = payload[0] if isinstance(payload, list) and payload else None
            out["modifiers"]["provider_raw_excerpt"] = json.dumps(first, default=str)[:PROVIDER_EXCERPT_CHARS]
        return out


def main() -> None:
    parser = argparse.ArgumentParser(description="Predict the score distribution of a fixture.")
    parser.add_argument("--fixture", type=int, required=True, help="Provider fixture id.")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Include an excerpt of the raw provider prediction payload.",
    )
    args = parser.parse_args()

    service = PredictionService()
    out = service.predict(args.fixture, debug=args.debug)
    print(json.dumps(out, indent=2, default=str))


if __name__ == "__main__":
    main()
