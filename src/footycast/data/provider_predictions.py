"""
Parser for the provider's own match prediction payload.

The `/predictions` response has been seen in several shapes. Each shape is a
tagged variant, tried in a fixed precedence order:

1. ``predictions`` is a non-empty list  -> its first element   ("list")
2. ``predictions`` is an object         -> that object         ("object")
3. ``prediction`` is an object          -> that object         ("singular")
4. ``data.predictions`` list or object  -> first / the object  ("nested")

Percentages live on the chosen block or, failing that, on the item itself.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

from footycast.utils.logging_utils import get_logger
from footycast.utils.numeric import percent_to_prob

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProviderPrediction:
    shape: str
    winner: Any = None
    win_or_draw: Any = None
    under_over: Any = None
    goals: Any = None
    advice: Optional[str] = None
    probs_1x2: Optional[Dict[str, Optional[float]]] = None
    comparison: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _select_block(item: Dict[str, Any]) -> Tuple[Optional[str], Optional[Dict[str, Any]]]:
    preds = item.get("predictions")
    if isinstance(preds, list) and preds:
        first = preds[0]
        return ("list", first) if isinstance(first, dict) else (None, None)
    if isinstance(preds, dict):
        return "object", preds

    singular = item.get("prediction")
    if isinstance(singular, dict):
        return "singular", singular

    data = item.get("data")
    nested = data.get("predictions") if isinstance(data, dict) else None
    if isinstance(nested, list) and nested and isinstance(nested[0], dict):
        return "nested", nested[0]
    if isinstance(nested, dict):
        return "nested", nested

    return None, None


def _probs_1x2(percent: Any) -> Optional[Dict[str, Optional[float]]]:
    if not isinstance(percent, dict):
        return None

    def pick(key: str) -> Any:
        value = percent.get(key)
        return value if value is not None else percent.get(key.capitalize())

    if pick("home") is None:
        return None
    return {k: percent_to_prob(pick(k)) for k in ("home", "draw", "away")}


def parse_provider_prediction(response: Any) -> Optional[ProviderPrediction]:
    """
    Parse the `response` field of `/predictions?fixture=`.

    Returns None when the payload is empty or matches no known shape.
    """
    if not isinstance(response, list) or not response:
        return None
    item = response[0]
    if not isinstance(item, dict):
        return None

    shape, block = _select_block(item)
    if block is None:
        logger.debug("Provider prediction payload has no recognised shape.")
        # the item may still carry a comparison block worth surfacing
        if item.get("comparison") is None and item.get("percent") is None:
            return None
        shape, block = "flat", {}

    percent = block.get("percent") or item.get("percent")
    return ProviderPrediction(
        shape=shape,
        winner=block.get("winner") or item.get("winner"),
        win_or_draw=block.get("win_or_draw"),
        under_over=block.get("under_over"),
        goals=block.get("goals"),
        advice=block.get("advice"),
        probs_1x2=_probs_1x2(percent),
        comparison=item.get("comparison"),
    )
