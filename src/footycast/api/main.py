"""
FastAPI app exposing FootyCast prediction endpoints.

Endpoints:
- GET  /health          -> simple health check
- GET  /predict         -> score distribution for ?fixture=<id>[&debug=1]
- POST /predict         -> same, body {"fixture_id": <int>, "debug": <bool>}
- GET  /fixtures/find   -> fixtures on a date, optionally by team names
- GET  /screen          -> a day's fixtures ranked by a market-implied probability
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from footycast.config import ENGINE_VERSION
from footycast.data.fixture_finder import find_fixtures, fixture_summary
from footycast.errors import (
    ConfigurationError,
    FixtureNotFoundError,
    InvalidFixtureError,
    UpstreamError,
)
from footycast.models.screener import OddsScreener
from footycast.predict import PredictionService
from footycast.utils.logging_utils import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="FootyCast API",
    version=ENGINE_VERSION.split()[-1],
    description="Football match score-distribution predictor",
)

# Global state, created on first use
SERVICE: Optional[PredictionService] = None


class PredictRequest(BaseModel):
    fixture_id: int
    debug: bool = False


def get_service() -> PredictionService:
    """Shared prediction service (client + cache + engine)."""
    global SERVICE
    if SERVICE is not None:
        return SERVICE
    SERVICE = PredictionService()
    logger.info("Prediction service initialised")
    return SERVICE


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc)})


@app.exception_handler(InvalidFixtureError)
def invalid_fixture_handler(request: Request, exc: InvalidFixtureError) -> JSONResponse:
    return _error(422, exc)


@app.exception_handler(FixtureNotFoundError)
def not_found_handler(request: Request, exc: FixtureNotFoundError) -> JSONResponse:
    return _error(404, exc)


@app.exception_handler(UpstreamError)
def upstream_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    logger.error("Upstream failure on %s: %s", request.url.path, exc)
    return _error(502, exc)


@app.exception_handler(ConfigurationError)
def configuration_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Configuration error: %s", exc)
    return _error(500, exc)


@app.get("/health")
def health() -> Dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/predict")
def predict_get(
    fixture: int = Query(..., description="Provider fixture id"),
    debug: int = Query(0, ge=0, le=1),
    service: PredictionService = Depends(get_service),
) -> Dict[str, Any]:
    """
    Predict the score distribution of a fixture.

    Response (abridged):
        {
          "fixture_id": ...,
          "mu": {"mu_home": ..., "mu_away": ..., ...},
          "prediction": {
              "lambda_home": ..., "lambda_away": ...,
              "win_probs_model": {...}, "win_probs_blended": {...},
              "btts_yes": ..., "over25": ..., "under25": ...,
              "top_scores": [...], "score_matrix": [[...]]
          },
          "modifiers": {"applied": [...], "calibration": {...}, ...},
          "xi_confidence": "high" | "medium" | "low",
          ...
        }
    """
    return service.predict(fixture, debug=bool(debug))


@app.post("/predict")
def predict_post(
    payload: PredictRequest,
    service: PredictionService = Depends(get_service),
) -> Dict[str, Any]:
    return service.predict(payload.fixture_id, debug=payload.debug)


@app.get("/fixtures/find")
def fixtures_find(
    date: str = Query(..., pattern=r"^\d{4}-\d{2}-\d{2}$"),
    home: Optional[str] = None,
    away: Optional[str] = None,
    league: Optional[int] = None,
    season: Optional[int] = None,
    service: PredictionService = Depends(get_service),
) -> Dict[str, Any]:
    """Fixtures on `date`, narrowed to the named home/away teams if given."""
    fixtures = find_fixtures(service.client, date, home=home, away=away, league=league, season=season)
    items = [fixture_summary(f) for f in fixtures]
    return {"count": len(items), "items": items}


@app.get("/screen")
def screen(
    date: str = Query(..., pattern=r"^\d{4}-\d{2}-\d{2}$"),
    criterion: str = "over25",
    k: int = Query(10, ge=1, le=50),
    league: Optional[int] = None,
    season: Optional[int] = None,
    only_pre: int = Query(1, ge=0, le=1),
    refine: int = Query(0, ge=0, le=1),
    service: PredictionService = Depends(get_service),
) -> Dict[str, Any]:
    """Top `k` fixtures of the day by market-implied `criterion`."""
    screener = OddsScreener(service.client)
    try:
        return screener.screen(
            date, criterion, k, league=league, season=season, only_pre=bool(only_pre), refine=bool(refine)
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
