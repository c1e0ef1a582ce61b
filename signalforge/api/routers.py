"""Internal API routers — /config, /evaluate, /scan endpoints.

No business logic. Parses candle payloads and delegates to the scanner.
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, HTTPException

from signalforge.config import Config, load_config
from signalforge.models.candle import Candle, candles_from_payload
from signalforge.models.signal import Discard, ScanContext, Signal
from signalforge.pipeline.scanner import evaluate_symbol, scan

logger = logging.getLogger("signalforge.api")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_config: Optional[Config] = None  # Set via configure_routers()


def configure_routers(config: Optional[Config] = None) -> None:
    """Inject the configuration used by every request.

    Args:
        config: A loaded ``Config``; ``None`` reloads from the environment
            on the next request.
    """
    global _config  # noqa: PLW0603
    _config = config


def _get_config() -> Config:
    global _config  # noqa: PLW0603
    if _config is None:
        _config = load_config()
    return _config


def _parse_candles(symbol: str, rows) -> list[Candle]:
    if not isinstance(rows, list):
        raise HTTPException(status_code=422, detail=f"{symbol}: candles must be a list")
    try:
        return candles_from_payload(rows)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=f"{symbol}: {exc}") from None


def _parse_volumes(volumes: dict) -> dict[str, float]:
    try:
        return {symbol: float(value) for symbol, value in volumes.items()}
    except (TypeError, ValueError):
        raise HTTPException(status_code=422, detail="volumes must be numeric") from None


def _outcome_payload(outcome) -> dict:
    if isinstance(outcome, Signal):
        return {"status": "signal", "signal": asdict(outcome)}
    if isinstance(outcome, Discard):
        return {"status": "discard", "discard": asdict(outcome)}
    raise TypeError(f"Unexpected outcome {type(outcome).__name__}")


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/config")
async def get_config():
    """Return the effective thresholds and strategy matrix."""
    return _get_config().as_dict()


@router.post("/evaluate")
async def post_evaluate(body: dict):
    """Evaluate one symbol.

    Body: ``{"symbol": "BTCUSDT", "candles": [...], "volume_24h": 1.2e9}``.
    """
    symbol = body.get("symbol")
    if not isinstance(symbol, str) or not symbol:
        raise HTTPException(status_code=422, detail="symbol is required")
    candles = _parse_candles(symbol, body.get("candles"))

    volume = body.get("volume_24h")
    context = ScanContext(volumes_24h=_parse_volumes({symbol: volume} if volume is not None else {}))
    outcome = evaluate_symbol(symbol, candles, _get_config(), context)
    return _outcome_payload(outcome)


@router.post("/scan")
async def post_scan(body: dict):
    """Scan a universe.

    Body: ``{"symbols": {"BTCUSDT": [...candles]}, "volumes": {"BTCUSDT": 1.2e9}}``.
    """
    symbols = body.get("symbols")
    if not isinstance(symbols, dict) or not symbols:
        raise HTTPException(status_code=422, detail="symbols must be a non-empty object")
    universe = {sym: _parse_candles(sym, rows) for sym, rows in symbols.items()}

    volumes = body.get("volumes") or {}
    if not isinstance(volumes, dict):
        raise HTTPException(status_code=422, detail="volumes must be an object")
    context = ScanContext(volumes_24h=_parse_volumes(volumes))

    result = await scan(universe, _get_config(), context)
    logger.info("API scan: %d signal(s) from %d symbol(s)", len(result.signals), len(universe))
    return {
        "signals": [asdict(s) for s in result.signals],
        "discards": [asdict(d) for d in result.discards],
    }
