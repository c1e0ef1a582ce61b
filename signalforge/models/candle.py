"""Candle model — the only market-data input the pipeline consumes."""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar. Sequences are ordered oldest → newest."""

    timestamp: int  # epoch milliseconds
    open: float
    high: float
    low: float
    close: float
    volume: float
    taker_buy_volume: Optional[float] = None


_REQUIRED_KEYS = ("timestamp", "open", "high", "low", "close", "volume")


def candle_from_dict(raw: dict[str, Any]) -> Candle:
    """Build a :class:`Candle` from a JSON-style dict.

    Accepts ``takerBuyVolume`` or ``taker_buy_volume`` for the optional
    taker-buy field. Raises ``ValueError`` naming the first missing key.
    """
    missing = [k for k in _REQUIRED_KEYS if k not in raw]
    if missing:
        raise ValueError(f"Candle missing required key(s): {', '.join(missing)}")

    taker = raw.get("taker_buy_volume", raw.get("takerBuyVolume"))
    return Candle(
        timestamp=int(raw["timestamp"]),
        open=float(raw["open"]),
        high=float(raw["high"]),
        low=float(raw["low"]),
        close=float(raw["close"]),
        volume=float(raw["volume"]),
        taker_buy_volume=float(taker) if taker is not None else None,
    )


def candles_from_payload(rows: list) -> list[Candle]:
    """Convert a list of dicts or exchange kline rows into candles.

    Kline rows follow the ``[open_time, open, high, low, close, volume,
    close_time, quote_volume, trades, taker_buy_base, ...]`` layout.
    """
    candles: list[Candle] = []
    for row in rows:
        if isinstance(row, dict):
            candles.append(candle_from_dict(row))
        elif isinstance(row, (list, tuple)) and len(row) >= 6:
            taker = float(row[9]) if len(row) > 9 else None
            candles.append(
                Candle(
                    timestamp=int(row[0]),
                    open=float(row[1]),
                    high=float(row[2]),
                    low=float(row[3]),
                    close=float(row[4]),
                    volume=float(row[5]),
                    taker_buy_volume=taker,
                )
            )
        else:
            raise ValueError(f"Unrecognised candle row: {row!r}")
    return candles
