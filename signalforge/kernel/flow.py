"""Order-flow proxies — cumulative volume delta."""

from typing import Sequence

from signalforge.models.candle import Candle


def calculate_cvd_series(candles: Sequence[Candle]) -> list[float]:
    """Running sum of ``2 × taker_buy − volume`` per bar.

    Bars without taker-buy data contribute a neutral delta (taker buy is
    taken as half the volume).
    """
    cvd: list[float] = []
    running = 0.0
    for c in candles:
        taker = c.taker_buy_volume if c.taker_buy_volume is not None else 0.5 * c.volume
        running += 2 * taker - c.volume
        cvd.append(running)
    return cvd


def cvd_slope(cvd: Sequence[float], lookback: int = 5) -> float:
    """Net CVD change over the last *lookback* bars (sign = flow direction)."""
    if len(cvd) <= lookback:
        return cvd[-1] - cvd[0] if cvd else 0.0
    return cvd[-1] - cvd[-1 - lookback]
