"""Ichimoku Kinko Hyo — cloud lines with displacement and chikou validation."""

from typing import Optional, Sequence

from signalforge.models.snapshot import IchimokuCloud

TENKAN = 9
KIJUN = 26
SENKOU_B = 52
DISPLACEMENT = 26


def _midpoint(highs: Sequence[float], lows: Sequence[float], end: int, length: int) -> float:
    """(highest high + lowest low) / 2 over *length* bars ending at *end*."""
    start = end - length + 1
    return (max(highs[start : end + 1]) + min(lows[start : end + 1])) / 2


def _cloud_at(highs: Sequence[float], lows: Sequence[float], idx: int) -> tuple[float, float]:
    tenkan = _midpoint(highs, lows, idx, TENKAN)
    kijun = _midpoint(highs, lows, idx, KIJUN)
    return (tenkan + kijun) / 2, _midpoint(highs, lows, idx, SENKOU_B)


def calculate_ichimoku(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> Optional[IchimokuCloud]:
    """Compute the current Ichimoku state.

    The cloud under the current bar is the one projected 26 bars ago; the
    future cloud is projected from the current bar. The chikou (current
    close plotted 26 bars back) is *free* when it sits outside both the
    candle range and the cloud at that point.

    Returns ``None`` when there is not enough history for a displaced
    Senkou B (``52 + 26`` bars).
    """
    n = len(highs)
    if n < SENKOU_B + DISPLACEMENT:
        return None

    current = n - 1
    tenkan = _midpoint(highs, lows, current, TENKAN)
    kijun = _midpoint(highs, lows, current, KIJUN)

    past = current - DISPLACEMENT
    senkou_a, senkou_b = _cloud_at(highs, lows, past)

    future_a = (tenkan + kijun) / 2
    future_b = _midpoint(highs, lows, current, SENKOU_B)
    future_cloud = "BULLISH" if future_a > future_b else "BEARISH"

    close = closes[current]
    chikou_idx = current - DISPLACEMENT
    cloud_idx = chikou_idx - DISPLACEMENT
    if cloud_idx >= SENKOU_B - 1:
        c_a, c_b = _cloud_at(highs, lows, cloud_idx)
        chikou_top, chikou_bottom = max(c_a, c_b), min(c_a, c_b)
    else:
        chikou_top = chikou_bottom = float("-inf")

    tangled_in_price = lows[chikou_idx] <= close <= highs[chikou_idx]
    tangled_in_cloud = chikou_bottom <= close <= chikou_top
    if close > highs[chikou_idx]:
        chikou_direction = "BULLISH"
    elif close < lows[chikou_idx]:
        chikou_direction = "BEARISH"
    else:
        chikou_direction = "NEUTRAL"

    mid = (senkou_a + senkou_b) / 2
    return IchimokuCloud(
        tenkan=tenkan,
        kijun=kijun,
        senkou_a=senkou_a,
        senkou_b=senkou_b,
        chikou=close,
        chikou_free=not (tangled_in_price or tangled_in_cloud),
        chikou_direction=chikou_direction,
        future_cloud=future_cloud,
        cloud_thickness=abs(senkou_a - senkou_b) / mid if mid else 0.0,
        tk_separation=abs(tenkan - kijun) / kijun if kijun else 0.0,
    )
