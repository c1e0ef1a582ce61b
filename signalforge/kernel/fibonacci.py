"""Auto-Fibonacci anchoring via fractal swings.

The anchor leg is the single source of every retracement and extension
level: in an uptrend (last high above EMA200) it runs from the lowest
fractal low preceding the highest recent fractal high up to that high; a
downtrend mirrors it. Without fractals, a bounded min/max window is used.
"""

from typing import Optional, Sequence

from signalforge.models.snapshot import FibonacciLevels, Fractal
from signalforge.structure.fractals import detect_fractals

RETRACEMENT_RATIOS = (0.236, 0.382, 0.5, 0.618, 0.65, 0.786, 0.886)
EXTENSION_RATIOS = (0.272, 0.618, 1.0, 1.618, 2.618)


def _levels(trend: str, anchor_high: float, anchor_low: float) -> FibonacciLevels:
    diff = anchor_high - anchor_low
    if trend == "UP":
        origin, sign, far = anchor_high, -1.0, anchor_low
    else:
        origin, sign, far = anchor_low, 1.0, anchor_high
    retr = [origin + sign * diff * r for r in RETRACEMENT_RATIOS]
    ext = [origin - sign * diff * r for r in EXTENSION_RATIOS]
    return FibonacciLevels(
        trend=trend,
        swing_high=anchor_high,
        swing_low=anchor_low,
        level0=origin,
        level0_236=retr[0],
        level0_382=retr[1],
        level0_5=retr[2],
        level0_618=retr[3],
        level0_65=retr[4],
        level0_786=retr[5],
        level0_886=retr[6],
        level1=far,
        tp1=ext[0],
        tp2=ext[1],
        tp3=ext[2],
        tp4=ext[3],
        tp5=ext[4],
    )


def calculate_auto_fibs(
    highs: Sequence[float],
    lows: Sequence[float],
    ema200: float,
    fractal_highs: Optional[list[Fractal]] = None,
    fractal_lows: Optional[list[Fractal]] = None,
    lookback: int = 300,
    origin_window: int = 100,
) -> FibonacciLevels:
    """Anchor Fibonacci levels on the dominant swing leg.

    Args:
        highs / lows: Bar extremes, oldest first.
        ema200: Trend filter; the last high above it means an uptrend.
        fractal_highs / fractal_lows: Pre-computed fractals (detected here
            when omitted).
        lookback: Window (bars) in which the trend-side anchor is searched.
        origin_window: Bars scanned for the opposite anchor when no
            opposite fractal precedes the trend-side one.

    Returns:
        ``FibonacciLevels`` with retracements measured from ``level0``.
    """
    if fractal_highs is None or fractal_lows is None:
        fractal_highs, fractal_lows = detect_fractals(highs, lows)

    n = len(highs)
    is_uptrend = highs[-1] > ema200
    trend = "UP" if is_uptrend else "DOWN"

    if not fractal_highs or not fractal_lows:
        window = min(n, lookback)
        return _levels(trend, max(highs[-window:]), min(lows[-window:]))

    anchor_high: Optional[float] = None
    anchor_low: Optional[float] = None

    if is_uptrend:
        recent = [f for f in fractal_highs if f.index > n - lookback]
        if recent:
            top = max(recent, key=lambda f: f.price)
            anchor_high = top.price
            before = [
                f for f in fractal_lows
                if top.index - lookback < f.index < top.index
            ]
            if before:
                anchor_low = min(before, key=lambda f: f.price).price
            else:
                window = lows[max(0, top.index - origin_window) : top.index]
                anchor_low = min(window) if window else None
    else:
        recent = [f for f in fractal_lows if f.index > n - lookback]
        if recent:
            bottom = min(recent, key=lambda f: f.price)
            anchor_low = bottom.price
            before = [
                f for f in fractal_highs
                if bottom.index - lookback < f.index < bottom.index
            ]
            if before:
                anchor_high = max(before, key=lambda f: f.price).price
            else:
                window = highs[max(0, bottom.index - origin_window) : bottom.index]
                anchor_high = max(window) if window else None

    # Safety fallback: whole-series extremes
    if anchor_high is None:
        anchor_high = max(highs)
    if anchor_low is None:
        anchor_low = min(lows)

    return _levels(trend, anchor_high, anchor_low)
