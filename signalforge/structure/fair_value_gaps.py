"""Fair-value gap detection — 3-candle imbalances."""

from typing import Sequence

from signalforge.models.candle import Candle
from signalforge.models.snapshot import FairValueGap

LOOKBACK = 30
MIN_GAP_ATR = 0.3


def detect_fair_value_gaps(
    candles: Sequence[Candle],
    atr: float,
    current_price: float,
) -> tuple[list[FairValueGap], list[FairValueGap]]:
    """Find bullish and bearish gaps in the last 30 bars.

    Bullish: the third bar's low sits above the first bar's high, with a
    bullish middle bar. Bearish: the third bar's high sits below the first
    bar's low, with a bearish middle bar. Gaps smaller than 0.3×ATR are
    ignored.

    Returns ``(bullish, bearish)``, largest first.
    """
    if len(candles) < 3 or atr <= 0:
        return [], []

    min_gap = atr * MIN_GAP_ATR
    lookback = min(LOOKBACK, len(candles) - 2)
    bullish: list[FairValueGap] = []
    bearish: list[FairValueGap] = []

    for i in range(len(candles) - 2 - lookback, len(candles) - 2):
        first, middle, third = candles[i], candles[i + 1], candles[i + 2]

        bottom, top = first.high, third.low
        if top - bottom > min_gap and middle.close > middle.open:
            bullish.append(
                FairValueGap(
                    top=top,
                    bottom=bottom,
                    midpoint=(top + bottom) / 2,
                    direction="BULLISH",
                    timestamp=middle.timestamp,
                    filled=current_price <= top,
                    size=top - bottom,
                )
            )

        top, bottom = first.low, third.high
        if top - bottom > min_gap and middle.close < middle.open:
            bearish.append(
                FairValueGap(
                    top=top,
                    bottom=bottom,
                    midpoint=(top + bottom) / 2,
                    direction="BEARISH",
                    timestamp=middle.timestamp,
                    filled=current_price >= bottom,
                    size=top - bottom,
                )
            )

    bullish.sort(key=lambda g: g.size, reverse=True)
    bearish.sort(key=lambda g: g.size, reverse=True)
    return bullish, bearish
