"""Market-structure helpers — EMA alignment, box theory, N-pattern."""

from typing import Sequence

from signalforge.models.snapshot import EMPTY_BOX, EMPTY_N_PATTERN, BoxTheory, NPattern

BOX_LOOKBACK = 20
N_SCAN_BARS = 15
N_TOLERANCE = 0.001


def ema_alignment(ema20: float, ema50: float, ema100: float, ema200: float) -> str:
    """BULLISH when the ladder is stacked upward, BEARISH when downward."""
    if ema20 > ema50 > ema100 > ema200:
        return "BULLISH"
    if ema20 < ema50 < ema100 < ema200:
        return "BEARISH"
    return "CHAOTIC"


def calculate_box_theory(
    highs: Sequence[float], lows: Sequence[float], closes: Sequence[float]
) -> BoxTheory:
    """Box of the last 20 bars and its 0.5 level.

    The impulse is up when the box low printed before the box high. A
    bullish box holds price above the midpoint after an up impulse, a
    bearish box holds it below after a down impulse.
    """
    if len(highs) < 10:
        return EMPTY_BOX

    lookback = min(BOX_LOOKBACK, len(highs))
    recent_highs = list(highs[-lookback:])
    recent_lows = list(lows[-lookback:])
    top = max(recent_highs)
    bottom = min(recent_lows)
    midpoint = (top + bottom) / 2
    impulse_up = recent_highs.index(top) > recent_lows.index(bottom)

    price = closes[-1]
    signal = "NEUTRAL"
    if impulse_up and price > midpoint:
        signal = "BULLISH"
    elif not impulse_up and price < midpoint:
        signal = "BEARISH"
    return BoxTheory(active=True, high=top, low=bottom, midpoint=midpoint, signal=signal)


def detect_n_pattern(
    highs: Sequence[float], lows: Sequence[float], closes: Sequence[float]
) -> NPattern:
    """Break-and-retest of the latest swing level.

    Bearish N: a swing low 3-15 bars back was closed through, and the
    current bar tags it from below and rejects. Bullish N mirrors it on a
    swing high. Levels are matched with a 0.1% tolerance.
    """
    if len(highs) < 5:
        return EMPTY_N_PATTERN

    i = len(highs) - 1
    scan_end = max(0, i - N_SCAN_BARS)

    support_idx = next(
        (j for j in range(i - 3, scan_end, -1)
         if lows[j] < lows[j - 1] and lows[j] < lows[j + 1]),
        None,
    )
    if support_idx is not None:
        level = lows[support_idx]
        broken = any(closes[k] < level for k in range(support_idx + 1, i))
        if broken and highs[i] >= level * (1 - N_TOLERANCE) and closes[i] < highs[i]:
            return NPattern(True, "BEARISH", closes[i], highs[i] * (1 + N_TOLERANCE))

    resistance_idx = next(
        (j for j in range(i - 3, scan_end, -1)
         if highs[j] > highs[j - 1] and highs[j] > highs[j + 1]),
        None,
    )
    if resistance_idx is not None:
        level = highs[resistance_idx]
        broken = any(closes[k] > level for k in range(resistance_idx + 1, i))
        if broken and lows[i] <= level * (1 + N_TOLERANCE) and closes[i] > lows[i]:
            return NPattern(True, "BULLISH", closes[i], lows[i] * (1 - N_TOLERANCE))

    return EMPTY_N_PATTERN
