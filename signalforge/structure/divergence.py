"""Divergence detection between price pivots and an oscillator (RSI, CVD, MACD).

A short recent pivot in price is compared with a prior structural pivot,
and the oscillator is read at both bars:

    price LL + oscillator HL  → REGULAR_BULLISH  (reversal up)
    price HL + oscillator LL  → HIDDEN_BULLISH   (continuation up)
    price HH + oscillator LH  → REGULAR_BEARISH  (reversal down)
    price LH + oscillator HH  → HIDDEN_BEARISH   (continuation down)
"""

from typing import Literal, Optional, Sequence

from signalforge.models.snapshot import Divergence


def classify_divergence(
    pivot: Literal["LOW", "HIGH"],
    price_recent: float,
    price_prior: float,
    osc_recent: float,
    osc_prior: float,
    min_delta: float = 0.0,
) -> Optional[str]:
    """Map one price/oscillator pivot pair onto a divergence kind, or ``None``."""
    osc_higher = osc_recent > osc_prior + min_delta
    osc_lower = osc_recent < osc_prior - min_delta
    if pivot == "LOW":
        if price_recent < price_prior and osc_higher:
            return "REGULAR_BULLISH"
        if price_recent > price_prior and osc_lower:
            return "HIDDEN_BULLISH"
    else:
        if price_recent > price_prior and osc_lower:
            return "REGULAR_BEARISH"
        if price_recent < price_prior and osc_higher:
            return "HIDDEN_BEARISH"
    return None


def _pivot_pair(
    values: Sequence[float],
    pick,
    recent_bars: int,
    recent_offset: int,
    min_gap: int,
    max_gap: int,
) -> Optional[tuple[int, int]]:
    """Indices of (recent pivot, prior pivot) chosen with *pick* (min or max)."""
    n = len(values)
    end = n - 1 - recent_offset
    start = end - recent_bars + 1
    if start < 0:
        return None
    recent_idx = pick(range(start, end + 1), key=lambda i: values[i])

    lo = max(0, recent_idx - max_gap)
    hi = recent_idx - min_gap
    if hi < lo:
        return None
    prior_idx = pick(range(lo, hi + 1), key=lambda i: values[i])
    return recent_idx, prior_idx


def detect_divergence(
    highs: Sequence[float],
    lows: Sequence[float],
    oscillator: Sequence[float],
    source: str = "RSI",
    recent_bars: int = 3,
    recent_offset: int = 1,
    min_gap: int = 5,
    max_gap: int = 25,
    min_delta: float = 1.0,
    min_bars: int = 30,
) -> Optional[Divergence]:
    """Detect the strongest divergence at the latest price pivots.

    Args:
        highs / lows: Bar extremes, oldest first.
        oscillator: Series aligned with the bars (RSI, CVD, MACD line).
        source: Label stored on the result.
        recent_bars: Width of the window holding the recent pivot.
        recent_offset: Bars skipped at the end before that window.
        min_gap / max_gap: Distance window (bars) for the prior pivot.
        min_delta: Oscillator change needed to count as higher/lower.
        min_bars: Minimum aligned history; shorter input returns ``None``.

    Returns:
        The first match in priority order regular bullish, regular bearish,
        hidden bullish, hidden bearish; ``None`` when nothing diverges.
    """
    n = min(len(highs), len(lows), len(oscillator))
    if n < min_bars:
        return None
    highs, lows, oscillator = highs[-n:], lows[-n:], oscillator[-n:]

    candidates: list[Divergence] = []
    for pivot, values, pick in (("LOW", lows, min), ("HIGH", highs, max)):
        pair = _pivot_pair(values, pick, recent_bars, recent_offset, min_gap, max_gap)
        if pair is None:
            continue
        recent_idx, prior_idx = pair
        kind = classify_divergence(
            pivot,
            values[recent_idx],
            values[prior_idx],
            oscillator[recent_idx],
            oscillator[prior_idx],
            min_delta,
        )
        if kind is not None:
            candidates.append(
                Divergence(
                    kind=kind,
                    source=source,
                    price_recent=values[recent_idx],
                    price_prior=values[prior_idx],
                    oscillator_recent=oscillator[recent_idx],
                    oscillator_prior=oscillator[prior_idx],
                )
            )

    priority = ("REGULAR_BULLISH", "REGULAR_BEARISH", "HIDDEN_BULLISH", "HIDDEN_BEARISH")
    candidates.sort(key=lambda d: priority.index(d.kind))
    return candidates[0] if candidates else None


def detect_cvd_divergence(
    highs: Sequence[float],
    lows: Sequence[float],
    cvd: Sequence[float],
) -> Optional[Divergence]:
    """Price-vs-CVD divergence (order-flow absorption).

    Needs 30 bars; the recent pivot is taken from the last 5 bars and the
    prior pivot 5 to 40 bars before it.
    """
    return detect_divergence(
        highs, lows, cvd,
        source="CVD",
        recent_bars=5,
        recent_offset=0,
        min_gap=5,
        max_gap=40,
        min_delta=0.0,
        min_bars=30,
    )
