"""Classical chart patterns from fractal swings.

Head-and-shoulders (and inverse), double top/bottom and rising/falling
wedges, tested on the most recent fractals only. Pure functions.
"""

from typing import Optional, Sequence

from signalforge.models.snapshot import ChartPattern, Fractal


def _head_and_shoulders(
    highs: list[Fractal], lows: list[Fractal], tolerance: float
) -> Optional[ChartPattern]:
    """Head beyond both shoulders, shoulders level within *tolerance*."""
    left, head, right = highs[-3], highs[-2], highs[-1]
    if head.price > left.price and head.price > right.price:
        avg = (left.price + right.price) / 2
        if abs(left.price - right.price) < avg * tolerance:
            return ChartPattern(
                kind="HEAD_SHOULDERS",
                signal="BEARISH",
                confidence=0.85,
                invalidation_level=head.price,
                target=left.price - (head.price - left.price),
                description="Head and shoulders top: head rejected above two level shoulders",
            )

    left, head, right = lows[-3], lows[-2], lows[-1]
    if head.price < left.price and head.price < right.price:
        avg = (left.price + right.price) / 2
        if abs(left.price - right.price) < avg * tolerance:
            return ChartPattern(
                kind="INV_HEAD_SHOULDERS",
                signal="BULLISH",
                confidence=0.85,
                invalidation_level=head.price,
                target=left.price + (left.price - head.price),
                description="Inverse head and shoulders: accumulation base",
            )
    return None


def _double_top_bottom(
    highs: list[Fractal], lows: list[Fractal], tolerance: float
) -> Optional[ChartPattern]:
    """Last two peaks (troughs) within *tolerance* of their average."""
    first, second = highs[-2], highs[-1]
    avg = (first.price + second.price) / 2
    if abs(first.price - second.price) < avg * tolerance:
        return ChartPattern(
            kind="DOUBLE_TOP",
            signal="BEARISH",
            confidence=0.75,
            invalidation_level=max(first.price, second.price) * 1.01,
            target=None,
            description=f"Double top near {avg:.4f}: resistance tested twice",
        )

    first, second = lows[-2], lows[-1]
    avg = (first.price + second.price) / 2
    if abs(first.price - second.price) < avg * tolerance:
        return ChartPattern(
            kind="DOUBLE_BOTTOM",
            signal="BULLISH",
            confidence=0.75,
            invalidation_level=min(first.price, second.price) * 0.99,
            target=None,
            description=f"Double bottom near {avg:.4f}: support tested twice",
        )
    return None


def _wedge(
    highs: list[Fractal], lows: list[Fractal], compression: float
) -> Optional[ChartPattern]:
    """Three monotone highs and lows whose range contracts by the compression factor."""
    h1, h2, h3 = highs[-3], highs[-2], highs[-1]
    l1, l2, l3 = lows[-3], lows[-2], lows[-1]
    first_range = h1.price - l1.price
    last_range = h3.price - l3.price

    falling = h3.price < h2.price < h1.price and l3.price < l2.price < l1.price
    if falling and last_range < first_range * compression:
        return ChartPattern(
            kind="FALLING_WEDGE",
            signal="BULLISH",
            confidence=0.80,
            invalidation_level=l3.price * 0.98,
            target=h1.price,
            description="Falling wedge: compressing lower highs and lows, sellers exhausting",
        )

    rising = h3.price > h2.price > h1.price and l3.price > l2.price > l1.price
    if rising and last_range < first_range * compression:
        return ChartPattern(
            kind="RISING_WEDGE",
            signal="BEARISH",
            confidence=0.80,
            invalidation_level=h3.price * 1.02,
            target=l1.price,
            description="Rising wedge: compressing higher highs and lows, buyers exhausting",
        )
    return None


def detect_chart_patterns(
    fractal_highs: Sequence[Fractal],
    fractal_lows: Sequence[Fractal],
    shoulder_tolerance: float = 0.02,
    double_tolerance: float = 0.015,
    wedge_compression: float = 0.8,
) -> list[ChartPattern]:
    """Run every chart-pattern test on the latest fractals.

    Requires at least three fractal highs and three fractal lows; returns an
    empty list otherwise.
    """
    highs = list(fractal_highs)
    lows = list(fractal_lows)
    if len(highs) < 3 or len(lows) < 3:
        return []

    patterns: list[ChartPattern] = []
    for found in (
        _head_and_shoulders(highs, lows, shoulder_tolerance),
        _double_top_bottom(highs, lows, double_tolerance),
        _wedge(highs, lows, wedge_compression),
    ):
        if found is not None:
            patterns.append(found)
    return patterns
