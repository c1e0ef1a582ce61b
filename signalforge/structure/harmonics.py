"""Harmonic XABCD pattern detection (Gartley, Bat, Butterfly, Crab).

Each chronological run of five alternating swing points is tested against
the canonical ratio families. A match yields a potential reversal zone at D,
a stop beyond X and two targets retracing the A–D leg.
"""

from typing import Optional, Sequence

from signalforge.models.snapshot import Fractal, HarmonicPattern
from signalforge.structure.fractals import merge_swings

STOP_BUFFER = 0.05  # fraction of XA beyond the protective anchor
TARGET_RATIOS = (0.382, 0.618)


def _near(value: float, target: float, tolerance: float) -> bool:
    return abs(value - target) <= tolerance


def _classify(
    b_xa: float, d_xa: float, tolerance: float, extension_tolerance: float
) -> Optional[tuple[str, float]]:
    """Return ``(pattern, confidence)`` for the first matching ratio family."""
    if _near(b_xa, 0.618, tolerance) and _near(d_xa, 0.786, tolerance):
        return "GARTLEY", 0.9
    if (_near(b_xa, 0.382, tolerance) or _near(b_xa, 0.5, tolerance)) and _near(
        d_xa, 0.886, tolerance
    ):
        return "BAT", 0.85
    if _near(b_xa, 0.786, tolerance) and (
        _near(d_xa, 1.27, extension_tolerance) or _near(d_xa, 1.618, extension_tolerance)
    ):
        return "BUTTERFLY", 0.88
    if b_xa <= 0.618 and _near(d_xa, 1.618, tolerance):
        return "CRAB", 0.82
    return None


def validate_xabcd(
    x: Fractal,
    a: Fractal,
    b: Fractal,
    c: Fractal,
    d: Fractal,
    tolerance: float = 0.05,
    extension_tolerance: float = 0.07,
) -> Optional[HarmonicPattern]:
    """Test one X-A-B-C-D run. D's retracement is measured on XA from A."""
    xa = abs(a.price - x.price)
    ab = abs(b.price - a.price)
    bc = abs(c.price - b.price)
    if xa == 0 or ab == 0 or bc == 0:
        return None

    b_xa = ab / xa
    c_ab = bc / ab
    d_xa = abs(a.price - d.price) / xa

    match = _classify(b_xa, d_xa, tolerance, extension_tolerance)
    if match is None:
        return None
    kind, confidence = match

    bullish = x.price < a.price
    if bullish:
        stop = min(x.price, d.price) - STOP_BUFFER * xa
    else:
        stop = max(x.price, d.price) + STOP_BUFFER * xa
    ad = a.price - d.price
    return HarmonicPattern(
        kind=kind,
        direction="BULLISH" if bullish else "BEARISH",
        prz=d.price,
        confidence=confidence,
        stop_loss=stop,
        target1=d.price + TARGET_RATIOS[0] * ad,
        target2=d.price + TARGET_RATIOS[1] * ad,
        d_index=d.index,
        ratios=(b_xa, c_ab, d_xa),
    )


def detect_harmonic_patterns(
    fractal_highs: Sequence[Fractal],
    fractal_lows: Sequence[Fractal],
    bar_count: int,
    tolerance: float = 0.05,
    extension_tolerance: float = 0.07,
    recency_bars: int = 20,
) -> list[HarmonicPattern]:
    """Scan alternating swings for active harmonic patterns.

    Only patterns whose D point lies within the last *recency_bars* bars of
    a *bar_count*-bar series are returned.
    """
    swings = merge_swings(list(fractal_highs), list(fractal_lows))
    if len(swings) < 5:
        return []

    last_index = bar_count - 1
    patterns: list[HarmonicPattern] = []
    for i in range(len(swings) - 4):
        found = validate_xabcd(*swings[i : i + 5], tolerance, extension_tolerance)
        if found is not None and last_index - found.d_index < recency_bars:
            patterns.append(found)
    return patterns
