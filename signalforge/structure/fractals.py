"""Fractal swing detection — pure functions over high/low arrays."""

from typing import Sequence

from signalforge.models.snapshot import Fractal


def _find_fractal_highs(highs: Sequence[float], window: int = 2) -> list[Fractal]:
    """Identify fractal highs.

    A fractal high is a bar whose high strictly exceeds the highs of the
    *window* bars on each side.
    """
    found: list[Fractal] = []
    for i in range(window, len(highs) - window):
        high = highs[i]
        is_swing = True
        for j in range(1, window + 1):
            if highs[i - j] >= high or highs[i + j] >= high:
                is_swing = False
                break
        if is_swing:
            found.append(Fractal(index=i, price=high, kind="HIGH"))
    return found


def _find_fractal_lows(lows: Sequence[float], window: int = 2) -> list[Fractal]:
    """Identify fractal lows.

    A fractal low is a bar whose low is strictly below the lows of the
    *window* bars on each side.
    """
    found: list[Fractal] = []
    for i in range(window, len(lows) - window):
        low = lows[i]
        is_swing = True
        for j in range(1, window + 1):
            if lows[i - j] <= low or lows[i + j] <= low:
                is_swing = False
                break
        if is_swing:
            found.append(Fractal(index=i, price=low, kind="LOW"))
    return found


def detect_fractals(
    highs: Sequence[float],
    lows: Sequence[float],
    size: int = 5,
) -> tuple[list[Fractal], list[Fractal]]:
    """Detect *size*-bar fractal highs and lows.

    Returns ``(fractal_highs, fractal_lows)``, each ordered by bar index.
    """
    window = size // 2
    return _find_fractal_highs(highs, window), _find_fractal_lows(lows, window)


def merge_swings(highs: list[Fractal], lows: list[Fractal]) -> list[Fractal]:
    """Chronological swing sequence with consecutive same-kind points collapsed.

    When two highs (or two lows) follow each other, only the more extreme
    one is kept, so the result alternates HIGH/LOW.
    """
    merged: list[Fractal] = []
    for point in sorted(highs + lows, key=lambda f: f.index):
        if merged and merged[-1].kind == point.kind:
            prev = merged[-1]
            more_extreme = (
                point.price > prev.price if point.kind == "HIGH" else point.price < prev.price
            )
            if more_extreme:
                merged[-1] = point
            continue
        merged.append(point)
    return merged
