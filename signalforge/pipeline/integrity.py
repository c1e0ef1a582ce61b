"""Indicator Integrity Shield — fail-closed validation of a built snapshot.

Checks run in a fixed order and the first failure wins. Any failure flips
``invalidated`` on the whole snapshot; there is no partial trust.
"""

import logging
import math
from dataclasses import fields, is_dataclass, replace
from typing import Any, Callable, Iterator, Optional

from signalforge.models.snapshot import IndicatorSnapshot

logger = logging.getLogger("signalforge.integrity")

MACD_TOLERANCE = 1e-9


def _finite(*values: float) -> bool:
    return all(isinstance(v, (int, float)) and math.isfinite(v) for v in values)


def _dataclass_floats(obj: Any) -> list[float]:
    return [getattr(obj, f.name) for f in fields(obj) if isinstance(getattr(obj, f.name), float)]


def _macd_coherent(s: IndicatorSnapshot) -> bool:
    m = s.macd
    if not _finite(m.line, m.signal, m.histogram, *m.histogram_tail):
        return False
    scale = max(1.0, abs(m.line), abs(m.signal))
    return abs((m.line - m.signal) - m.histogram) <= MACD_TOLERANCE * scale


def _fib_degenerate(s: IndicatorSnapshot) -> bool:
    return s.fibonacci.level0 == s.fibonacci.level1 and s.atr > 0


_CHECKS: tuple[tuple[str, Callable[[IndicatorSnapshot], bool]], ...] = (
    ("PRICE_NAN", lambda s: _finite(s.price)),
    ("RSI_NAN", lambda s: _finite(s.rsi)),
    ("ATR_NAN", lambda s: _finite(s.atr)),
    ("EMA_NAN", lambda s: _finite(s.ema20, s.ema50, s.ema100, s.ema200)),
    ("MACD_CORRUPTED", _macd_coherent),
    ("FIBONACCI_NAN", lambda s: _finite(*_dataclass_floats(s.fibonacci))),
    ("FIBONACCI_LOGIC_ERROR", lambda s: not _fib_degenerate(s)),
    ("ICHIMOKU_NAN", lambda s: s.ichimoku is None or _finite(*_dataclass_floats(s.ichimoku))),
    (
        "BOLLINGER_NAN",
        lambda s: _finite(s.bollinger.upper, s.bollinger.middle, s.bollinger.lower, s.bollinger.bandwidth),
    ),
    ("BOLLINGER_INVERTED", lambda s: s.bollinger.upper >= s.bollinger.lower),
    ("CVD_NAN", lambda s: _finite(s.cvd_slope, *s.cvd_tail)),
)


def _walk_numbers(obj: Any, path: str) -> Iterator[tuple[str, float]]:
    """Yield ``(path, value)`` for every float reachable from *obj*."""
    if isinstance(obj, bool):
        return
    if isinstance(obj, float):
        yield path, obj
    elif isinstance(obj, tuple):
        for i, item in enumerate(obj):
            yield from _walk_numbers(item, f"{path}[{i}]")
    elif is_dataclass(obj):
        for f in fields(obj):
            child = f"{path}.{f.name}" if path else f.name
            yield from _walk_numbers(getattr(obj, f.name), child)


def first_failure(snapshot: IndicatorSnapshot) -> Optional[str]:
    """Return the first failing reason code, or ``None`` when the snapshot is sound."""
    for reason, check in _CHECKS:
        if not check(snapshot):
            return reason
    for path, value in _walk_numbers(snapshot, ""):
        if not math.isfinite(value):
            return f"NON_FINITE:{path}"
    return None


def validate_snapshot(snapshot: IndicatorSnapshot) -> IndicatorSnapshot:
    """Run the checklist and return the snapshot, invalidated on any failure.

    An exception raised while validating is itself a failure
    (``VALIDATION_CRASH``).
    """
    if snapshot.invalidated:
        return snapshot
    try:
        reason = first_failure(snapshot)
    except Exception as exc:
        logger.warning("Integrity validation crashed for %s: %s", snapshot.symbol, exc)
        reason = f"VALIDATION_CRASH: {exc}"
    if reason is None:
        return snapshot
    logger.info("Snapshot for %s invalidated: %s", snapshot.symbol, reason)
    return replace(snapshot, invalidated=True, invalidation_reason=reason)
