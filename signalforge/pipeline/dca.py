"""Staged-entry planner — three scaled entries, one stop, three exits.

Entries come from the POIs on the trade side of price; when there are fewer
than three, Fibonacci retracements fill in, then ATR multiples. Size and
exit splits depend on the regime: trends front-load entries and let winners
run, volatile and extreme regimes scale in deeper and bank profit early.
"""

import logging
from typing import Optional

from signalforge.models.signal import (
    ConfluenceAnalysis,
    DCAEntry,
    DCAPlan,
    Side,
    TakeProfit,
)
from signalforge.models.snapshot import FibonacciLevels

logger = logging.getLogger("signalforge.dca")

ENTRY_SPLITS: dict[str, tuple[float, float, float]] = {
    "TRENDING": (50.0, 30.0, 20.0),
    "RANGING": (40.0, 30.0, 30.0),
    "VOLATILE": (30.0, 30.0, 40.0),
    "EXTREME": (25.0, 35.0, 40.0),
}

EXIT_SPLITS: dict[str, tuple[float, float, float]] = {
    "TRENDING": (30.0, 30.0, 40.0),
    "RANGING": (40.0, 30.0, 30.0),
    "VOLATILE": (50.0, 30.0, 20.0),
    "EXTREME": (60.0, 25.0, 15.0),
}

MAX_ENTRIES = 3
SIDE_TOLERANCE = 0.001
FIB_DEDUPE = 0.005
FIB_FALLBACK = (
    ("level0_618", "Golden Pocket (0.618)"),
    ("level0_65", "Golden Pocket Low (0.65)"),
    ("level0_5", "Fib 0.5"),
    ("level0_786", "Fib 0.786"),
    ("level0_886", "Fib 0.886"),
)
ATR_ENTRY_MULTIPLES = (1.5, 2.5, 3.5)
ATR_TP_MULTIPLES = (2.0, 4.0, 6.0)
STOP_ATR = 1.5
# ATR is capped at price / 7 so the deepest ATR entry, its stop and the
# last ATR target all stay above zero.
ATR_PRICE_CAP = 7.0

PROXIMITY_MAX_PCT = 3.0
PROXIMITY_MAX_ATR = 2.5
PROXIMITY_PENALTY_CAP = 30.0


def _on_side(level: float, price: float, side: Side) -> bool:
    if side == "LONG":
        return level <= price * (1 + SIDE_TOLERANCE)
    return level >= price * (1 - SIDE_TOLERANCE)


def _distance_pct(level: float, price: float, side: Side) -> float:
    if price <= 0:
        return 0.0
    gap = price - level if side == "LONG" else level - price
    return gap / price * 100


def _select_levels(
    price: float,
    pois: ConfluenceAnalysis,
    atr: float,
    side: Side,
    fibonacci: Optional[FibonacciLevels],
) -> list[tuple[float, tuple[str, ...]]]:
    candidates = pois.supports if side == "LONG" else pois.resistances
    levels = [
        (poi.price, poi.factors) for poi in candidates if _on_side(poi.price, price, side)
    ][:MAX_ENTRIES]

    if len(levels) < MAX_ENTRIES and fibonacci is not None:
        for attr, label in FIB_FALLBACK:
            level = getattr(fibonacci, attr)
            taken = any(abs(level - existing) / existing <= FIB_DEDUPE for existing, _ in levels)
            if level > 0 and _on_side(level, price, side) and not taken:
                levels.append((level, (label,)))
            if len(levels) == MAX_ENTRIES:
                break

    # ATR multiples always fill the remaining slots, even when they coincide
    # with a POI, so every plan carries exactly three entries.
    for multiple in ATR_ENTRY_MULTIPLES[: MAX_ENTRIES - len(levels)]:
        level = price - atr * multiple if side == "LONG" else price + atr * multiple
        levels.append((level, (f"ATR {multiple:g}x",)))

    # Nearest to price first.
    levels.sort(key=lambda item: abs(price - item[0]))
    return levels


def _take_profits(
    average: float, pois: ConfluenceAnalysis, atr: float, side: Side, regime: str
) -> tuple[TakeProfit, ...]:
    if side == "LONG":
        targets = sorted(p.price for p in pois.resistances if p.price > average)
    else:
        targets = sorted((p.price for p in pois.supports if p.price < average), reverse=True)
    prices = targets[:MAX_ENTRIES]

    for multiple in ATR_TP_MULTIPLES:
        if len(prices) == MAX_ENTRIES:
            break
        level = average + atr * multiple if side == "LONG" else average - atr * multiple
        beyond_last = not prices or (level > prices[-1] if side == "LONG" else level < prices[-1])
        if beyond_last:
            prices.append(level)

    # ATR fallbacks exhausted without passing the furthest POI target.
    while len(prices) < MAX_ENTRIES:
        step = atr * ATR_TP_MULTIPLES[0]
        prices.append(prices[-1] + step if side == "LONG" else prices[-1] - step)

    splits = EXIT_SPLITS.get(regime, EXIT_SPLITS["RANGING"])
    return tuple(TakeProfit(price, weight) for price, weight in zip(prices, splits))


def build_dca_plan(
    price: float,
    pois: ConfluenceAnalysis,
    atr: float,
    side: Side,
    regime: str,
    fibonacci: Optional[FibonacciLevels] = None,
) -> DCAPlan:
    """Plan three scaled entries for *side* around *price*.

    Entry and exit weights each sum to 100. The stop sits 1.5×ATR beyond the
    deepest entry. ``proximity_penalty`` is non-zero when the weighted
    average entry is far from price (more than 3% or 2.5×ATR away).
    """
    if side not in ("LONG", "SHORT"):
        raise ValueError(f"Cannot plan entries for side {side!r}")

    if price > 0:
        atr = min(atr, price / ATR_PRICE_CAP)
    levels = _select_levels(price, pois, atr, side, fibonacci)
    splits = ENTRY_SPLITS.get(regime, ENTRY_SPLITS["RANGING"])
    entries = tuple(
        DCAEntry(
            price=level,
            weight_pct=weight,
            factors=factors,
            distance_pct=_distance_pct(level, price, side),
        )
        for (level, factors), weight in zip(levels, splits)
    )

    total_weight = sum(e.weight_pct for e in entries)
    average = sum(e.price * e.weight_pct for e in entries) / total_weight

    deepest = entries[-1].price
    stop = deepest - atr * STOP_ATR if side == "LONG" else deepest + atr * STOP_ATR

    gap = abs(average - price)
    gap_pct = gap / price * 100 if price > 0 else 0.0
    penalty = 0.0
    if gap_pct > PROXIMITY_MAX_PCT or (atr > 0 and gap > atr * PROXIMITY_MAX_ATR):
        penalty = min(PROXIMITY_PENALTY_CAP, float(round(gap_pct * 2)))
        logger.debug("Average entry %.2f%% away, proximity penalty %.1f", gap_pct, penalty)

    return DCAPlan(
        entries=entries,
        average_entry=average,
        stop_loss=stop,
        take_profits=_take_profits(average, pois, atr, side, regime),
        proximity_penalty=penalty,
    )
