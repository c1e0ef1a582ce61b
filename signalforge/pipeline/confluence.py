"""Confluence engine — clusters evidence levels into scored POIs.

Every evidence source (Fibonacci, pivots, EMAs, volume-profile POC, order
blocks, FVGs, harmonic PRZs, chart-pattern pivots) contributes a price and
a weight. Levels below price are supports, above are resistances. A level
within 0.5×ATR of an existing POI on the same side is merged into it.
"""

import math
from dataclasses import dataclass, field

from signalforge.models.signal import POI, ConfluenceAnalysis
from signalforge.models.snapshot import IndicatorSnapshot

MERGE_ATR = 0.5
TOP_N = 3
SYNERGY_MULTIPLIER = 1.5

FIB_WEIGHTS = (
    ("level0_236", "Fib 0.236", 1),
    ("level0_382", "Fib 0.382", 2),
    ("level0_5", "Fib 0.5", 2),
    ("level0_618", "Golden Pocket (0.618)", 3),
    ("level0_65", "Golden Pocket Low (0.65)", 3),
    ("level0_786", "Fib 0.786", 2),
    ("level0_886", "Fib 0.886", 3),
)


@dataclass
class _Cluster:
    price: float
    score: float
    factors: list[str] = field(default_factory=list)


class _Side:
    """Accumulates clusters for one side of the book."""

    def __init__(self, kind: str, threshold: float) -> None:
        self.kind = kind
        self.threshold = threshold
        self.clusters: list[_Cluster] = []

    def add(self, price: float, score: float, factor: str) -> None:
        if not math.isfinite(price) or price <= 0 or score <= 0:
            return
        for cluster in self.clusters:
            if abs(cluster.price - price) < self.threshold:
                total = cluster.score + score
                cluster.price = (cluster.price * cluster.score + price * score) / total
                cluster.score = total
                cluster.factors.append(factor)
                return
        self.clusters.append(_Cluster(price, score, [factor]))

    def ranked(self) -> tuple[POI, ...]:
        for cluster in self.clusters:
            has_fib = any("Fib" in f or "Golden" in f for f in cluster.factors)
            has_ob = any("OB" in f for f in cluster.factors)
            if has_fib and has_ob:
                cluster.score = math.ceil(cluster.score * SYNERGY_MULTIPLIER)
                cluster.factors.append("Institutional confluence")
        ordered = sorted(self.clusters, key=lambda c: (-c.score, c.price))
        return tuple(
            POI(price=c.price, score=c.score, factors=tuple(c.factors), kind=self.kind)
            for c in ordered[:TOP_N]
        )


def calculate_pois(snapshot: IndicatorSnapshot) -> ConfluenceAnalysis:
    """Build the top three support and resistance POIs for *snapshot*.

    Merging uses a score-weighted average price and sums the scores. With a
    non-positive ATR nothing merges.
    """
    price = snapshot.price
    threshold = max(snapshot.atr * MERGE_ATR, 0.0)
    supports = _Side("SUPPORT", threshold)
    resistances = _Side("RESISTANCE", threshold)

    def place(level: float, score: float, factor: str) -> None:
        (supports if level < price else resistances).add(level, score, factor)

    # 1. Fibonacci
    for attr, name, score in FIB_WEIGHTS:
        place(getattr(snapshot.fibonacci, attr), score, name)

    # 2. Pivots
    pv = snapshot.pivots
    for level, name, score, kind in (
        (pv.s2, "Pivot S2", 1, "SUPPORT"),
        (pv.s1, "Pivot S1", 2, "SUPPORT"),
        (pv.pivot, "Pivot P", 2, "SUPPORT" if price > pv.pivot else "RESISTANCE"),
        (pv.r1, "Pivot R1", 2, "RESISTANCE"),
        (pv.r2, "Pivot R2", 1, "RESISTANCE"),
    ):
        if kind == "SUPPORT" and level < price:
            supports.add(level, score, name)
        elif kind == "RESISTANCE" and level > price:
            resistances.add(level, score, name)

    # 3. EMAs
    place(snapshot.ema200, 2, "EMA 200")
    place(snapshot.ema20, 1, "EMA 20")

    # 4. Volume profile
    if snapshot.volume_profile.poc > 0:
        place(snapshot.volume_profile.poc, 5, "POC")

    # 5. Order blocks
    for ob in snapshot.bullish_order_blocks:
        if not ob.mitigated and ob.price < price:
            supports.add(ob.price, math.ceil(ob.strength / 2.5), f"Bullish OB ({ob.strength:.1f})")
    for ob in snapshot.bearish_order_blocks:
        if not ob.mitigated and ob.price > price:
            resistances.add(ob.price, math.ceil(ob.strength / 2.5), f"Bearish OB ({ob.strength:.1f})")

    # 6. Fair-value gaps
    for gap in snapshot.bullish_fvgs:
        if not gap.filled and gap.midpoint < price:
            supports.add(gap.midpoint, 3, "Bullish FVG")
    for gap in snapshot.bearish_fvgs:
        if not gap.filled and gap.midpoint > price:
            resistances.add(gap.midpoint, 3, "Bearish FVG")

    # 7. Harmonic PRZ
    for pattern in snapshot.harmonic_patterns:
        side = supports if pattern.direction == "BULLISH" else resistances
        side.add(pattern.prz, 4, f"{pattern.direction.title()} {pattern.kind} PRZ")

    # 8. Chart-pattern pivots
    for pattern in snapshot.chart_patterns:
        side = supports if pattern.signal == "BULLISH" else resistances
        if "SHOULDERS" in pattern.kind:
            score = 5
        elif "WEDGE" in pattern.kind:
            score = 4
        else:
            score = 3
        side.add(pattern.invalidation_level, score, f"{pattern.kind} pivot")

    return ConfluenceAnalysis(supports=supports.ranked(), resistances=resistances.ranked())
