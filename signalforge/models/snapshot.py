"""Indicator snapshot models — typed records for kernel and detector outputs.

Every record is frozen and holds tuples rather than lists, so a snapshot is
immutable once the aggregator hands it downstream.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional

Direction = Literal["BULLISH", "BEARISH", "NEUTRAL"]


@dataclass(frozen=True)
class MacdResult:
    line: float
    signal: float
    histogram: float
    histogram_tail: tuple[float, ...] = ()


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float
    bandwidth: float  # (upper - lower) / middle × 100
    std: float


@dataclass(frozen=True)
class StochRsi:
    k: float
    d: float


@dataclass(frozen=True)
class PivotPoints:
    """Classic floor pivots derived from the previous bar."""

    pivot: float
    r1: float
    r2: float
    s1: float
    s2: float


@dataclass(frozen=True)
class FibonacciLevels:
    """Retracement and extension levels anchored on the dominant swing leg.

    ``level0`` is the trend-side extreme (the swing high in an uptrend) and
    ``level1`` the opposite anchor; retracements are measured from level0.
    """

    trend: Literal["UP", "DOWN"]
    swing_high: float
    swing_low: float
    level0: float
    level0_236: float
    level0_382: float
    level0_5: float
    level0_618: float
    level0_65: float
    level0_786: float
    level0_886: float
    level1: float
    tp1: float
    tp2: float
    tp3: float
    tp4: float
    tp5: float

    def retracements(self) -> dict[float, float]:
        """Map of retracement ratio → price."""
        return {
            0.236: self.level0_236,
            0.382: self.level0_382,
            0.5: self.level0_5,
            0.618: self.level0_618,
            0.65: self.level0_65,
            0.786: self.level0_786,
            0.886: self.level0_886,
        }


@dataclass(frozen=True)
class IchimokuCloud:
    tenkan: float
    kijun: float
    senkou_a: float
    senkou_b: float
    chikou: float
    chikou_free: bool
    chikou_direction: Direction
    future_cloud: Direction
    cloud_thickness: float
    tk_separation: float

    @property
    def cloud_top(self) -> float:
        return max(self.senkou_a, self.senkou_b)

    @property
    def cloud_bottom(self) -> float:
        return min(self.senkou_a, self.senkou_b)


@dataclass(frozen=True)
class Fractal:
    """A 5-bar swing extreme."""

    index: int
    price: float
    kind: Literal["HIGH", "LOW"]


@dataclass(frozen=True)
class ChartPattern:
    kind: str  # HEAD_SHOULDERS, DOUBLE_TOP, FALLING_WEDGE, ...
    signal: Direction
    confidence: float
    invalidation_level: float
    target: Optional[float]
    description: str


@dataclass(frozen=True)
class HarmonicPattern:
    kind: str  # GARTLEY, BAT, BUTTERFLY, CRAB
    direction: Direction
    prz: float
    confidence: float
    stop_loss: float
    target1: float
    target2: float
    d_index: int
    ratios: tuple[float, float, float] = (0.0, 0.0, 0.0)


@dataclass(frozen=True)
class OrderBlock:
    price: float
    high: float
    low: float
    strength: float  # 0-10
    direction: Direction
    timestamp: int
    mitigated: bool


@dataclass(frozen=True)
class FairValueGap:
    top: float
    bottom: float
    midpoint: float
    direction: Direction
    timestamp: int
    filled: bool
    size: float


@dataclass(frozen=True)
class Divergence:
    """A price-vs-oscillator divergence between two structural pivots."""

    kind: Literal["REGULAR_BULLISH", "HIDDEN_BULLISH", "REGULAR_BEARISH", "HIDDEN_BEARISH"]
    source: str  # "RSI", "CVD", "MACD"
    price_recent: float
    price_prior: float
    oscillator_recent: float
    oscillator_prior: float

    @property
    def is_bullish(self) -> bool:
        return self.kind.endswith("BULLISH")

    @property
    def is_regular(self) -> bool:
        return self.kind.startswith("REGULAR")


@dataclass(frozen=True)
class VolumeProfile:
    poc: float
    value_area_high: float
    value_area_low: float
    total_volume: float
    low_volume_nodes: tuple[float, ...] = ()


@dataclass(frozen=True)
class BoxTheory:
    active: bool
    high: float
    low: float
    midpoint: float
    signal: Direction


@dataclass(frozen=True)
class NPattern:
    detected: bool
    direction: Direction
    entry_price: float
    stop_loss: float


EMPTY_VOLUME_PROFILE = VolumeProfile(0.0, 0.0, 0.0, 0.0)
EMPTY_BOX = BoxTheory(False, 0.0, 0.0, 0.0, "NEUTRAL")
EMPTY_N_PATTERN = NPattern(False, "NEUTRAL", 0.0, 0.0)


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Every computed indicator for one symbol at one point in time.

    ``invalidated`` is an unconditional veto: nothing downstream may act on
    an invalidated snapshot. ``degraded`` names fields that came from a
    documented fallback branch rather than a full computation.
    """

    symbol: str
    timestamp: int
    price: float
    rsi: float
    rsi_tail: tuple[float, ...]
    stoch_rsi: StochRsi
    macd: MacdResult
    bollinger: BollingerBands
    previous_bandwidth: float
    min_bandwidth: float
    sma20: float
    ema20: float
    ema50: float
    ema100: float
    ema200: float
    ema_alignment: Literal["BULLISH", "BEARISH", "CHAOTIC"]
    ema200_slope: float
    price_slope: float
    atr: float
    atr_pct: float
    adx: float
    vwap: float
    pivots: PivotPoints
    rvol: float
    z_score: float
    fibonacci: FibonacciLevels
    ichimoku: Optional[IchimokuCloud]
    cvd_tail: tuple[float, ...]
    cvd_slope: float
    cvd_divergence: Optional[Divergence]
    rsi_divergence: Optional[Divergence]
    fractal_highs: tuple[Fractal, ...] = ()
    fractal_lows: tuple[Fractal, ...] = ()
    chart_patterns: tuple[ChartPattern, ...] = ()
    harmonic_patterns: tuple[HarmonicPattern, ...] = ()
    bullish_order_blocks: tuple[OrderBlock, ...] = ()
    bearish_order_blocks: tuple[OrderBlock, ...] = ()
    bullish_fvgs: tuple[FairValueGap, ...] = ()
    bearish_fvgs: tuple[FairValueGap, ...] = ()
    volume_profile: VolumeProfile = EMPTY_VOLUME_PROFILE
    box_theory: BoxTheory = EMPTY_BOX
    n_pattern: NPattern = EMPTY_N_PATTERN
    invalidated: bool = False
    invalidation_reason: Optional[str] = None
    degraded: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def placeholder(cls, symbol: str, reason: str, price: float = 0.0, timestamp: int = 0) -> "IndicatorSnapshot":
        """An all-neutral snapshot marked ``invalidated`` with *reason*."""
        fib = FibonacciLevels(
            "UP", price, price, price, price, price, price, price,
            price, price, price, price, price, price, price, price, price,
        )
        return cls(
            symbol=symbol,
            timestamp=timestamp,
            price=price,
            rsi=50.0,
            rsi_tail=(),
            stoch_rsi=StochRsi(50.0, 50.0),
            macd=MacdResult(0.0, 0.0, 0.0),
            bollinger=BollingerBands(price, price, price, 0.0, 0.0),
            previous_bandwidth=0.0,
            min_bandwidth=0.0,
            sma20=price,
            ema20=price,
            ema50=price,
            ema100=price,
            ema200=price,
            ema_alignment="CHAOTIC",
            ema200_slope=0.0,
            price_slope=0.0,
            atr=0.0,
            atr_pct=0.0,
            adx=20.0,
            vwap=price,
            pivots=PivotPoints(price, price, price, price, price),
            rvol=1.0,
            z_score=0.0,
            fibonacci=fib,
            ichimoku=None,
            cvd_tail=(),
            cvd_slope=0.0,
            cvd_divergence=None,
            rsi_divergence=None,
            invalidated=True,
            invalidation_reason=reason,
        )
