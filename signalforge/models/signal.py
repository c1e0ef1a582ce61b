"""Signal models — strategy outputs, plans, collaborator inputs and scan results."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Mapping, Optional

Side = Literal["LONG", "SHORT", "NEUTRAL"]
RegimeName = Literal["TRENDING", "RANGING", "VOLATILE", "EXTREME"]
Bias = Literal["BULLISH", "BEARISH", "NEUTRAL"]


@dataclass(frozen=True)
class StrategyResult:
    """One strategy adapter's verdict for one evaluation."""

    strategy_id: str
    score: float
    side: Side
    trigger: str
    rationale: str
    stop_loss: Optional[float] = None
    take_profits: tuple[float, ...] = ()
    fresh: bool = True


@dataclass(frozen=True)
class MarketRegime:
    regime: RegimeName
    confidence: float
    metrics: Mapping[str, float | str]
    reasoning: str


@dataclass(frozen=True)
class StrategySelection:
    """Regime-weighted strategy set, heaviest first."""

    regime: RegimeName
    active: tuple[tuple[str, float], ...]
    disabled: tuple[str, ...]
    total_weight: float


@dataclass(frozen=True)
class RunnerOutcome:
    primary: Optional[StrategyResult]
    primary_weight: float
    score_boost: float
    details: tuple[str, ...] = ()
    override_reason: Optional[str] = None


@dataclass(frozen=True)
class POI:
    """A clustered, scored support/resistance price."""

    price: float
    score: float
    factors: tuple[str, ...]
    kind: Literal["SUPPORT", "RESISTANCE"]


@dataclass(frozen=True)
class ConfluenceAnalysis:
    supports: tuple[POI, ...]
    resistances: tuple[POI, ...]


@dataclass(frozen=True)
class DCAEntry:
    price: float
    weight_pct: float
    factors: tuple[str, ...]
    distance_pct: float  # discount (LONG) / premium (SHORT) vs reference


@dataclass(frozen=True)
class TakeProfit:
    price: float
    weight_pct: float


@dataclass(frozen=True)
class DCAPlan:
    entries: tuple[DCAEntry, ...]
    average_entry: float
    stop_loss: float
    take_profits: tuple[TakeProfit, ...]
    proximity_penalty: float = 0.0


@dataclass(frozen=True)
class Signal:
    """The externally emitted artifact of one accepted evaluation."""

    symbol: str
    side: Side
    strategy_id: str
    style: str
    score: float
    entry_zone: tuple[float, float]
    dca_plan: DCAPlan
    stop_loss: float
    take_profits: tuple[float, ...]
    rationale: tuple[str, ...]
    regime: RegimeName
    metrics: Mapping[str, float | str]


@dataclass(frozen=True)
class Discard:
    """A rejected candidate with its mandatory reason."""

    symbol: str
    reason: str
    stage: str
    score: Optional[float] = None


@dataclass(frozen=True)
class FilterDecision:
    discarded: bool
    reason: Optional[str] = None
    rule: Optional[str] = None
    penalty: float = 0.0


# ── Collaborator inputs ──────────────────────────────────────────────────


@dataclass(frozen=True)
class RiskState:
    level: Literal["LOW", "MEDIUM", "HIGH"] = "LOW"
    note: str = ""
    risk_type: str = "NONE"  # e.g. "MANIPULATION", "VOLATILITY"


@dataclass(frozen=True)
class MacroContext:
    """Higher-timeframe bias supplied by a macro/regime provider."""

    daily_bias: Bias = "NEUTRAL"
    weekly_bias: Bias = "NEUTRAL"
    usdt_dominance_rising: bool = False
    sentiment: Literal["BULLISH", "BEARISH", "NEUTRAL", "PANIC", "EUPHORIA"] = "NEUTRAL"


@dataclass(frozen=True)
class TradeOutcome:
    side: Side
    status: Literal["WIN", "LOSS", "OPEN"]


@dataclass(frozen=True)
class ScanContext:
    """Everything a scan needs besides candles and config."""

    risk: RiskState = field(default_factory=RiskState)
    macro: MacroContext = field(default_factory=MacroContext)
    volumes_24h: Mapping[str, float] = field(default_factory=dict)
    history: Mapping[str, tuple[TradeOutcome, ...]] = field(default_factory=dict)
    regime_accuracy: Mapping[str, float] = field(default_factory=dict)
    drawdown: float = 0.0
    now: Optional[datetime] = None


@dataclass(frozen=True)
class ScanResult:
    signals: tuple[Signal, ...]
    discards: tuple[Discard, ...]
