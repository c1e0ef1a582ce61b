"""Strategy protocol and shared evaluation context.

Defines the interface that all strategy adapters must implement.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, Sequence, runtime_checkable

from signalforge.config import Config
from signalforge.models.candle import Candle
from signalforge.models.signal import MarketRegime, StrategyResult
from signalforge.models.snapshot import IndicatorSnapshot


@dataclass(frozen=True)
class StrategyContext:
    """Everything an adapter may read for one evaluation.

    Adapters read the snapshot first and only fall back to raw candles for
    values the snapshot does not carry (prior channel extremes, short RSI).
    """

    snapshot: IndicatorSnapshot
    regime: MarketRegime
    candles: Sequence[Candle]
    config: Config
    now: Optional[datetime] = None

    @property
    def symbol(self) -> str:
        return self.snapshot.symbol


@runtime_checkable
class StrategyProtocol(Protocol):
    """Interface that all strategy adapters must satisfy."""

    strategy_id: str

    def evaluate(self, context: StrategyContext) -> Optional[StrategyResult]:
        """Evaluate the setup and return a result, or None when nothing fires."""
        ...


def neutral(strategy_id: str, rationale: str) -> StrategyResult:
    """A NEUTRAL result that still carries why the adapter did not fire."""
    return StrategyResult(
        strategy_id=strategy_id,
        score=0.0,
        side="NEUTRAL",
        trigger="none",
        rationale=rationale,
    )
