"""Meme momentum adapter (``meme_hunter``) — volume pumps and washed-out dips."""

from typing import Optional

from signalforge.models.signal import StrategyResult
from signalforge.strategies.base import StrategyContext

PUMP_RVOL = 1.8
PUMP_RSI = 55
DIP_STOCH_K = 15


class MemeStrategy:
    """Implements ``StrategyProtocol``. Long-only."""

    strategy_id = "meme_hunter"

    def evaluate(self, context: StrategyContext) -> Optional[StrategyResult]:
        snap = context.snapshot
        price = snap.price

        if price > snap.ema20 and price > snap.vwap and snap.rvol > PUMP_RVOL and snap.rsi > PUMP_RSI:
            return StrategyResult(
                strategy_id=self.strategy_id,
                score=80 + min(snap.rvol * 3, 15),
                side="LONG",
                trigger=f"RVOL > {PUMP_RVOL} ({snap.rvol:.2f}x) + RSI {snap.rsi:.0f}",
                rationale=f"Meme pump: explosive volume x{snap.rvol:.1f} above VWAP",
            )

        if price < snap.bollinger.lower and snap.stoch_rsi.k < DIP_STOCH_K:
            return StrategyResult(
                strategy_id=self.strategy_id,
                score=80.0,
                side="LONG",
                trigger=f"StochRSI {snap.stoch_rsi.k:.0f} < {DIP_STOCH_K} + lower band break",
                rationale="Meme dip: price outside the bands with StochRSI on the floor",
            )
        return None
