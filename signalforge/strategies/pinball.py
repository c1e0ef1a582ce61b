"""EMA200 pinball pullback adapter (``divergence_hunter``).

Buys the pullback into a rising EMA200 (sells the rally into a falling one)
when price sits on a same-side order block.
"""

from typing import Optional

from signalforge.models.signal import StrategyResult
from signalforge.strategies.base import StrategyContext

MAX_ABOVE = 0.03
MAX_BELOW = 0.01
OB_PADDING = 0.01


class PinballStrategy:
    """Implements ``StrategyProtocol``."""

    strategy_id = "divergence_hunter"

    def evaluate(self, context: StrategyContext) -> Optional[StrategyResult]:
        snap = context.snapshot
        price = snap.price
        if price <= 0:
            return None

        bullish = snap.ema50 > snap.ema200
        if bullish and snap.ema200_slope > 0:
            distance = (price - snap.ema200) / price
            blocks = snap.bullish_order_blocks
        elif not bullish and snap.ema200_slope < 0:
            distance = (snap.ema200 - price) / price
            blocks = snap.bearish_order_blocks
        else:
            return None

        if not -MAX_BELOW < distance < MAX_ABOVE:
            return None
        on_block = any(
            ob.low * (1 - OB_PADDING) <= price <= ob.high * (1 + OB_PADDING)
            for ob in blocks
        )
        if not on_block:
            return None

        score = 90.0
        if bullish and snap.rsi < 45:
            score += 5
        elif not bullish and snap.rsi > 55:
            score += 5

        side = "LONG" if bullish else "SHORT"
        return StrategyResult(
            strategy_id=self.strategy_id,
            score=score,
            side=side,
            trigger="Bounce EMA200 + Bullish OB" if bullish else "Reject EMA200 + Bearish OB",
            rationale=f"Pinball at EMA200 {snap.ema200:.4f} ({distance * 100:+.2f}%) on an order block",
            stop_loss=snap.ema200 * (1 - MAX_BELOW) if bullish else snap.ema200 * (1 + MAX_BELOW),
        )
