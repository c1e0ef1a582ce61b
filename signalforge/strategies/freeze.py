"""Freeze/reversal standing override (``freeze_protocol``).

Trend from the SMA 5/10/30 stack, entry on an N-pattern break-and-retest or
a box-theory 0.5 retest, guarded by a short RSI(9) so it never buys the top
or sells the bottom. Evaluated on every scan regardless of regime.
"""

from typing import Optional

from signalforge.kernel.indicators import calculate_rsi, calculate_sma
from signalforge.models.signal import StrategyResult
from signalforge.strategies.base import StrategyContext

FREEZE_RSI_PERIOD = 9
RSI_CEILING = 75
RSI_FLOOR = 25
BOX_RETEST = 0.005
OB_DISTANCE = 0.01
REWARD_RATIO = 2.0
BASE_CONFIDENCE = 5.0
MAX_CONFIDENCE = 10.0


class FreezeStrategy:
    """Implements ``StrategyProtocol``. Score is confidence (0-10) × 10."""

    strategy_id = "freeze_protocol"

    def evaluate(self, context: StrategyContext) -> Optional[StrategyResult]:
        snap = context.snapshot
        closes = [c.close for c in context.candles]
        if len(closes) < 30:
            return None

        price = snap.price
        sma10 = calculate_sma(closes, 10)
        sma30 = calculate_sma(closes, 30)
        bullish_trend = price > sma30 and sma10 > sma30
        bearish_trend = price < sma30 and sma10 < sma30

        direction = None
        entry = price
        stop = 0.0
        reason = ""

        n = snap.n_pattern
        if n.detected:
            if n.direction == "BULLISH" and bullish_trend:
                direction, entry, stop = "BULLISH", n.entry_price, n.stop_loss
                reason = "N-pattern bullish (break & retest)"
            elif n.direction == "BEARISH" and bearish_trend:
                direction, entry, stop = "BEARISH", n.entry_price, n.stop_loss
                reason = "N-pattern bearish (break & retest)"

        box = snap.box_theory
        if direction is None and box.active and box.signal != "NEUTRAL":
            if abs(price - box.midpoint) / price < BOX_RETEST:
                if box.signal == "BULLISH" and bullish_trend:
                    direction, entry, stop = "BULLISH", box.midpoint, box.low
                    reason = "Box 0.5 retest (golden zone)"
                elif box.signal == "BEARISH" and bearish_trend:
                    direction, entry, stop = "BEARISH", box.midpoint, box.high
                    reason = "Box 0.5 retest (bearish rejection)"

        if direction is None:
            return None

        rsi_freeze = calculate_rsi(closes, FREEZE_RSI_PERIOD)
        if direction == "BULLISH" and rsi_freeze > RSI_CEILING:
            return None
        if direction == "BEARISH" and rsi_freeze < RSI_FLOOR:
            return None

        bullish = direction == "BULLISH"
        confidence = BASE_CONFIDENCE
        factors = [reason]

        blocks = snap.bullish_order_blocks if bullish else snap.bearish_order_blocks
        if any(abs(price - ob.price) / ob.price <= OB_DISTANCE for ob in blocks):
            confidence += 2
            factors.append("order block match")
        if (snap.cvd_slope > 0) == bullish and snap.cvd_slope != 0:
            confidence += 1.5
            factors.append("CVD flow aligned")
        if snap.cvd_divergence is not None and snap.cvd_divergence.is_bullish == bullish:
            confidence += 2
            factors.append("absorption")
        confidence = min(confidence, MAX_CONFIDENCE)

        risk = abs(entry - stop)
        target = entry + risk * REWARD_RATIO if bullish else entry - risk * REWARD_RATIO
        return StrategyResult(
            strategy_id=self.strategy_id,
            score=confidence * 10,
            side="LONG" if bullish else "SHORT",
            trigger=reason,
            rationale="Freeze protocol: " + " + ".join(factors),
            stop_loss=stop,
            take_profits=(target,),
        )
