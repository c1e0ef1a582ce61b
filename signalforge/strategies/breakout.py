"""Donchian breakout adapter (``breakout_momentum``).

A close beyond the prior 20-bar channel (current bar excluded) counts only
with relative volume above 1.5, expanding Bollinger bandwidth, a strong
close inside the bar's range and order flow pushing the same way.
"""

import logging
from typing import Optional

from signalforge.models.signal import StrategyResult
from signalforge.pipeline.confluence import calculate_pois
from signalforge.strategies.base import StrategyContext

logger = logging.getLogger("signalforge.strategies")

CHANNEL_BARS = 20
MIN_RVOL = 1.5
STRONG_CLOSE = 0.7
WEAK_CLOSE = 0.3
BARRIER_PCT = 0.02
BARRIER_PENALTY = 20


class BreakoutStrategy:
    """Implements ``StrategyProtocol``."""

    strategy_id = "breakout_momentum"

    def evaluate(self, context: StrategyContext) -> Optional[StrategyResult]:
        snap = context.snapshot
        candles = context.candles
        if len(candles) <= CHANNEL_BARS:
            return None

        prior = candles[-CHANNEL_BARS - 1 : -1]
        channel_high = max(c.high for c in prior)
        channel_low = min(c.low for c in prior)
        bar = candles[-1]
        price = snap.price

        if price > channel_high:
            side = "LONG"
        elif price < channel_low:
            side = "SHORT"
        else:
            return None

        if snap.rvol <= MIN_RVOL:
            logger.debug("%s: %s RVOL %.2f too low", self.strategy_id, snap.symbol, snap.rvol)
            return None
        if snap.bollinger.bandwidth <= snap.previous_bandwidth:
            return None

        bar_range = bar.high - bar.low
        if bar_range > 0:
            close_strength = (bar.close - bar.low) / bar_range
            if side == "LONG" and close_strength < STRONG_CLOSE:
                return None
            if side == "SHORT" and close_strength > WEAK_CLOSE:
                return None

        if side == "LONG" and snap.cvd_slope < 0:
            logger.debug("%s: %s breakout against selling flow", self.strategy_id, snap.symbol)
            return None
        if side == "SHORT" and snap.cvd_slope > 0:
            logger.debug("%s: %s breakdown against buying flow", self.strategy_id, snap.symbol)
            return None

        score = 75 + min(snap.rvol * 5, 20)
        pois = calculate_pois(snap)
        if side == "LONG":
            barrier = any(
                0 < (p.price - price) / price < BARRIER_PCT for p in pois.resistances
            )
            level = channel_high
        else:
            barrier = any(
                0 < (price - p.price) / price < BARRIER_PCT for p in pois.supports
            )
            level = channel_low
        rationale = (
            f"Donchian {'breakout' if side == 'LONG' else 'breakdown'} through "
            f"{level:.4f} with RVOL {snap.rvol:.1f}x and expanding bands"
        )
        if barrier:
            score -= BARRIER_PENALTY
            rationale += "; POI barrier within 2%"

        return StrategyResult(
            strategy_id=self.strategy_id,
            score=score,
            side=side,
            trigger=f"Price {'>' if side == 'LONG' else '<'} {level:.4f} (20p) + RVOL {snap.rvol:.1f}x",
            rationale=rationale,
            stop_loss=channel_low if side == "LONG" else channel_high,
        )
