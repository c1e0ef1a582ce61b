"""Swing-failure (SFP) adapters — ``smc_liquidity`` and ``mean_reversion``.

A swing failure is a wick through the prior 20-bar extreme that closes back
inside the range, trapping breakout traders. The sweep alone is not enough:
both of the adapter's required confluences must agree, otherwise the
candidate is dropped outright. The golden pocket (and, for
``smc_liquidity``, RSI divergence) only adds to the score.
"""

import logging
from typing import Optional

from signalforge.kernel.indicators import calculate_sma
from signalforge.models.signal import StrategyResult
from signalforge.strategies.base import StrategyContext

logger = logging.getLogger("signalforge.strategies")

SWING_BARS = 20
MIN_CONFLUENCES = 2
OB_DISTANCE = 0.01
GOLDEN_POCKET_DISTANCE = 0.015
WEAK_SWEEP_VOLUME = 1.2
STRONG_SWEEP_VOLUME = 2.0

CONFLUENCE_POINTS = {
    "order-flow absorption": 10,
    "order-block retest": 10,
    "golden pocket": 10,
    "RSI divergence": 5,
}


class SwingStrategy:
    """Base SFP adapter. Implements ``StrategyProtocol``."""

    strategy_id = "smc_liquidity"
    required: tuple[str, ...] = ("order-flow absorption", "order-block retest")

    def _confluences(self, context: StrategyContext, bullish: bool) -> list[str]:
        snap = context.snapshot
        price = snap.price
        found: list[str] = []

        cvd_div = snap.cvd_divergence
        if cvd_div is not None and cvd_div.is_bullish == bullish:
            found.append("order-flow absorption")

        if "order-block retest" in self.required:
            blocks = snap.bullish_order_blocks if bullish else snap.bearish_order_blocks
            if any(
                not ob.mitigated and abs(ob.price - price) / price < OB_DISTANCE
                for ob in blocks
            ):
                found.append("order-block retest")

        golden = snap.fibonacci.level0_618
        if abs(price - golden) / price < GOLDEN_POCKET_DISTANCE:
            found.append("golden pocket")

        rsi_div = snap.rsi_divergence
        if rsi_div is not None and rsi_div.is_bullish == bullish:
            found.append("RSI divergence")
        return found

    def evaluate(self, context: StrategyContext) -> Optional[StrategyResult]:
        candles = context.candles
        snap = context.snapshot
        if len(candles) <= SWING_BARS or snap.price <= 0:
            return None

        prior = candles[-SWING_BARS - 1 : -1]
        prior_low = min(c.low for c in prior)
        prior_high = max(c.high for c in prior)
        bar = candles[-1]

        if bar.low < prior_low and bar.close > prior_low:
            side, bullish = "LONG", True
        elif bar.high > prior_high and bar.close < prior_high:
            side, bullish = "SHORT", False
        else:
            return None

        confluences = self._confluences(context, bullish)
        confirmed = [c for c in confluences if c in self.required]
        if len(confirmed) < MIN_CONFLUENCES:
            logger.debug(
                "%s: %s sweep with %d of %d required confluence(s)",
                self.strategy_id, snap.symbol, len(confirmed), MIN_CONFLUENCES,
            )
            return None

        score = 80.0 + sum(CONFLUENCE_POINTS[c] for c in confluences)
        notes = list(confluences)

        avg_volume = calculate_sma([c.volume for c in candles], SWING_BARS)
        volume_ratio = bar.volume / avg_volume if avg_volume > 0 else 0.0
        if volume_ratio < WEAK_SWEEP_VOLUME:
            score -= 15
            notes.append("thin sweep volume")
        elif volume_ratio > STRONG_SWEEP_VOLUME:
            score += 10
            notes.append("strong sweep volume")

        swept = prior_low if bullish else prior_high
        return StrategyResult(
            strategy_id=self.strategy_id,
            score=min(score, 100.0),
            side=side,
            trigger=f"SFP {'below' if bullish else 'above'} {swept:.4f} (20p)",
            rationale="Liquidity sweep closed back inside range: " + " + ".join(notes),
            stop_loss=bar.low if bullish else bar.high,
        )


class SmcLiquidityStrategy(SwingStrategy):
    strategy_id = "smc_liquidity"


class MeanReversionStrategy(SwingStrategy):
    """SFP without the order-block factor; RSI divergence takes its place."""

    strategy_id = "mean_reversion"
    required = ("order-flow absorption", "RSI divergence")
