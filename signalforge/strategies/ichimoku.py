"""Ichimoku cloud-following adapter (``ichimoku_dragon``).

Scores a Tenkan/Kijun cross by where price sits against the cloud, whether
the lagging span is free, and whether the projected cloud agrees. A cross
without a cross threshold falls through to the kumo breakout check.

The same reading is taken one bar earlier; a setup that already stood on
the previous bar is reported as not fresh so the scanner can refuse to
chase it.
"""

import logging
from dataclasses import replace
from typing import Optional

from signalforge.kernel.ichimoku import calculate_ichimoku

from signalforge.models.signal import StrategyResult
from signalforge.models.snapshot import IchimokuCloud
from signalforge.strategies.base import StrategyContext

logger = logging.getLogger("signalforge.strategies")

TK_THRESHOLD = 0.0002  # fraction of price separating tenkan from kijun
SIGNAL_SCORE = 75
BREAKOUT_SCORE = 70
BREAKOUT_BUFFER = 0.001
THICK_CLOUD = 0.005
C_CLAMP = 0.02


def _cloud_status(price: float, cloud: IchimokuCloud) -> str:
    if price > cloud.cloud_top:
        return "ABOVE"
    if price < cloud.cloud_bottom:
        return "BELOW"
    return "INSIDE"


def _cross_score(cloud: IchimokuCloud, status: str, bullish: bool) -> tuple[float, str, list[str]]:
    favourable, adverse = ("ABOVE", "BELOW") if bullish else ("BELOW", "ABOVE")
    direction = "BULLISH" if bullish else "BEARISH"
    notes: list[str] = []

    score = 60.0
    if status == favourable:
        strength = "STRONG"
        score += 20
    elif status == "INSIDE":
        strength = "NEUTRAL"
        score += 10
    else:
        strength = "WEAK"
    if status == adverse:
        notes.append("counter-trend cross")

    if cloud.chikou_direction == direction and cloud.chikou_free:
        score += 15
        notes.append("chikou confirms")
    if cloud.future_cloud == direction:
        score += 5
        notes.append("future cloud agrees")
    if cloud.cloud_thickness > THICK_CLOUD:
        score += 5
    if cloud.tk_separation > C_CLAMP:
        score -= 10
        notes.append("C-clamp over-extension")
    return score, strength, notes


class IchimokuStrategy:
    """Implements ``StrategyProtocol``."""

    strategy_id = "ichimoku_dragon"

    def evaluate(self, context: StrategyContext) -> Optional[StrategyResult]:
        snap = context.snapshot
        if snap.ichimoku is None:
            logger.debug("%s: no ichimoku history for %s", self.strategy_id, snap.symbol)
            return None

        result = self._read(snap.price, snap.ichimoku)
        if result is None:
            return None
        previous = self._previous_bar(context)
        if previous is not None and previous.side == result.side:
            logger.debug("%s: %s setup already stood last bar", self.strategy_id, snap.symbol)
            return replace(result, fresh=False)
        return result

    def _previous_bar(self, context: StrategyContext) -> Optional[StrategyResult]:
        candles = context.candles[:-1]
        if not candles:
            return None
        cloud = calculate_ichimoku(
            [c.high for c in candles], [c.low for c in candles], [c.close for c in candles]
        )
        if cloud is None:
            return None
        return self._read(candles[-1].close, cloud)

    def _read(self, price: float, cloud: IchimokuCloud) -> Optional[StrategyResult]:
        status = _cloud_status(price, cloud)
        tk_diff = cloud.tenkan - cloud.kijun
        threshold = price * TK_THRESHOLD

        if tk_diff > threshold or tk_diff < -threshold:
            bullish = tk_diff > 0
            score, strength, notes = _cross_score(cloud, status, bullish)
            if score < SIGNAL_SCORE:
                return None
            side = "LONG" if bullish else "SHORT"
            stop = (
                min(cloud.kijun, cloud.cloud_top)
                if bullish
                else max(cloud.kijun, cloud.cloud_bottom)
            )
            rationale = f"Ichimoku {side} ({strength}): TK cross, price {status.lower()} cloud"
            if notes:
                rationale += "; " + ", ".join(notes)
            return StrategyResult(
                strategy_id=self.strategy_id,
                score=min(score, 100.0),
                side=side,
                trigger=f"TK Cross {'Bullish' if bullish else 'Bearish'}",
                rationale=rationale,
                stop_loss=stop,
            )

        if (
            status == "ABOVE"
            and price > cloud.cloud_top * (1 + BREAKOUT_BUFFER)
            and cloud.tenkan > cloud.kijun
        ):
            return StrategyResult(
                strategy_id=self.strategy_id,
                score=BREAKOUT_SCORE,
                side="LONG",
                trigger="Price Breakout > Kumo Cloud",
                rationale="Kumo breakout: price cleared the cloud",
                stop_loss=cloud.cloud_top,
            )
        if (
            status == "BELOW"
            and price < cloud.cloud_bottom * (1 - BREAKOUT_BUFFER)
            and cloud.tenkan < cloud.kijun
        ):
            return StrategyResult(
                strategy_id=self.strategy_id,
                score=BREAKOUT_SCORE,
                side="SHORT",
                trigger="Price Breakdown < Kumo Cloud",
                rationale="Kumo breakdown: price fell through the cloud",
                stop_loss=cloud.cloud_bottom,
            )
        return None
