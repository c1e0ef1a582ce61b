"""Volatility-squeeze scalp adapter (``quant_volatility``)."""

from typing import Optional

from signalforge.kernel.indicators import calculate_bollinger
from signalforge.models.signal import StrategyResult
from signalforge.strategies.base import StrategyContext

SQUEEZE_FACTOR = 1.2
LOOKBACK_START = 20
LOOKBACK_END = 50
SCORE = 80.0


def historical_min_bandwidth(closes, period: int, std_dev: float) -> Optional[float]:
    """Lowest bandwidth among bars 20-49 back, each with a full window."""
    last = len(closes) - 1
    widths = [
        calculate_bollinger(closes[: len(closes) - i], period, std_dev).bandwidth
        for i in range(LOOKBACK_START, LOOKBACK_END)
        if last - i >= period
    ]
    return min(widths) if widths else None


class ScalpStrategy:
    """Squeeze plus agreement of VWAP, SMA20, RSI and order flow.

    Implements ``StrategyProtocol``.
    """

    strategy_id = "quant_volatility"

    def evaluate(self, context: StrategyContext) -> Optional[StrategyResult]:
        snap = context.snapshot
        periods = context.config.indicators
        closes = [c.close for c in context.candles]
        floor = historical_min_bandwidth(closes, periods.bollinger, periods.bollinger_std)
        if floor is None:
            return None

        bandwidth = snap.bollinger.bandwidth
        if bandwidth > floor * SQUEEZE_FACTOR:
            return None

        price = snap.price
        bullish = price > snap.vwap and price > snap.sma20 and snap.rsi > 52
        bearish = price < snap.vwap and price < snap.sma20 and snap.rsi < 48

        if bullish and snap.cvd_slope >= 0:
            side = "LONG"
        elif bearish and snap.cvd_slope <= 0:
            side = "SHORT"
        else:
            return None

        return StrategyResult(
            strategy_id=self.strategy_id,
            score=SCORE,
            side=side,
            trigger=f"Squeeze (BW {bandwidth:.2f}%) + RSI {'> 52' if side == 'LONG' else '< 48'} + CVD align",
            rationale=f"Bandwidth {bandwidth:.2f}% within 1.2x of its {floor:.2f}% floor, "
            f"price {'above' if side == 'LONG' else 'below'} VWAP and SMA20",
        )
