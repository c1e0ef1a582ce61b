"""Order-block detection — the last opposing candle before a displacement."""

from typing import Optional, Sequence

from signalforge.models.candle import Candle
from signalforge.models.snapshot import OrderBlock

LOOKBACK = 50
DISPLACEMENT_ATR = 1.5
VOLUME_FACTOR = 1.2
MAX_BLOCKS = 5


def detect_order_blocks(
    candles: Sequence[Candle],
    atr: float,
    current_price: float,
) -> tuple[list[OrderBlock], list[OrderBlock]]:
    """Find bullish and bearish order blocks in the last 50 bars.

    A candidate bar needs volume above 1.2× the series average and a close
    two bars later displaced by more than 1.5×ATR. A bearish (or flat) bar
    followed by an up-move of more than 1×ATR is a bullish block; the mirror
    is a bearish block. Strength (0-10) mixes volume and displacement.

    Returns ``(bullish, bearish)``, strongest first, at most five each.
    """
    if len(candles) < 10 or atr <= 0:
        return [], []

    avg_volume = sum(c.volume for c in candles) / len(candles)
    lookback = min(LOOKBACK, len(candles) - 3)
    bullish: list[OrderBlock] = []
    bearish: list[OrderBlock] = []

    for i in range(len(candles) - lookback, len(candles) - 2):
        bar = candles[i]
        follow = candles[i + 2]
        displacement = abs(follow.close - bar.close)
        if displacement <= atr * DISPLACEMENT_ATR or bar.volume <= avg_volume * VOLUME_FACTOR:
            continue

        low = min(bar.open, bar.close)
        high = max(bar.open, bar.close)
        volume_strength = min(bar.volume / avg_volume * 3, 5.0) if avg_volume else 0.0
        strength = min(volume_strength + min(displacement / atr * 2, 5.0), 10.0)

        if follow.close > bar.close + atr and bar.close <= bar.open:
            bullish.append(
                OrderBlock(
                    price=(low + high) / 2,
                    high=high,
                    low=low,
                    strength=strength,
                    direction="BULLISH",
                    timestamp=bar.timestamp,
                    mitigated=current_price < high,
                )
            )
        if follow.close < bar.close - atr and bar.close >= bar.open:
            bearish.append(
                OrderBlock(
                    price=(low + high) / 2,
                    high=high,
                    low=low,
                    strength=strength,
                    direction="BEARISH",
                    timestamp=bar.timestamp,
                    mitigated=current_price > low,
                )
            )

    bullish.sort(key=lambda ob: ob.strength, reverse=True)
    bearish.sort(key=lambda ob: ob.strength, reverse=True)
    return bullish[:MAX_BLOCKS], bearish[:MAX_BLOCKS]


def find_nearest_block(
    price: float, blocks: Sequence[OrderBlock], max_distance_pct: float
) -> Optional[OrderBlock]:
    """Closest unmitigated block within *max_distance_pct* of *price*."""
    nearby = [
        ob for ob in blocks
        if not ob.mitigated and abs(ob.price - price) / price * 100 <= max_distance_pct
    ]
    if not nearby:
        return None
    return min(nearby, key=lambda ob: abs(ob.price - price))
