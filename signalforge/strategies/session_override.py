"""Gold session override (``session_override``).

Precious-metal symbols in an uptrend are bought on a golden-zone retrace
(Fib 0.382-0.5) or a hidden bullish RSI divergence while RSI holds its
support. When this adapter fires it pre-empts the regime-selected set. When
it stays neutral it still returns a NEUTRAL result carrying the reason.
"""

from datetime import datetime, timezone
from typing import Optional

from signalforge.models.signal import StrategyResult
from signalforge.strategies.base import StrategyContext, neutral


def _evaluation_time(context: StrategyContext) -> datetime:
    if context.now is not None:
        return context.now
    return datetime.fromtimestamp(context.snapshot.timestamp / 1000, tz=timezone.utc)


class SessionOverrideStrategy:
    """Implements ``StrategyProtocol``."""

    strategy_id = "session_override"

    def applies_to(self, symbol: str, assets: tuple[str, ...]) -> bool:
        return any(asset in symbol.upper() for asset in assets)

    def evaluate(self, context: StrategyContext) -> Optional[StrategyResult]:
        settings = context.config.session_override
        snap = context.snapshot
        price = snap.price

        if not self.applies_to(snap.symbol, settings.assets):
            return neutral(self.strategy_id, "Non-precious-metal asset")

        score = 10.0
        reasons: list[str] = []

        hour = _evaluation_time(context).astimezone(timezone.utc).hour
        if settings.session_start_utc <= hour <= settings.session_end_utc:
            score += 10
            reasons.append(f"session active (UTC {hour})")

        if price <= snap.ema200:
            return neutral(self.strategy_id, "Price below EMA200 (downtrend)")
        score += 20
        reasons.append("above EMA200")

        recent_rsi = snap.rsi_tail[-settings.rsi_lookback:] or (snap.rsi,)
        if min(recent_rsi) < settings.rsi_support:
            return neutral(
                self.strategy_id, f"RSI broke support {settings.rsi_support:g}"
            )
        score += 15
        reasons.append(f"RSI structure above {settings.rsi_support:g}")

        fib = snap.fibonacci
        tolerance = settings.golden_zone_tolerance
        zone_top = max(fib.level0_382, fib.level0_5) * (1 + tolerance)
        zone_bottom = min(fib.level0_382, fib.level0_5) * (1 - tolerance)
        in_zone = zone_bottom <= price <= zone_top
        if in_zone:
            score += 25
            reasons.append("in golden zone (Fib 38-50%)")

        hidden_div = snap.rsi_divergence is not None and snap.rsi_divergence.kind == "HIDDEN_BULLISH"
        if hidden_div:
            score += 30
            reasons.append("hidden bullish divergence")

        if score < settings.min_score or not (in_zone or hidden_div):
            return neutral(
                self.strategy_id,
                f"No golden-zone or divergence trigger (score {score:g})",
            )

        risk = snap.atr * settings.sl_atr_multiplier
        stop = price - risk
        tp1 = fib.level0 if fib.level0 > price else price + risk * 2
        return StrategyResult(
            strategy_id=self.strategy_id,
            score=min(score, 100.0),
            side="LONG",
            trigger="Golden zone retrace" if in_zone else "Hidden bullish divergence",
            rationale="Gold session override: " + ", ".join(reasons),
            stop_loss=stop,
            take_profits=(tp1, price + risk * 3, price + risk * 5),
        )
