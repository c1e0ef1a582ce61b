"""Market regime classifier.

Priority-ordered, first match wins:

    1. EXTREME   — RSI < 25 at/below the lower band, or RSI > 75 at/above the upper band
    2. VOLATILE  — ATR% > 3.5 and bandwidth > 4
    3. TRENDING  — ADX > 25
    4. RANGING   — ADX < 20 and bandwidth < 3
    5. gray zone — ADX 20-25: VOLATILE if bandwidth > 3.5 and expanding, else RANGING
    6. RANGING   — default

Deterministic and pure: the same snapshot always yields the same regime.
"""

from signalforge.config import RegimeThresholds
from signalforge.models.signal import MarketRegime
from signalforge.models.snapshot import IndicatorSnapshot

MILD_BONUS = 10.0
CONFIRM_BONUS = 15.0
STRONG_BONUS = 20.0
PANIC_BONUS = 30.0


def _metrics(s: IndicatorSnapshot) -> dict[str, float | str]:
    return {
        "adx": round(s.adx, 2),
        "atr_pct": round(s.atr_pct, 2),
        "bandwidth": round(s.bollinger.bandwidth, 2),
        "rsi": round(s.rsi, 2),
        "rvol": round(s.rvol, 2),
        "ema_alignment": s.ema_alignment,
    }


def _classify(s: IndicatorSnapshot, t: RegimeThresholds) -> tuple[str, str]:
    bandwidth = s.bollinger.bandwidth

    if s.rsi < t.extreme_rsi_low and s.price <= s.bollinger.lower:
        return "EXTREME", f"RSI {s.rsi:.1f} oversold at the lower band"
    if s.rsi > t.extreme_rsi_high and s.price >= s.bollinger.upper:
        return "EXTREME", f"RSI {s.rsi:.1f} overbought at the upper band"

    if s.atr_pct > t.volatile_atr_pct and bandwidth > t.volatile_bandwidth:
        return "VOLATILE", f"ATR {s.atr_pct:.2f}% with bandwidth {bandwidth:.2f}"

    if s.adx > t.trending_adx:
        return "TRENDING", f"ADX {s.adx:.1f} above {t.trending_adx:g}"

    if s.adx < t.ranging_adx and bandwidth < t.ranging_bandwidth:
        return "RANGING", f"ADX {s.adx:.1f} with tight bandwidth {bandwidth:.2f}"

    if t.ranging_adx <= s.adx <= t.trending_adx:
        if bandwidth > t.gray_zone_bandwidth and bandwidth > s.previous_bandwidth:
            return "VOLATILE", f"Gray-zone ADX {s.adx:.1f} with expanding bandwidth {bandwidth:.2f}"
        return "RANGING", f"Gray-zone ADX {s.adx:.1f} without expansion"

    return "RANGING", "No dominant condition"


def _confidence(regime: str, s: IndicatorSnapshot, t: RegimeThresholds) -> float:
    bandwidth = s.bollinger.bandwidth
    confidence = t.base_confidence

    if regime == "TRENDING":
        if s.adx > t.strong_trend_adx:
            confidence += STRONG_BONUS
        elif s.adx > t.trending_adx:
            confidence += MILD_BONUS
        if s.ema_alignment != "CHAOTIC":
            confidence += CONFIRM_BONUS
        if s.rvol > t.trend_rvol:
            confidence += CONFIRM_BONUS
    elif regime == "RANGING":
        if s.adx < t.deep_range_adx:
            confidence += STRONG_BONUS
        elif s.adx < t.ranging_adx:
            confidence += MILD_BONUS
        if bandwidth < t.tight_bandwidth:
            confidence += STRONG_BONUS
        elif bandwidth < t.ranging_bandwidth:
            confidence += MILD_BONUS
    elif regime == "VOLATILE":
        if s.atr_pct > t.high_atr_pct:
            confidence += STRONG_BONUS
        elif s.atr_pct > t.volatile_atr_pct:
            confidence += MILD_BONUS
        if bandwidth > t.wide_bandwidth:
            confidence += STRONG_BONUS
        elif bandwidth > t.volatile_bandwidth:
            confidence += MILD_BONUS
    elif regime == "EXTREME":
        if s.rsi < t.panic_rsi_low or s.rsi > t.panic_rsi_high:
            confidence += PANIC_BONUS
        elif s.rsi < t.extreme_rsi_low or s.rsi > t.extreme_rsi_high:
            confidence += STRONG_BONUS

    return min(confidence, t.max_confidence)


def detect_market_regime(snapshot: IndicatorSnapshot, thresholds: RegimeThresholds) -> MarketRegime:
    """Classify *snapshot* into TRENDING / RANGING / VOLATILE / EXTREME."""
    regime, reasoning = _classify(snapshot, thresholds)
    return MarketRegime(
        regime=regime,
        confidence=_confidence(regime, snapshot, thresholds),
        metrics=_metrics(snapshot),
        reasoning=reasoning,
    )
