"""Confluence scorer and score adjustments.

``score_confluence`` is strictly additive: it starts at 0, adds a configured
weight for each confirming fact (subtracts the signed sentiment penalty) and
clamps to [0, 100]. The remaining functions are the context adjustments the
scanner applies to the combined score, each returning ``(score, notes)``.
"""

from typing import Optional

from signalforge.config import Config, FilterThresholds, ScoringWeights
from signalforge.models.signal import MacroContext, Side
from signalforge.models.snapshot import IndicatorSnapshot

POC_PROXIMITY_PCT = 0.5
Z_EXTREME = 2.0

# Higher-timeframe bias adjustments (non-BTC symbols).
DAILY_BEARISH_LONG = 0.7
DAILY_NEUTRAL_LONG = 0.9
WEEKLY_BULLISH_SHORT_PENALTY = 30
DAILY_BULLISH_SHORT_PENALTY = 20
USDT_DOMINANCE_LONG = 0.75

_SENTIMENT_BIAS = {
    "BULLISH": "BULLISH",
    "EUPHORIA": "BULLISH",
    "BEARISH": "BEARISH",
    "PANIC": "BEARISH",
}


def clamp_score(score: float) -> float:
    return max(0.0, min(100.0, score))


def _direction(side: Side) -> str:
    return "BULLISH" if side == "LONG" else "BEARISH"


def _within_pct(a: float, b: float, pct: float) -> bool:
    return b > 0 and abs(a - b) / b * 100 <= pct


def score_confluence(
    snapshot: IndicatorSnapshot,
    side: Side,
    config: Config,
    sentiment: str = "NEUTRAL",
) -> tuple[float, list[str]]:
    """Additive confluence score for *side* on *snapshot*.

    Returns ``(score, reasons)`` with the score clamped to [0, 100].
    """
    w: ScoringWeights = config.scoring
    periods = config.indicators
    direction = _direction(side)
    price = snapshot.price
    score = 0.0
    reasons: list[str] = []

    def add(points: float, reason: str) -> None:
        nonlocal score
        score += points
        reasons.append(f"{reason} ({points:+g})")

    # ── Trend & oscillators ──
    if snapshot.ema_alignment == direction:
        add(w.ema_alignment, f"EMA ladder {direction.lower()}")
    if side == "LONG" and snapshot.rsi < periods.rsi_oversold:
        add(w.rsi_oversold, f"RSI oversold {snapshot.rsi:.1f}")
    elif side == "SHORT" and snapshot.rsi > periods.rsi_overbought:
        add(w.rsi_overbought, f"RSI overbought {snapshot.rsi:.1f}")
    if snapshot.rsi_divergence is not None and snapshot.rsi_divergence.kind.endswith(direction):
        add(w.rsi_divergence, f"RSI {snapshot.rsi_divergence.kind.lower().replace('_', ' ')} divergence")
    if (side == "LONG" and snapshot.z_score < -Z_EXTREME) or (
        side == "SHORT" and snapshot.z_score > Z_EXTREME
    ):
        add(w.z_score_extreme, f"z-score extreme {snapshot.z_score:.2f}")
    if snapshot.rvol >= w.volume_spike_rvol:
        add(w.volume_spike, f"volume spike {snapshot.rvol:.1f}x")

    # ── Structure ──
    if snapshot.n_pattern.detected and snapshot.n_pattern.direction == direction:
        add(w.n_pattern, "N-pattern break & retest")
    if snapshot.box_theory.active and snapshot.box_theory.signal == direction:
        add(w.box_theory, "box theory 0.5 hold")
    if any(p.signal == direction for p in snapshot.chart_patterns):
        add(w.chart_pattern_breakout, "chart pattern")
    if any(h.direction == direction for h in snapshot.harmonic_patterns):
        add(w.harmonic_pattern, "harmonic PRZ")

    # ── Liquidity & order flow ──
    blocks = snapshot.bullish_order_blocks if side == "LONG" else snapshot.bearish_order_blocks
    if any(not ob.mitigated and _within_pct(price, ob.price, w.poi_proximity_pct) for ob in blocks):
        add(w.order_block_retest, "order block retest")
    gaps = snapshot.bullish_fvgs if side == "LONG" else snapshot.bearish_fvgs
    if any(g.bottom <= price <= g.top for g in gaps):
        add(w.fvg_retest, "fair-value gap retest")
    poc = snapshot.volume_profile.poc
    if poc > 0 and _within_pct(price, poc, POC_PROXIMITY_PCT):
        add(w.poc_retest, "POC retest")
    # Resting liquidity on the far side of the trade acts as a magnet.
    magnets = snapshot.bearish_order_blocks if side == "LONG" else snapshot.bullish_order_blocks
    if any(not ob.mitigated and _within_pct(ob.price, price, w.poi_proximity_pct) for ob in magnets):
        add(w.liquidation_flutter, "liquidity magnet")

    cloud = snapshot.ichimoku
    if cloud is not None:
        if side == "LONG" and price > cloud.cloud_top and cloud.future_cloud == "BULLISH":
            add(w.cloud_breakout, "above bullish cloud")
        elif side == "SHORT" and price < cloud.cloud_bottom and cloud.future_cloud == "BEARISH":
            add(w.cloud_breakout, "below bearish cloud")

    # ── Sentiment ──
    bias = _SENTIMENT_BIAS.get(sentiment)
    if bias == direction:
        add(w.sentiment_alignment, f"sentiment {sentiment.lower()}")
    elif bias is not None:
        add(-w.sentiment_conflict_penalty, f"sentiment {sentiment.lower()} conflicts")

    if score > w.god_mode_threshold:
        reasons.append("extreme confluence")
    return clamp_score(score), reasons


# ── Context adjustments ──────────────────────────────────────────────────


def apply_technical_context(
    score: float,
    snapshot: IndicatorSnapshot,
    strategy_id: Optional[str],
    filters: FilterThresholds,
) -> tuple[float, list[str]]:
    """Halve trend strategies in chop; trim mid-range mean reversion in trends."""
    if snapshot.adx < filters.chop_adx:
        if strategy_id not in filters.range_friendly_strategies:
            multiplier = filters.chop_multiplier
            return score * multiplier, [f"ADX {snapshot.adx:.1f} chop penalty (x{multiplier:g})"]
        return score, []
    if (
        strategy_id == "mean_reversion"
        and filters.mid_range_rsi_low < snapshot.rsi < filters.mid_range_rsi_high
    ):
        multiplier = filters.mid_range_multiplier
        return score * multiplier, [f"mean reversion against trend mid-range (x{multiplier:g})"]
    return score, []


def apply_macro_context(
    score: float, symbol: str, side: Side, macro: MacroContext
) -> tuple[float, list[str]]:
    """Higher-timeframe bias and liquidity-drain adjustments (BTC exempt)."""
    notes: list[str] = []
    is_btc = "BTC" in symbol.upper()

    if not is_btc and side == "LONG":
        if macro.daily_bias == "BEARISH":
            score *= DAILY_BEARISH_LONG
            notes.append(f"daily bias bearish (x{DAILY_BEARISH_LONG:g})")
        elif macro.daily_bias == "NEUTRAL":
            score *= DAILY_NEUTRAL_LONG
            notes.append(f"daily bias ranging (x{DAILY_NEUTRAL_LONG:g})")

    if not is_btc and side == "SHORT":
        if macro.weekly_bias == "BULLISH":
            score -= WEEKLY_BULLISH_SHORT_PENALTY
            notes.append(f"weekly bias bullish (-{WEEKLY_BULLISH_SHORT_PENALTY})")
        elif macro.daily_bias == "BULLISH":
            score -= DAILY_BULLISH_SHORT_PENALTY
            notes.append(f"daily bias bullish (-{DAILY_BULLISH_SHORT_PENALTY})")

    if macro.usdt_dominance_rising and side == "LONG":
        score *= USDT_DOMINANCE_LONG
        notes.append(f"USDT dominance rising (x{USDT_DOMINANCE_LONG:g})")
    return score, notes


def apply_cvd_alignment(
    score: float, snapshot: IndicatorSnapshot, side: Side, weights: ScoringWeights
) -> tuple[float, list[str]]:
    """Reward absorption in the trade's favour, penalise contradicting flow."""
    div = snapshot.cvd_divergence
    if div is None:
        return score, []
    if div.is_bullish == (side == "LONG"):
        return score + weights.cvd_divergence_boost, [
            f"CVD divergence confirms (+{weights.cvd_divergence_boost})"
        ]
    return score - weights.cvd_contradiction_penalty, [
        f"CVD divergence contradicts (-{weights.cvd_contradiction_penalty})"
    ]
