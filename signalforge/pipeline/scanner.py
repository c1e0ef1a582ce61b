"""Scanner — runs the full pipeline per symbol and fans out over a universe.

Per symbol:
    snapshot → integrity veto → regime → strategy runner → NEUTRAL veto →
    confluence score + strategy score + boost → technical context → macro →
    CVD alignment → kill zone → RVOL adjustment → clamp → entry zone →
    POIs → staged-entry plan → FOMO freshness → filter chain → whipsaw.

``evaluate_symbol`` never raises: every rejection, including unexpected
errors, comes back as a ``Discard`` with a reason.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence, Union

from signalforge.config import Config
from signalforge.models.candle import Candle
from signalforge.models.signal import Discard, ScanContext, ScanResult, Signal
from signalforge.pipeline.aggregator import build_snapshot
from signalforge.pipeline.asset_classifier import rvol_score_adjustment
from signalforge.pipeline.confluence import calculate_pois
from signalforge.pipeline.dca import build_dca_plan
from signalforge.pipeline.filters import FilterInput, check_whipsaw, should_discard
from signalforge.pipeline.regime import detect_market_regime
from signalforge.pipeline.runner import run_strategies
from signalforge.pipeline.scorer import (
    apply_cvd_alignment,
    apply_macro_context,
    apply_technical_context,
    clamp_score,
    score_confluence,
)
from signalforge.pipeline.selector import select_strategies
from signalforge.pipeline.session import MarketSession
from signalforge.strategies.base import StrategyContext
from signalforge.strategies.registry import strategy_style

logger = logging.getLogger("signalforge.scanner")

ENTRY_ZONE_PCT = 0.005

Outcome = Union[Signal, Discard]


def _evaluation_time(candles: Sequence[Candle], context: ScanContext) -> datetime:
    if context.now is not None:
        return context.now
    return datetime.fromtimestamp(candles[-1].timestamp / 1000, tz=timezone.utc)


def evaluate_symbol(
    symbol: str,
    candles: Sequence[Candle],
    config: Config,
    context: Optional[ScanContext] = None,
) -> Outcome:
    """Evaluate one symbol; returns a ``Signal`` or a ``Discard``."""
    context = context or ScanContext()
    try:
        return _evaluate(symbol, candles, config, context)
    except Exception as exc:
        logger.warning("Evaluation of %s failed: %s", symbol, exc)
        return Discard(symbol=symbol, reason=f"EVALUATION_ERROR: {exc}", stage="error")


def _evaluate(
    symbol: str, candles: Sequence[Candle], config: Config, context: ScanContext
) -> Outcome:
    snapshot = build_snapshot(symbol, candles, config)
    if snapshot.invalidated:
        logger.info("%s discarded: %s", symbol, snapshot.invalidation_reason)
        return Discard(symbol, snapshot.invalidation_reason or "INVALIDATED", "integrity")

    size_multiplier = config.risk.size_multiplier(context.drawdown)
    if size_multiplier <= 0:
        return Discard(
            symbol, f"Drawdown {context.drawdown:.1%} reached the daily limit", "risk"
        )

    regime = detect_market_regime(snapshot, config.regime)
    selection = select_strategies(regime, config.strategy_matrix)
    now = _evaluation_time(candles, context)
    outcome = run_strategies(
        StrategyContext(snapshot, regime, candles, config, now=now), selection
    )

    primary = outcome.primary
    if primary is None or primary.side == "NEUTRAL":
        reason = f"No strategy fired in {regime.regime} regime"
        if outcome.override_reason:
            reason += f" ({outcome.override_reason})"
        return Discard(symbol, reason, "strategy")

    side = primary.side
    base_score, rationale = score_confluence(
        snapshot, side, config, context.macro.sentiment
    )
    score = base_score + primary.score + outcome.score_boost
    notes: list[str] = []

    score, extra = apply_technical_context(score, snapshot, primary.strategy_id, config.filters)
    notes += extra
    score, extra = apply_macro_context(score, symbol, side, context.macro)
    notes += extra
    score, extra = apply_cvd_alignment(score, snapshot, side, config.scoring)
    notes += extra

    kill_zone = MarketSession().kill_zone(now)
    if kill_zone is not None:
        score -= config.scoring.kill_zone_penalty
        notes.append(f"{kill_zone} kill zone (-{config.scoring.kill_zone_penalty})")

    adjustment = rvol_score_adjustment(symbol, snapshot.rvol, regime.regime, config.assets)
    if adjustment:
        score += adjustment
        notes.append(f"RVOL {snapshot.rvol:.2f} ({adjustment:+g})")
    score = clamp_score(score)

    price = snapshot.price
    entry_zone = (price * (1 - ENTRY_ZONE_PCT), price * (1 + ENTRY_ZONE_PCT))
    pois = calculate_pois(snapshot)
    plan = build_dca_plan(price, pois, snapshot.atr, side, regime.regime, snapshot.fibonacci)
    if plan.proximity_penalty:
        score = clamp_score(score - plan.proximity_penalty)
        notes.append(f"entries far from price (-{plan.proximity_penalty:.1f})")

    nearest_gap = abs(plan.entries[0].distance_pct)
    if not primary.fresh and nearest_gap > config.filters.fomo_max_distance_pct:
        return Discard(
            symbol,
            f"FOMO: nearest entry {nearest_gap:.2f}% away on a stale setup",
            "fomo",
            score,
        )

    volume_24h = context.volumes_24h.get(symbol)
    decision = should_discard(
        FilterInput(
            symbol=symbol,
            side=side,
            score=score,
            strategy_id=primary.strategy_id,
            regime=regime.regime,
            snapshot=snapshot,
            risk=context.risk,
            daily_bias=context.macro.daily_bias,
            volume_24h=volume_24h,
        ),
        config,
    )
    if decision.discarded:
        logger.info("%s discarded by %s: %s", symbol, decision.rule, decision.reason)
        return Discard(symbol, decision.reason or decision.rule or "filtered", "filter", score)

    whipsaw = check_whipsaw(
        side,
        score,
        snapshot.rvol,
        context.history.get(symbol, ()),
        regime.regime,
        context.regime_accuracy,
        config,
    )
    if whipsaw.discarded:
        logger.info("%s discarded: %s", symbol, whipsaw.reason)
        return Discard(symbol, whipsaw.reason or "whipsaw", "whipsaw", score)
    if whipsaw.penalty:
        score = clamp_score(score - whipsaw.penalty)
        notes.append(f"direction flip (-{whipsaw.penalty:g})")

    metrics: dict[str, float | str] = {
        "adx": snapshot.adx,
        "rsi": snapshot.rsi,
        "rvol": snapshot.rvol,
        "atr": snapshot.atr,
        "regime_confidence": regime.confidence,
        "confluence_score": base_score,
        "strategy_score": primary.score,
        "strategy_boost": outcome.score_boost,
        "size_multiplier": size_multiplier,
    }
    if volume_24h is not None:
        metrics["volume_24h"] = volume_24h

    signal = Signal(
        symbol=symbol,
        side=side,
        strategy_id=primary.strategy_id,
        style=strategy_style(primary.strategy_id),
        score=score,
        entry_zone=entry_zone,
        dca_plan=plan,
        stop_loss=plan.stop_loss,
        take_profits=tuple(tp.price for tp in plan.take_profits),
        rationale=(primary.rationale, *outcome.details, *rationale, *notes),
        regime=regime.regime,
        metrics=metrics,
    )
    logger.info("%s %s signal from %s, score %.1f", symbol, side, primary.strategy_id, score)
    return signal


async def scan(
    universe: Mapping[str, Sequence[Candle]],
    config: Config,
    context: Optional[ScanContext] = None,
) -> ScanResult:
    """Evaluate every symbol concurrently and rank the accepted signals.

    At most ``config.max_workers`` evaluations run at once. Signals are
    sorted by score (highest first, ties broken by symbol).
    """
    context = context or ScanContext()
    semaphore = asyncio.Semaphore(config.max_workers)

    async def _bounded(symbol: str, candles: Sequence[Candle]) -> Outcome:
        async with semaphore:
            return await asyncio.to_thread(evaluate_symbol, symbol, candles, config, context)

    outcomes = await asyncio.gather(
        *(_bounded(symbol, candles) for symbol, candles in universe.items())
    )

    signals = sorted(
        (o for o in outcomes if isinstance(o, Signal)),
        key=lambda s: (-s.score, s.symbol),
    )
    discards = sorted(
        (o for o in outcomes if isinstance(o, Discard)), key=lambda d: d.symbol
    )
    logger.info(
        "Scan complete: %d symbol(s), %d signal(s), %d discard(s)",
        len(universe), len(signals), len(discards),
    )
    return ScanResult(signals=tuple(signals), discards=tuple(discards))
