"""Strategy runner — evaluates the regime-selected adapters.

Flow:
    1. Session override: asset/session-gated; when it fires it replaces the
       regime-selected set entirely, when neutral its reason is kept.
    2. Every active strategy runs; failures are logged and skipped.
    3. The highest weight-adjusted score becomes the primary result.
    4. Each strategy whose weighted score clears the noise floor adds its
       raw score to the boost.
    5. The freeze protocol runs regardless and adds its own boost; it
       supplies the primary result when nothing else fired.
"""

import logging
from dataclasses import replace
from typing import Optional

from signalforge.models.signal import RunnerOutcome, StrategyResult, StrategySelection
from signalforge.strategies.base import StrategyContext
from signalforge.strategies.registry import get_strategy

logger = logging.getLogger("signalforge.runner")

OVERRIDE_ID = "session_override"
FREEZE_ID = "freeze_protocol"
FREEZE_PRIMARY_SCORE = 95.0
MAX_BOOST = 100.0


def _safe_evaluate(strategy_id: str, context: StrategyContext) -> Optional[StrategyResult]:
    try:
        return get_strategy(strategy_id).evaluate(context)
    except Exception as exc:
        logger.warning("Strategy %s failed on %s: %s", strategy_id, context.symbol, exc)
        return None


def run_strategies(context: StrategyContext, selection: StrategySelection) -> RunnerOutcome:
    """Evaluate *selection* against *context* and pick the primary result."""
    scoring = context.config.scoring
    details: list[str] = []
    boost = 0.0
    primary: Optional[StrategyResult] = None
    primary_weight = 0.0
    best_weighted = float("-inf")

    override = _safe_evaluate(OVERRIDE_ID, context)
    override_reason: Optional[str] = None
    if override is not None and override.side != "NEUTRAL":
        primary, primary_weight = override, 1.0
        boost += override.score
        details.append(f"{OVERRIDE_ID}: {override.side} ({override.score:g}) - {override.rationale}")
        active: tuple[tuple[str, float], ...] = ()
        logger.info("%s: session override pre-empts regime strategies", context.symbol)
    else:
        if override is not None:
            override_reason = override.rationale
        active = selection.active

    for strategy_id, weight in active:
        result = _safe_evaluate(strategy_id, context)
        if result is None or result.side == "NEUTRAL":
            continue
        weighted = result.score * weight
        if weighted > best_weighted:
            primary, primary_weight, best_weighted = result, weight, weighted
        if weighted > scoring.strategy_noise_floor:
            boost += result.score
            details.append(f"{strategy_id}: {result.side} ({result.score:g}) - {result.rationale}")

    freeze = _safe_evaluate(FREEZE_ID, context)
    if freeze is not None and freeze.side != "NEUTRAL":
        boost += scoring.freeze_protocol_boost
        details.append(f"{FREEZE_ID}: active (+{scoring.freeze_protocol_boost})")
        if primary is None:
            primary = replace(freeze, score=FREEZE_PRIMARY_SCORE)
            primary_weight = 1.0

    return RunnerOutcome(
        primary=primary,
        primary_weight=primary_weight,
        score_boost=min(MAX_BOOST, boost),
        details=tuple(details),
        override_reason=override_reason,
    )
