"""Filter engine — ordered veto chain and whipsaw protection.

The chain short-circuits: the first failing rule wins and its reason is the
one reported. Order matters (a low score is reported before a thin tape),
so the rules live in a tuple rather than being scattered through the
scanner.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence

from signalforge.config import Config
from signalforge.models.signal import FilterDecision, RiskState, Side, TradeOutcome
from signalforge.models.snapshot import IndicatorSnapshot
from signalforge.pipeline.asset_classifier import (
    classify,
    is_commodity,
    is_meme,
    required_rvol,
)
from signalforge.strategies.registry import strategy_style

logger = logging.getLogger("signalforge.filters")

PASS = FilterDecision(discarded=False)


@dataclass(frozen=True)
class FilterInput:
    """One candidate as seen by the veto chain."""

    symbol: str
    side: Side
    score: float
    strategy_id: str
    regime: str
    snapshot: IndicatorSnapshot
    risk: RiskState
    daily_bias: str = "NEUTRAL"
    volume_24h: Optional[float] = None


def _fail(rule: str, reason: str) -> FilterDecision:
    return FilterDecision(discarded=True, reason=reason, rule=rule)


# ── Rules ────────────────────────────────────────────────────────────────


def _risk_shield(c: FilterInput, config: Config) -> Optional[FilterDecision]:
    if c.strategy_id in config.filters.risk_tolerant_strategies:
        return None
    if c.risk.level == "HIGH" and c.risk.risk_type == "MANIPULATION":
        note = f": {c.risk.note}" if c.risk.note else ""
        return _fail("risk_shield", f"Risk shield: manipulation risk HIGH{note}")
    return None


def _htf_bias(c: FilterInput, config: Config) -> Optional[FilterDecision]:
    style = strategy_style(c.strategy_id)
    if style in config.filters.htf_exempt_styles:
        return None
    if c.side == "LONG" and c.daily_bias == "BEARISH":
        return _fail("htf_bias", f"{style} LONG against BEARISH daily bias")
    if c.side == "SHORT" and c.daily_bias == "BULLISH":
        return _fail("htf_bias", f"{style} SHORT against BULLISH daily bias")
    return None


def _min_score(c: FilterInput, config: Config) -> Optional[FilterDecision]:
    threshold = config.filters.min_score_entry
    if c.score < threshold:
        return _fail("min_score", f"Score {c.score:g} below minimum threshold {threshold:g}")
    return None


def _liquidity(c: FilterInput, config: Config) -> Optional[FilterDecision]:
    floor = config.filters.min_volume_24h
    if c.volume_24h is not None and c.volume_24h < floor:
        return _fail(
            "liquidity",
            f"24h volume {c.volume_24h:,.0f} below liquidity floor {floor:,.0f}",
        )
    return None


def _rvol_floor(c: FilterInput, config: Config) -> Optional[FilterDecision]:
    critical = required_rvol(c.symbol, c.regime, config.assets) * config.filters.critical_rvol_ratio
    if c.snapshot.rvol < critical:
        asset_class = classify(c.symbol, config.assets).asset_class
        return _fail(
            "rvol",
            f"RVOL {c.snapshot.rvol:.2f} critically low for {asset_class} "
            f"in {c.regime} (need {critical:.2f})",
        )
    return None


def _rsi_exhaustion(c: FilterInput, config: Config) -> Optional[FilterDecision]:
    rsi = c.snapshot.rsi
    if c.side == "LONG" and rsi > config.filters.rsi_exhaustion_long:
        return _fail("rsi_exhaustion", f"RSI {rsi:.1f} exhausted for LONG")
    if c.side == "SHORT" and rsi < config.filters.rsi_exhaustion_short:
        return _fail("rsi_exhaustion", f"RSI {rsi:.1f} exhausted for SHORT")
    return None


def _adx_floor(c: FilterInput, config: Config) -> Optional[FilterDecision]:
    if c.strategy_id in config.filters.range_friendly_strategies:
        return None
    floor = (
        config.filters.min_adx_commodity
        if is_commodity(c.symbol, config.assets)
        else config.filters.min_adx
    )
    if c.snapshot.adx < floor:
        return _fail("adx", f"ADX {c.snapshot.adx:.1f} below trend floor {floor:g}")
    return None


def _compatibility(c: FilterInput, config: Config) -> Optional[FilterDecision]:
    style = strategy_style(c.strategy_id)
    meme = is_meme(c.symbol, config.assets)
    if style == "MEME_SCALP" and not meme:
        return _fail("compatibility", f"{c.strategy_id} only trades meme assets")
    if style == "SWING" and meme:
        return _fail("compatibility", f"{c.strategy_id} does not swing meme assets")
    return None


def _blacklist(c: FilterInput, config: Config) -> Optional[FilterDecision]:
    if c.symbol.upper().replace("/", "") in config.assets.ignored_symbols:
        return _fail("blacklist", f"{c.symbol} is blacklisted")
    return None


Rule = Callable[[FilterInput, Config], Optional[FilterDecision]]

RULES: tuple[tuple[str, Rule], ...] = (
    ("risk_shield", _risk_shield),
    ("htf_bias", _htf_bias),
    ("min_score", _min_score),
    ("liquidity", _liquidity),
    ("rvol", _rvol_floor),
    ("rsi_exhaustion", _rsi_exhaustion),
    ("adx", _adx_floor),
    ("compatibility", _compatibility),
    ("blacklist", _blacklist),
)


def should_discard(candidate: FilterInput, config: Config) -> FilterDecision:
    """Run the veto chain; return the first failure or a pass."""
    for name, rule in RULES:
        decision = rule(candidate, config)
        if decision is not None:
            logger.debug("%s vetoed by %s: %s", candidate.symbol, name, decision.reason)
            return decision
    return PASS


# ── Whipsaw ──────────────────────────────────────────────────────────────


def check_whipsaw(
    side: Side,
    score: float,
    rvol: float,
    history: Sequence[TradeOutcome],
    regime: str,
    regime_accuracy: Mapping[str, float],
    config: Config,
) -> FilterDecision:
    """Guard against flipping direction straight after a losing trade.

    Only applies when the most recent trade was a LOSS on the opposite side.
    The flip then needs a volume climax and a score that still clears the
    high-conviction bar after the flip penalty.
    """
    if not history or side == "NEUTRAL":
        return PASS
    last = history[-1]
    if last.status != "LOSS" or last.side == side or last.side == "NEUTRAL":
        return PASS

    risk = config.risk
    penalty = risk.direction_flip_penalty
    accuracy = regime_accuracy.get(regime)
    if accuracy is not None and accuracy < risk.low_accuracy_threshold:
        penalty *= risk.low_accuracy_multiplier

    if rvol < risk.volume_climax_rvol:
        return FilterDecision(
            discarded=True,
            reason=(
                f"Whipsaw: flip to {side} after {last.side} loss requires volume climax "
                f"(RVOL {rvol:.2f} < {risk.volume_climax_rvol:g})"
            ),
            rule="whipsaw",
            penalty=penalty,
        )
    if score - penalty < risk.high_conviction_threshold:
        return FilterDecision(
            discarded=True,
            reason=(
                f"Whipsaw: score {score:g} - penalty {penalty:g} below "
                f"high conviction {risk.high_conviction_threshold:g}"
            ),
            rule="whipsaw",
            penalty=penalty,
        )
    return FilterDecision(discarded=False, penalty=penalty)
