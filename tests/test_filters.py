"""Tests for the veto chain and the whipsaw guard."""

from dataclasses import replace

import pytest

from signalforge.config import Config
from signalforge.models.signal import RiskState, TradeOutcome
from signalforge.models.snapshot import IndicatorSnapshot
from signalforge.pipeline.asset_classifier import required_rvol
from signalforge.pipeline.filters import PASS, FilterInput, check_whipsaw, should_discard

CONFIG = Config()


def _candidate(symbol="BTCUSDT", **overrides) -> FilterInput:
    snap_fields = {
        k: overrides.pop(k) for k in ("rvol", "rsi", "adx") if k in overrides
    }
    snapshot = replace(
        IndicatorSnapshot.placeholder(symbol, "", price=100.0),
        invalidated=False,
        rvol=snap_fields.get("rvol", 1.5),
        rsi=snap_fields.get("rsi", 55.0),
        adx=snap_fields.get("adx", 30.0),
    )
    fields = dict(
        symbol=symbol, side="LONG", score=80.0, strategy_id="ichimoku_dragon",
        regime="TRENDING", snapshot=snapshot, risk=RiskState(),
    )
    fields.update(overrides)
    return FilterInput(**fields)


class TestShouldDiscard:
    def test_clean_candidate_passes(self):
        assert should_discard(_candidate(), CONFIG) == PASS

    def test_low_score_reports_both_numbers(self):
        config = replace(CONFIG, filters=replace(CONFIG.filters, min_score_entry=60.0))
        decision = should_discard(_candidate(score=55.0), config)
        assert decision.discarded
        assert decision.rule == "min_score"
        assert "55" in decision.reason and "60" in decision.reason

    def test_score_checked_before_rvol(self):
        decision = should_discard(_candidate(score=40.0, rvol=0.1), CONFIG)
        assert decision.rule == "min_score"

    def test_manipulation_risk(self):
        risk = RiskState(level="HIGH", risk_type="MANIPULATION", note="spoofing")
        decision = should_discard(_candidate(risk=risk), CONFIG)
        assert decision.rule == "risk_shield"
        assert decision.reason.endswith("spoofing")

    def test_risk_tolerant_strategy_ignores_shield(self):
        risk = RiskState(level="HIGH", risk_type="MANIPULATION")
        assert not should_discard(_candidate(risk=risk, strategy_id="quant_volatility"), CONFIG).discarded

    def test_long_against_bearish_daily_bias(self):
        decision = should_discard(_candidate(daily_bias="BEARISH"), CONFIG)
        assert decision.rule == "htf_bias"
        assert decision.reason == "SWING LONG against BEARISH daily bias"

    def test_scalps_are_exempt_from_daily_bias(self):
        candidate = _candidate(daily_bias="BEARISH", strategy_id="quant_volatility")
        assert not should_discard(candidate, CONFIG).discarded

    def test_thin_market(self):
        decision = should_discard(_candidate(volume_24h=1_000_000.0), CONFIG)
        assert decision.rule == "liquidity"

    def test_critically_low_rvol(self):
        decision = should_discard(_candidate(rvol=0.3), CONFIG)
        assert decision.rule == "rvol"
        assert "LARGE_CAP" in decision.reason

    def test_rvol_floor_scales_with_regime(self):
        assert required_rvol("BTCUSDT", "VOLATILE", CONFIG.assets) == pytest.approx(1.2)
        assert required_rvol("BTCUSDT", "RANGING", CONFIG.assets) == pytest.approx(0.8)
        assert should_discard(_candidate(rvol=0.55, regime="VOLATILE"), CONFIG).rule == "rvol"
        assert should_discard(_candidate(rvol=0.55, regime="RANGING"), CONFIG).rule != "rvol"

    def test_meme_needs_more_volume(self):
        candidate = _candidate("PEPEUSDT", strategy_id="meme_hunter", rvol=0.8)
        assert should_discard(candidate, CONFIG).rule == "rvol"

    def test_exhausted_rsi(self):
        assert should_discard(_candidate(rsi=85.0), CONFIG).rule == "rsi_exhaustion"
        assert should_discard(_candidate(side="SHORT", rsi=15.0), CONFIG).rule == "rsi_exhaustion"

    def test_adx_floor(self):
        assert should_discard(_candidate(adx=15.0), CONFIG).rule == "adx"

    def test_commodity_adx_floor_is_lower(self):
        assert not should_discard(_candidate("XAUUSDT", adx=16.0), CONFIG).discarded

    def test_range_strategy_ignores_adx(self):
        assert not should_discard(_candidate(adx=10.0, strategy_id="mean_reversion"), CONFIG).discarded

    def test_meme_strategy_on_major(self):
        decision = should_discard(_candidate(strategy_id="meme_hunter"), CONFIG)
        assert decision.rule == "compatibility"

    def test_swing_strategy_on_meme(self):
        decision = should_discard(_candidate("PEPEUSDT"), CONFIG)
        assert decision.rule == "compatibility"

    def test_blacklisted_stablecoin(self):
        decision = should_discard(_candidate("USDC/USDT"), CONFIG)
        assert decision.rule == "blacklist"


class TestWhipsaw:
    LOSS_SHORT = (TradeOutcome(side="SHORT", status="LOSS"),)

    def test_no_history(self):
        assert check_whipsaw("LONG", 90.0, 1.0, (), "TRENDING", {}, CONFIG) == PASS

    def test_same_side_loss_is_ignored(self):
        history = (TradeOutcome(side="LONG", status="LOSS"),)
        assert check_whipsaw("LONG", 90.0, 1.0, history, "TRENDING", {}, CONFIG) == PASS

    def test_opposite_win_is_ignored(self):
        history = (TradeOutcome(side="SHORT", status="WIN"),)
        assert check_whipsaw("LONG", 90.0, 1.0, history, "TRENDING", {}, CONFIG) == PASS

    def test_flip_without_volume_climax(self):
        decision = check_whipsaw("LONG", 100.0, 1.5, self.LOSS_SHORT, "TRENDING", {}, CONFIG)
        assert decision.discarded
        assert "volume climax" in decision.reason

    def test_flip_below_high_conviction(self):
        decision = check_whipsaw("LONG", 100.0, 2.5, self.LOSS_SHORT, "TRENDING", {}, CONFIG)
        assert decision.discarded
        assert decision.penalty == 25.0

    def test_flip_with_conviction_carries_penalty(self):
        decision = check_whipsaw("LONG", 115.0, 2.5, self.LOSS_SHORT, "TRENDING", {}, CONFIG)
        assert not decision.discarded
        assert decision.penalty == 25.0

    def test_poor_regime_accuracy_raises_penalty(self):
        decision = check_whipsaw(
            "LONG", 115.0, 2.5, self.LOSS_SHORT, "TRENDING", {"TRENDING": 0.4}, CONFIG
        )
        assert decision.penalty == pytest.approx(37.5)
        assert decision.discarded

    def test_only_latest_trade_counts(self):
        history = (TradeOutcome(side="SHORT", status="LOSS"), TradeOutcome(side="LONG", status="WIN"))
        assert check_whipsaw("LONG", 90.0, 1.0, history, "TRENDING", {}, CONFIG) == PASS
