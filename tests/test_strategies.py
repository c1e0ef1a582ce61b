"""Deterministic tests for the strategy adapters, registry and runner.

Snapshots are built by overriding a neutral placeholder so each test states
exactly the conditions its adapter reads.
"""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from signalforge.config import Config
from signalforge.models.candle import Candle
from signalforge.models.signal import MarketRegime, StrategyResult, StrategySelection
from signalforge.models.snapshot import (
    BollingerBands,
    BoxTheory,
    Divergence,
    IchimokuCloud,
    IndicatorSnapshot,
    OrderBlock,
)
from signalforge.pipeline import runner
from signalforge.pipeline.runner import run_strategies
from signalforge.strategies.base import StrategyContext, StrategyProtocol
from signalforge.strategies import ichimoku as ichimoku_module
from signalforge.strategies.breakout import BreakoutStrategy
from signalforge.strategies.freeze import FreezeStrategy
from signalforge.strategies.ichimoku import IchimokuStrategy
from signalforge.strategies.meme import MemeStrategy
from signalforge.strategies.pinball import PinballStrategy
from signalforge.strategies.registry import STRATEGY_REGISTRY, get_strategy, strategy_style
from signalforge.strategies.scalp import ScalpStrategy
from signalforge.strategies.session_override import SessionOverrideStrategy
from signalforge.strategies.swing import MeanReversionStrategy, SmcLiquidityStrategy

REGIME = MarketRegime(regime="TRENDING", confidence=80.0, metrics={}, reasoning="test")


def _make_candle(i: int, o: float, h: float, l: float, c: float, vol: float = 100.0) -> Candle:
    return Candle(timestamp=1_700_000_000_000 + i * 3_600_000, open=o, high=h, low=l, close=c, volume=vol)


def _snapshot(symbol: str = "BTCUSDT", **overrides) -> IndicatorSnapshot:
    base = replace(
        IndicatorSnapshot.placeholder(symbol, "", price=100.0),
        invalidated=False,
        invalidation_reason=None,
        bollinger=BollingerBands(upper=102.0, middle=100.0, lower=98.0, bandwidth=4.0, std=1.0),
        previous_bandwidth=4.0,
        atr=1.0,
        atr_pct=1.0,
    )
    return replace(base, **overrides)


def _context(snapshot, candles=(), now=None) -> StrategyContext:
    return StrategyContext(snapshot, REGIME, list(candles), Config(), now=now)


def _block(price: float, direction: str = "BULLISH") -> OrderBlock:
    return OrderBlock(
        price=price, high=price + 0.5, low=price - 0.5, strength=8.0,
        direction=direction, timestamp=0, mitigated=False,
    )


# ── Ichimoku ─────────────────────────────────────────────────────────────


def _cloud(tenkan=105.0, kijun=103.0, direction="BULLISH", **overrides) -> IchimokuCloud:
    fields = dict(
        tenkan=tenkan, kijun=kijun, senkou_a=100.0, senkou_b=98.0, chikou=110.0,
        chikou_free=True, chikou_direction=direction, future_cloud=direction,
        cloud_thickness=0.02, tk_separation=0.019,
    )
    fields.update(overrides)
    return IchimokuCloud(**fields)


class TestIchimoku:
    def test_strong_cross_above_cloud(self):
        snap = _snapshot(price=110.0, ichimoku=_cloud())
        result = IchimokuStrategy().evaluate(_context(snap))
        assert result.side == "LONG"
        assert result.score == 100.0
        assert result.stop_loss == 100.0
        assert "chikou confirms" in result.rationale

    def test_counter_trend_cross_is_too_weak(self):
        snap = _snapshot(price=90.0, ichimoku=_cloud(direction="BEARISH"))
        assert IchimokuStrategy().evaluate(_context(snap)) is None

    def test_kumo_breakout_without_cross(self):
        snap = _snapshot(price=110.0, ichimoku=_cloud(tenkan=103.01))
        result = IchimokuStrategy().evaluate(_context(snap))
        assert result.score == 70
        assert result.trigger == "Price Breakout > Kumo Cloud"
        assert result.stop_loss == 100.0

    def test_missing_cloud(self):
        assert IchimokuStrategy().evaluate(_context(_snapshot(ichimoku=None))) is None

    def _last_bar(self, monkeypatch, cloud):
        monkeypatch.setattr(ichimoku_module, "calculate_ichimoku", lambda highs, lows, closes: cloud)
        candles = [_make_candle(0, 109.0, 111.0, 108.0, 110.0), _make_candle(1, 110.0, 111.0, 109.0, 110.0)]
        snap = _snapshot(price=110.0, ichimoku=_cloud())
        return IchimokuStrategy().evaluate(_context(snap, candles))

    def test_cross_already_standing_is_stale(self, monkeypatch):
        result = self._last_bar(monkeypatch, _cloud())
        assert result.side == "LONG"
        assert result.fresh is False

    def test_new_cross_is_fresh(self, monkeypatch):
        result = self._last_bar(monkeypatch, _cloud(tenkan=103.0, senkou_a=120.0, senkou_b=115.0))
        assert result.fresh is True

    def test_opposite_side_last_bar_is_fresh(self, monkeypatch):
        flipped = _cloud(tenkan=101.0, kijun=103.0, senkou_a=118.0, senkou_b=116.0, direction="BEARISH")
        result = self._last_bar(monkeypatch, flipped)
        assert result.fresh is True

    def test_short_history_is_fresh(self):
        candles = [_make_candle(i, 109.0, 111.0, 108.0, 110.0) for i in range(10)]
        snap = _snapshot(price=110.0, ichimoku=_cloud())
        assert IchimokuStrategy().evaluate(_context(snap, candles)).fresh is True


# ── Volatility squeeze ───────────────────────────────────────────────────


class TestScalp:
    def _flat(self, n):
        return [_make_candle(i, 100, 100.5, 99.5, 100) for i in range(n)]

    def _snap(self, bandwidth=0.0, **overrides):
        defaults = dict(
            price=101.0, vwap=100.0, sma20=100.0, rsi=60.0, cvd_slope=0.0,
            bollinger=BollingerBands(100.0, 100.0, 100.0, bandwidth, 0.0),
        )
        defaults.update(overrides)
        return _snapshot(**defaults)

    def test_squeeze_with_bullish_agreement(self):
        result = ScalpStrategy().evaluate(_context(self._snap(), self._flat(80)))
        assert result.side == "LONG"
        assert result.score == 80.0

    def test_wide_bands_are_not_a_squeeze(self):
        assert ScalpStrategy().evaluate(_context(self._snap(bandwidth=4.0), self._flat(80))) is None

    def test_selling_flow_vetoes_long(self):
        snap = self._snap(cvd_slope=-10.0)
        assert ScalpStrategy().evaluate(_context(snap, self._flat(80))) is None

    def test_short_history_has_no_floor(self):
        assert ScalpStrategy().evaluate(_context(self._snap(), self._flat(30))) is None


# ── Breakout ─────────────────────────────────────────────────────────────


class TestBreakout:
    def _candles(self):
        candles = [_make_candle(i, 100, 105, 95, 100) for i in range(25)]
        candles.append(_make_candle(25, 104, 110.5, 104, 110))
        return candles

    def _snap(self, cvd_slope: float):
        return _snapshot(
            price=110.0,
            rvol=2.0,
            bollinger=BollingerBands(112, 105, 98, 6.0, 3.0),
            previous_bandwidth=4.0,
            cvd_slope=cvd_slope,
        )

    def test_cvd_against_breakout_vetoes(self):
        assert BreakoutStrategy().evaluate(_context(self._snap(-500.0), self._candles())) is None

    def test_confirmed_breakout(self):
        result = BreakoutStrategy().evaluate(_context(self._snap(500.0), self._candles()))
        assert result is not None
        assert result.side == "LONG"
        assert result.score == pytest.approx(85.0)
        assert result.stop_loss == 95

    def test_low_rvol_vetoes(self):
        snap = replace(self._snap(500.0), rvol=1.2)
        assert BreakoutStrategy().evaluate(_context(snap, self._candles())) is None

    def test_contracting_bands_veto(self):
        snap = replace(self._snap(500.0), previous_bandwidth=8.0)
        assert BreakoutStrategy().evaluate(_context(snap, self._candles())) is None


# ── Swing failure ────────────────────────────────────────────────────────


class TestSwingFailure:
    def _candles(self):
        candles = [_make_candle(i, 100, 101, 99, 100) for i in range(21)]
        candles.append(_make_candle(21, 99.2, 100, 98, 99.5, vol=300))
        return candles

    def _divergence(self, source: str) -> Divergence:
        return Divergence("REGULAR_BULLISH", source, 98.0, 99.0, 30.0, 25.0)

    def test_sweep_with_absorption_and_order_block(self):
        snap = _snapshot(
            price=99.5,
            bullish_order_blocks=(_block(99.6),),
            cvd_divergence=self._divergence("CVD"),
        )
        result = SmcLiquidityStrategy().evaluate(_context(snap, self._candles()))
        assert result is not None
        assert result.side == "LONG"
        assert result.score == 100.0
        assert result.stop_loss == 98
        assert "golden pocket" in result.rationale

    def test_order_block_with_golden_pocket_is_not_enough(self):
        snap = _snapshot(price=99.5, bullish_order_blocks=(_block(99.6),))
        assert SmcLiquidityStrategy().evaluate(_context(snap, self._candles())) is None

    def test_golden_pocket_and_rsi_divergence_alone_are_dropped(self):
        snap = _snapshot(price=99.5, rsi_divergence=self._divergence("RSI"))
        assert SmcLiquidityStrategy().evaluate(_context(snap, self._candles())) is None
        assert MeanReversionStrategy().evaluate(_context(snap, self._candles())) is None

    def test_mean_reversion_needs_absorption_and_rsi_divergence(self):
        snap = _snapshot(
            price=99.5,
            cvd_divergence=self._divergence("CVD"),
            rsi_divergence=self._divergence("RSI"),
        )
        result = MeanReversionStrategy().evaluate(_context(snap, self._candles()))
        assert result.side == "LONG"
        assert "RSI divergence" in result.rationale
        assert "order-block retest" not in result.rationale

    def test_mean_reversion_ignores_order_blocks(self):
        snap = _snapshot(
            price=99.5,
            bullish_order_blocks=(_block(99.6),),
            cvd_divergence=self._divergence("CVD"),
        )
        assert MeanReversionStrategy().evaluate(_context(snap, self._candles())) is None

    def test_no_sweep(self):
        candles = [_make_candle(i, 100, 101, 99, 100) for i in range(22)]
        assert SmcLiquidityStrategy().evaluate(_context(_snapshot(), candles)) is None


# ── Pinball / meme / freeze ──────────────────────────────────────────────


class TestPinball:
    def _snap(self, **overrides):
        defaults = dict(
            price=101.0, ema50=105.0, ema200=100.0, ema200_slope=0.1, rsi=40.0,
            bullish_order_blocks=(_block(100.5),),
        )
        defaults.update(overrides)
        return _snapshot(**defaults)

    def test_bounce_on_rising_ema200(self):
        result = PinballStrategy().evaluate(_context(self._snap()))
        assert result.side == "LONG"
        assert result.score == 95.0

    def test_requires_order_block(self):
        assert PinballStrategy().evaluate(_context(self._snap(bullish_order_blocks=()))) is None

    def test_too_far_above_ema200(self):
        assert PinballStrategy().evaluate(_context(self._snap(price=110.0))) is None


class TestMeme:
    def test_volume_pump(self):
        snap = _snapshot("PEPEUSDT", price=110.0, ema20=100.0, vwap=100.0, rvol=3.0, rsi=60.0)
        result = MemeStrategy().evaluate(_context(snap))
        assert result.side == "LONG"
        assert result.score == pytest.approx(89.0)

    def test_quiet_tape(self):
        assert MemeStrategy().evaluate(_context(_snapshot("PEPEUSDT"))) is None


class TestFreeze:
    def _candles(self):
        closes = [100.0]
        for i in range(1, 40):
            closes.append(closes[-1] + (2 if i % 2 else -1))
        return [_make_candle(i, c, c + 0.5, c - 0.5, c) for i, c in enumerate(closes)]

    def test_box_retest_in_uptrend(self):
        candles = self._candles()
        price = candles[-1].close
        snap = _snapshot(
            price=price,
            box_theory=BoxTheory(active=True, high=price + 5, low=price - 5, midpoint=price, signal="BULLISH"),
        )
        result = FreezeStrategy().evaluate(_context(snap, candles))
        assert result is not None
        assert result.side == "LONG"
        assert result.score == 50.0
        assert result.stop_loss == price - 5
        assert result.take_profits == (price + 10,)

    def test_no_trigger(self):
        assert FreezeStrategy().evaluate(_context(_snapshot(), self._candles())) is None


# ── Session override ─────────────────────────────────────────────────────


class TestSessionOverride:
    def _snap(self, symbol="XAUUSDT"):
        return _snapshot(symbol, ema200=90.0, rsi_tail=(55.0,) * 10)

    def test_golden_zone_in_session(self):
        now = datetime(2025, 3, 4, 12, 0, tzinfo=timezone.utc)
        result = SessionOverrideStrategy().evaluate(_context(self._snap(), now=now))
        assert result.side == "LONG"
        assert result.score == 80.0
        assert result.stop_loss == pytest.approx(98.5)
        assert result.take_profits[0] == pytest.approx(103.0)

    def test_off_session_stays_neutral(self):
        now = datetime(2025, 3, 4, 2, 0, tzinfo=timezone.utc)
        result = SessionOverrideStrategy().evaluate(_context(self._snap(), now=now))
        assert result.side == "NEUTRAL"
        assert "score 70" in result.rationale

    def test_non_metal_is_neutral(self):
        result = SessionOverrideStrategy().evaluate(_context(self._snap("BTCUSDT")))
        assert result.side == "NEUTRAL"
        assert result.rationale == "Non-precious-metal asset"


# ── Registry ─────────────────────────────────────────────────────────────


class TestRegistry:
    def test_every_strategy_satisfies_protocol(self):
        for name in STRATEGY_REGISTRY:
            strategy = get_strategy(name)
            assert isinstance(strategy, StrategyProtocol)
            assert strategy.strategy_id == name

    def test_unknown_strategy(self):
        with pytest.raises(KeyError, match="Unknown strategy 'nope'. Available: ichimoku_dragon"):
            get_strategy("nope")

    def test_styles(self):
        assert strategy_style("quant_volatility") == "SCALP"
        assert strategy_style("meme_hunter") == "MEME_SCALP"
        assert strategy_style("breakout_momentum") == "DAY_TRADE"


# ── Runner ───────────────────────────────────────────────────────────────


class _Fixed:
    def __init__(self, strategy_id, side="LONG", score=0.0, error=None):
        self.strategy_id = strategy_id
        self.side = side
        self.score = score
        self.error = error

    def evaluate(self, context):
        if self.error:
            raise self.error
        return StrategyResult(self.strategy_id, self.score, self.side, "t", f"{self.strategy_id} fired")


def _install(monkeypatch, strategies):
    by_id = {s.strategy_id: s for s in strategies}
    by_id.setdefault("session_override", _Fixed("session_override", side="NEUTRAL"))
    by_id.setdefault("freeze_protocol", _Fixed("freeze_protocol", side="NEUTRAL"))
    monkeypatch.setattr(runner, "get_strategy", lambda name: by_id[name])


def _selection(*active):
    return StrategySelection("TRENDING", tuple(active), (), sum(w for _, w in active))


class TestRunner:
    def test_primary_is_highest_weighted(self, monkeypatch):
        _install(monkeypatch, [_Fixed("a", score=90), _Fixed("b", score=60)])
        outcome = run_strategies(_context(_snapshot()), _selection(("a", 0.2), ("b", 0.5)))
        assert outcome.primary.strategy_id == "b"
        assert outcome.primary_weight == 0.5
        assert outcome.score_boost == 100.0  # 90 + 60, capped

    def test_boost_skips_noise_and_is_capped(self, monkeypatch):
        _install(monkeypatch, [_Fixed("a", score=40), _Fixed("b", score=30)])
        outcome = run_strategies(_context(_snapshot()), _selection(("a", 0.5), ("b", 0.2)))
        # b: 30 × 0.2 = 6 stays below the noise floor
        assert outcome.score_boost == 40.0
        assert len(outcome.details) == 1

    def test_failing_strategy_is_skipped(self, monkeypatch):
        _install(monkeypatch, [_Fixed("a", error=RuntimeError("boom")), _Fixed("b", score=70)])
        outcome = run_strategies(_context(_snapshot()), _selection(("a", 0.6), ("b", 0.4)))
        assert outcome.primary.strategy_id == "b"

    def test_freeze_supplies_primary(self, monkeypatch):
        _install(monkeypatch, [_Fixed("a", side="NEUTRAL"), _Fixed("freeze_protocol", score=60)])
        outcome = run_strategies(_context(_snapshot()), _selection(("a", 1.0)))
        assert outcome.primary.strategy_id == "freeze_protocol"
        assert outcome.primary.score == 95.0
        assert outcome.score_boost == Config().scoring.freeze_protocol_boost

    def test_override_preempts_selection(self, monkeypatch):
        _install(monkeypatch, [_Fixed("session_override", score=85), _Fixed("a", score=99)])
        outcome = run_strategies(_context(_snapshot()), _selection(("a", 1.0)))
        assert outcome.primary.strategy_id == "session_override"
        assert outcome.primary_weight == 1.0
        assert outcome.score_boost == 85.0

    def test_nothing_fires(self, monkeypatch):
        _install(monkeypatch, [_Fixed("session_override", side="NEUTRAL")])
        outcome = run_strategies(_context(_snapshot()), _selection())
        assert outcome.primary is None
        assert outcome.score_boost == 0.0
