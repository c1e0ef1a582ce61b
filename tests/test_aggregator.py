"""Tests for the indicator aggregator and the integrity shield."""

import math
from dataclasses import replace

from signalforge.config import Config
from signalforge.models.candle import Candle
from signalforge.models.snapshot import MacdResult
from signalforge.pipeline import aggregator
from signalforge.pipeline.aggregator import build_snapshot
from signalforge.pipeline.integrity import first_failure, validate_snapshot


def _make_candle(i: int, o: float, h: float, l: float, c: float, vol: float = 1000.0) -> Candle:
    return Candle(timestamp=1_700_000_000_000 + i * 3_600_000, open=o, high=h, low=l, close=c, volume=vol)


def _ascending(n: int, start: float = 100.0) -> list[Candle]:
    return [_make_candle(i, start + i, start + i + 1.5, start + i - 0.5, start + i + 1) for i in range(n)]


def _oscillating(n: int) -> list[Candle]:
    candles = []
    for i in range(n):
        mid = 100 + 8 * math.sin(i / 6)
        candles.append(_make_candle(i, mid - 0.3, mid + 1.2, mid - 1.2, mid + 0.3, vol=1000 + (i % 7) * 50))
    return candles


class TestBuildSnapshot:
    def test_insufficient_history_is_invalidated(self):
        snap = build_snapshot("BTCUSDT", _ascending(50), Config())
        assert snap.invalidated
        assert snap.invalidation_reason.startswith("INSUFFICIENT_DATA")
        assert "50" in snap.invalidation_reason

    def test_full_history_is_valid(self):
        snap = build_snapshot("BTCUSDT", _ascending(200), Config())
        assert not snap.invalidated, snap.invalidation_reason
        assert snap.price == 300.0
        assert snap.ema_alignment == "BULLISH"
        assert snap.adx > 30
        assert "cvd" in snap.degraded

    def test_oscillating_history_is_valid(self):
        snap = build_snapshot("ETHUSDT", _oscillating(220), Config())
        assert not snap.invalidated, snap.invalidation_reason
        assert snap.fractal_highs and snap.fractal_lows
        assert "fibonacci" not in snap.degraded

    def test_idempotent(self):
        candles = _oscillating(200)
        assert build_snapshot("ETHUSDT", candles, Config()) == build_snapshot("ETHUSDT", candles, Config())

    def test_computation_error_never_raises(self, monkeypatch):
        def _boom(*args, **kwargs):
            raise RuntimeError("kernel exploded")

        monkeypatch.setattr(aggregator, "calculate_ichimoku", _boom)
        snap = build_snapshot("BTCUSDT", _ascending(200), Config())
        assert snap.invalidated
        assert snap.invalidation_reason == "COMPUTATION_ERROR: kernel exploded"


class TestIntegrityShield:
    def _valid(self):
        return build_snapshot("BTCUSDT", _ascending(200), Config())

    def test_sound_snapshot_passes(self):
        assert first_failure(self._valid()) is None

    def test_nan_rsi_invalidates(self):
        snap = validate_snapshot(replace(self._valid(), rsi=float("nan")))
        assert snap.invalidated
        assert snap.invalidation_reason == "RSI_NAN"

    def test_first_failure_wins(self):
        snap = validate_snapshot(replace(self._valid(), price=float("nan"), rsi=float("nan")))
        assert snap.invalidation_reason == "PRICE_NAN"

    def test_incoherent_macd(self):
        snap = validate_snapshot(replace(self._valid(), macd=MacdResult(1.0, 0.5, 0.2)))
        assert snap.invalidation_reason == "MACD_CORRUPTED"

    def test_any_non_finite_field(self):
        snap = validate_snapshot(replace(self._valid(), vwap=float("inf")))
        assert snap.invalidated
        assert snap.invalidation_reason == "NON_FINITE:vwap"

    def test_invalidated_snapshot_passes_through(self):
        snap = build_snapshot("BTCUSDT", _ascending(10), Config())
        assert validate_snapshot(snap) is snap
