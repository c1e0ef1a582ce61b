"""Deterministic tests for the numeric kernel.

All tests use fixed candle data fixtures. Same input = same output, always.
"""

import math

import pytest

from signalforge.kernel.flow import calculate_cvd_series, cvd_slope
from signalforge.kernel.indicators import (
    NEUTRAL_ADX,
    NEUTRAL_RSI,
    NEUTRAL_RVOL,
    calculate_adx,
    calculate_atr,
    calculate_bollinger,
    calculate_ema,
    calculate_macd,
    calculate_pivots,
    calculate_rsi,
    calculate_rvol,
    calculate_sma,
    calculate_vwap,
    calculate_z_score,
)
from signalforge.kernel.statistics import pearson_correlation, population_std, regression_slope_pct
from signalforge.models.candle import Candle


def _make_candle(i: int, o: float, h: float, l: float, c: float, vol: float = 1000.0, taker=None) -> Candle:
    return Candle(timestamp=i * 3_600_000, open=o, high=h, low=l, close=c, volume=vol, taker_buy_volume=taker)


def _ascending(n: int, start: float = 100.0, step: float = 1.0) -> list[Candle]:
    return [
        _make_candle(i, start + i * step, start + i * step + 1.5, start + i * step - 0.5, start + i * step + 1.0)
        for i in range(n)
    ]


class TestMovingAverages:
    def test_sma(self):
        assert calculate_sma([1, 2, 3, 4, 5], 5) == 3.0
        assert calculate_sma([1, 2, 3, 4, 5], 2) == 4.5

    def test_sma_degraded_returns_last_sample(self):
        assert calculate_sma([7.0, 8.0], 20) == 8.0
        assert calculate_sma([], 20) == 0.0

    def test_ema_constant_series(self):
        assert calculate_ema([5.0] * 30, 10) == pytest.approx(5.0)

    def test_ema_tracks_rising_series_from_below(self):
        values = [float(v) for v in range(1, 61)]
        ema = calculate_ema(values, 20)
        assert ema < values[-1]
        assert ema > calculate_sma(values, 60)


class TestOscillators:
    def test_rsi_all_gains_is_100(self):
        assert calculate_rsi([float(v) for v in range(30)], 14) == 100.0

    def test_rsi_all_losses_is_0(self):
        assert calculate_rsi([float(v) for v in range(30, 0, -1)], 14) == pytest.approx(0.0)

    def test_rsi_short_input_neutral(self):
        assert calculate_rsi([1.0, 2.0, 3.0], 14) == NEUTRAL_RSI

    def test_macd_histogram_is_line_minus_signal(self):
        closes = [100 + math.sin(i / 4) * 5 for i in range(80)]
        macd = calculate_macd(closes)
        assert macd.histogram == pytest.approx(macd.line - macd.signal)
        assert len(macd.histogram_tail) == 5

    def test_bollinger_flat_series(self):
        bands = calculate_bollinger([50.0] * 20)
        assert bands.upper == bands.lower == bands.middle == 50.0
        assert bands.bandwidth == 0.0

    def test_bollinger_ordering(self):
        closes = [100 + (i % 5) for i in range(40)]
        bands = calculate_bollinger(closes)
        assert bands.lower < bands.middle < bands.upper
        assert bands.bandwidth > 0

    def test_z_score_zero_sigma(self):
        assert calculate_z_score([10.0] * 25, 10.0) == 0.0


class TestVolatility:
    def test_atr_constant_range(self):
        candles = [_make_candle(i, 100, 102, 98, 100) for i in range(40)]
        assert calculate_atr(candles, 14) == pytest.approx(4.0)

    def test_atr_degraded_last_true_range(self):
        candles = [_make_candle(0, 100, 101, 99, 100), _make_candle(1, 100, 103, 99, 102)]
        assert calculate_atr(candles, 14) == pytest.approx(4.0)

    def test_adx_strong_trend(self):
        assert calculate_adx(_ascending(120), 14) > 25

    def test_adx_short_input_neutral(self):
        assert calculate_adx(_ascending(10), 14) == NEUTRAL_ADX


class TestVolumeAndLevels:
    def test_rvol(self):
        volumes = [100.0] * 20 + [250.0]
        assert calculate_rvol(volumes, 20) == pytest.approx(2.5)

    def test_rvol_short_input_neutral(self):
        assert calculate_rvol([100.0] * 5, 20) == NEUTRAL_RVOL

    def test_vwap_zero_volume_returns_last_close(self):
        candles = [_make_candle(i, 10, 11, 9, 10.5, vol=0.0) for i in range(3)]
        assert calculate_vwap(candles) == 10.5

    def test_pivots_from_previous_bar(self):
        candles = [_make_candle(0, 100, 110, 90, 100), _make_candle(1, 100, 200, 50, 150)]
        pivots = calculate_pivots(candles)
        assert pivots.pivot == pytest.approx(100.0)
        assert pivots.r1 == pytest.approx(110.0)
        assert pivots.s1 == pytest.approx(90.0)
        assert pivots.s2 < pivots.s1 < pivots.pivot < pivots.r1 < pivots.r2


class TestFlowAndStatistics:
    def test_cvd_uses_taker_volume(self):
        candles = [
            _make_candle(0, 1, 1, 1, 1, vol=100, taker=80),
            _make_candle(1, 1, 1, 1, 1, vol=100, taker=30),
        ]
        assert calculate_cvd_series(candles) == [60.0, 20.0]

    def test_cvd_without_taker_is_flat(self):
        candles = [_make_candle(i, 1, 1, 1, 1, vol=100) for i in range(10)]
        assert calculate_cvd_series(candles) == [0.0] * 10
        assert cvd_slope(calculate_cvd_series(candles)) == 0.0

    def test_regression_slope_sign(self):
        assert regression_slope_pct([float(v) for v in range(1, 21)], 10) > 0
        assert regression_slope_pct([float(v) for v in range(20, 0, -1)], 10) < 0

    def test_pearson_perfect_correlation(self):
        a = [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
        assert pearson_correlation(a, [x * 2 for x in a]) == pytest.approx(1.0)
        assert pearson_correlation(a, [-x for x in a]) == pytest.approx(-1.0)

    def test_population_std(self):
        assert population_std([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]) == pytest.approx(2.0)
        assert population_std([]) == 0.0
