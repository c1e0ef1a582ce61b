"""Indicator aggregator — builds one IndicatorSnapshot per symbol.

Runs the numeric kernel and every structure detector over the candle
history, records which fields fell back to a degraded branch, then hands
the snapshot to the integrity shield. Never raises: short history and
computation errors both come back as invalidated placeholders.
"""

import logging
import math
from typing import Sequence

from signalforge.config import Config
from signalforge.kernel.fibonacci import calculate_auto_fibs
from signalforge.kernel.flow import calculate_cvd_series, cvd_slope
from signalforge.kernel.ichimoku import calculate_ichimoku
from signalforge.kernel.indicators import (
    calculate_adx,
    calculate_atr,
    calculate_bandwidth_series,
    calculate_bollinger,
    calculate_ema,
    calculate_ema_series,
    calculate_macd,
    calculate_pivots,
    calculate_rsi_series,
    calculate_rvol,
    calculate_sma,
    calculate_stoch_rsi,
    calculate_vwap,
    calculate_z_score,
)
from signalforge.kernel.statistics import regression_slope_pct
from signalforge.models.candle import Candle
from signalforge.models.snapshot import IndicatorSnapshot
from signalforge.pipeline.integrity import validate_snapshot
from signalforge.structure.chart_patterns import detect_chart_patterns
from signalforge.structure.divergence import detect_cvd_divergence, detect_divergence
from signalforge.structure.fair_value_gaps import detect_fair_value_gaps
from signalforge.structure.fractals import detect_fractals
from signalforge.structure.harmonics import detect_harmonic_patterns
from signalforge.structure.market_structure import (
    calculate_box_theory,
    detect_n_pattern,
    ema_alignment,
)
from signalforge.structure.order_blocks import detect_order_blocks
from signalforge.structure.volume_profile import calculate_volume_profile

logger = logging.getLogger("signalforge.aggregator")

SERIES_TAIL = 10
CVD_SLOPE_LOOKBACK = 5


def _last_price(candles: Sequence[Candle]) -> float:
    if not candles:
        return 0.0
    close = candles[-1].close
    return close if math.isfinite(close) else 0.0


def build_snapshot(symbol: str, candles: Sequence[Candle], config: Config) -> IndicatorSnapshot:
    """Compute every indicator for *symbol* and validate the result.

    Returns an invalidated placeholder (``INSUFFICIENT_DATA`` or
    ``COMPUTATION_ERROR``) instead of raising.
    """
    if len(candles) < config.min_history:
        reason = f"INSUFFICIENT_DATA: got {len(candles)}, need {config.min_history}"
        logger.debug("%s: %s", symbol, reason)
        return IndicatorSnapshot.placeholder(
            symbol,
            reason,
            price=_last_price(candles),
            timestamp=candles[-1].timestamp if candles else 0,
        )

    try:
        snapshot = _compute(symbol, candles, config)
    except Exception as exc:
        logger.warning("Indicator computation failed for %s: %s", symbol, exc)
        return IndicatorSnapshot.placeholder(
            symbol,
            f"COMPUTATION_ERROR: {exc}",
            price=_last_price(candles),
            timestamp=candles[-1].timestamp,
        )

    return validate_snapshot(snapshot)


def _compute(symbol: str, candles: Sequence[Candle], config: Config) -> IndicatorSnapshot:
    p = config.indicators
    tol = config.patterns
    n = len(candles)
    closes = [c.close for c in candles]
    highs = [c.high for c in candles]
    lows = [c.low for c in candles]
    volumes = [c.volume for c in candles]
    price = closes[-1]
    degraded: list[str] = []

    # ── Oscillators ──
    rsi_series = calculate_rsi_series(closes, p.rsi)
    if n < p.rsi + 1:
        degraded.append("rsi")
    stoch = calculate_stoch_rsi(rsi_series, p.stoch_rsi)
    macd = calculate_macd(closes, p.macd_fast, p.macd_slow, p.macd_signal)

    # ── Bands & averages ──
    bands = calculate_bollinger(closes, p.bollinger, p.bollinger_std)
    bandwidths = calculate_bandwidth_series(
        closes, p.bollinger, p.bollinger_std, p.bandwidth_history + 1
    )
    history = bandwidths[:-1]
    previous_bandwidth = history[-1] if history else bands.bandwidth
    min_bandwidth = min(history) if history else bands.bandwidth

    ema20 = calculate_ema(closes, 20)
    ema50 = calculate_ema(closes, 50)
    ema100 = calculate_ema(closes, 100)
    ema200 = calculate_ema(closes, 200)
    for period in (20, 50, 100, 200):
        if n < period:
            degraded.append(f"ema{period}")
    ema200_slope = regression_slope_pct(calculate_ema_series(closes, 200), p.slope)
    price_slope = regression_slope_pct(closes, p.slope)

    # ── Volatility, trend strength, volume ──
    atr = calculate_atr(candles, p.atr)
    if n < p.atr + 1:
        degraded.append("atr")
    adx = calculate_adx(candles, p.adx)
    if n < 2 * p.adx:
        degraded.append("adx")
    rvol = calculate_rvol(volumes, p.rvol)
    if n < p.rvol + 1:
        degraded.append("rvol")

    # ── Structure ──
    fractal_highs, fractal_lows = detect_fractals(highs, lows, p.fractals)
    if not fractal_highs or not fractal_lows:
        degraded.append("fibonacci")
    fibonacci = calculate_auto_fibs(
        highs, lows, ema200, fractal_highs, fractal_lows, lookback=p.fib_lookback
    )
    ichimoku = calculate_ichimoku(highs, lows, closes)
    if ichimoku is None:
        degraded.append("ichimoku")

    cvd = calculate_cvd_series(candles)
    if all(c.taker_buy_volume is None for c in candles):
        degraded.append("cvd")

    bullish_obs, bearish_obs = detect_order_blocks(candles, atr, price)
    bullish_fvgs, bearish_fvgs = detect_fair_value_gaps(candles, atr, price)

    if degraded:
        logger.debug("%s: degraded fields %s", symbol, ", ".join(degraded))

    return IndicatorSnapshot(
        symbol=symbol,
        timestamp=candles[-1].timestamp,
        price=price,
        rsi=rsi_series[-1],
        rsi_tail=tuple(rsi_series[-SERIES_TAIL:]),
        stoch_rsi=stoch,
        macd=macd,
        bollinger=bands,
        previous_bandwidth=previous_bandwidth,
        min_bandwidth=min_bandwidth,
        sma20=calculate_sma(closes, 20),
        ema20=ema20,
        ema50=ema50,
        ema100=ema100,
        ema200=ema200,
        ema_alignment=ema_alignment(ema20, ema50, ema100, ema200),
        ema200_slope=ema200_slope,
        price_slope=price_slope,
        atr=atr,
        atr_pct=atr / price * 100 if price > 0 else 0.0,
        adx=adx,
        vwap=calculate_vwap(candles),
        pivots=calculate_pivots(candles),
        rvol=rvol,
        z_score=calculate_z_score(closes, bands.middle, p.z_score),
        fibonacci=fibonacci,
        ichimoku=ichimoku,
        cvd_tail=tuple(cvd[-SERIES_TAIL:]),
        cvd_slope=cvd_slope(cvd, CVD_SLOPE_LOOKBACK),
        cvd_divergence=detect_cvd_divergence(highs, lows, cvd),
        rsi_divergence=detect_divergence(highs, lows, rsi_series, source="RSI"),
        fractal_highs=tuple(fractal_highs),
        fractal_lows=tuple(fractal_lows),
        chart_patterns=tuple(
            detect_chart_patterns(
                fractal_highs,
                fractal_lows,
                shoulder_tolerance=tol.shoulders,
                double_tolerance=tol.double_top_bottom,
                wedge_compression=tol.wedge_compression,
            )
        ),
        harmonic_patterns=tuple(
            detect_harmonic_patterns(
                fractal_highs,
                fractal_lows,
                n,
                tolerance=tol.harmonic,
                extension_tolerance=tol.harmonic_extension,
                recency_bars=tol.harmonic_recency_bars,
            )
        ),
        bullish_order_blocks=tuple(bullish_obs),
        bearish_order_blocks=tuple(bearish_obs),
        bullish_fvgs=tuple(bullish_fvgs),
        bearish_fvgs=tuple(bearish_fvgs),
        volume_profile=calculate_volume_profile(candles, atr),
        box_theory=calculate_box_theory(highs, lows, closes),
        n_pattern=detect_n_pattern(highs, lows, closes),
        degraded=tuple(degraded),
    )
