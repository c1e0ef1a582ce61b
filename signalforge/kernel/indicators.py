"""Technical indicators — SMA/EMA, MACD, Bollinger, RSI, StochRSI, ATR, ADX,
VWAP, pivots, RVOL, z-score. Pure functions, no I/O.

Short input never raises here. Each function has one explicit degraded
branch (last sample or a named neutral constant) so the aggregator can
record which snapshot fields were not fully computed.
"""

from typing import Sequence

from signalforge.kernel.statistics import population_std
from signalforge.models.candle import Candle
from signalforge.models.snapshot import BollingerBands, MacdResult, PivotPoints, StochRsi

NEUTRAL_RSI = 50.0
NEUTRAL_ADX = 20.0
NEUTRAL_RVOL = 1.0


# ── Moving averages ──────────────────────────────────────────────────────


def calculate_sma(values: Sequence[float], period: int) -> float:
    """Simple moving average of the last *period* values.

    Degraded: returns the last sample when fewer than *period* values are
    available, and ``0.0`` on empty input.
    """
    if not values:
        return 0.0
    if len(values) < period:
        return float(values[-1])
    window = values[-period:]
    return sum(window) / period


def calculate_ema_series(values: Sequence[float], period: int) -> list[float]:
    """Exponential moving average series, seeded with the first sample.

    ``EMA_today = value × k + EMA_yesterday × (1 - k)`` with
    ``k = 2 / (period + 1)``. Same length as *values*.
    """
    if not values:
        return []
    k = 2.0 / (period + 1)
    ema = [float(values[0])]
    for value in values[1:]:
        ema.append(value * k + ema[-1] * (1 - k))
    return ema


def calculate_ema(values: Sequence[float], period: int) -> float:
    """Latest EMA value. Degraded: the last sample when input is short."""
    if not values:
        return 0.0
    if len(values) < period:
        return float(values[-1])
    return calculate_ema_series(values, period)[-1]


# ── MACD ─────────────────────────────────────────────────────────────────


def calculate_macd(
    closes: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
    tail: int = 5,
) -> MacdResult:
    """MACD line, signal line and histogram from EMA series."""
    if not closes:
        return MacdResult(0.0, 0.0, 0.0)
    fast_ema = calculate_ema_series(closes, fast)
    slow_ema = calculate_ema_series(closes, slow)
    line = [f - s for f, s in zip(fast_ema, slow_ema)]
    signal_line = calculate_ema_series(line, signal)
    histogram = [m - s for m, s in zip(line, signal_line)]
    return MacdResult(
        line=line[-1],
        signal=signal_line[-1],
        histogram=histogram[-1],
        histogram_tail=tuple(histogram[-tail:]),
    )


# ── Bollinger Bands ──────────────────────────────────────────────────────


def calculate_bollinger(
    closes: Sequence[float],
    period: int = 20,
    std_dev: float = 2.0,
) -> BollingerBands:
    """Bollinger Bands over the last *period* closes (population σ).

    ``bandwidth = (upper - lower) / middle × 100``; 0 when middle ≤ 0.
    Degraded: short input uses whatever closes exist.
    """
    if not closes:
        return BollingerBands(0.0, 0.0, 0.0, 0.0, 0.0)
    window = closes[-period:]
    middle = sum(window) / len(window)
    sigma = population_std(window)
    upper = middle + std_dev * sigma
    lower = middle - std_dev * sigma
    bandwidth = (upper - lower) / middle * 100 if middle > 0 else 0.0
    return BollingerBands(upper, middle, lower, bandwidth, sigma)


def calculate_bandwidth_series(
    closes: Sequence[float],
    period: int = 20,
    std_dev: float = 2.0,
    count: int = 50,
) -> list[float]:
    """Bollinger bandwidth for each of the last *count* bars (oldest first).

    Only bars with a full *period* window behind them are included.
    """
    start = max(period, len(closes) - count + 1)
    return [
        calculate_bollinger(closes[:end], period, std_dev).bandwidth
        for end in range(start, len(closes) + 1)
    ]


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi_series(closes: Sequence[float], period: int = 14) -> list[float]:
    """Wilder's Relative Strength Index series.

    Algorithm:
        1. delta = close[i] - close[i-1], split into gains and losses.
        2. Seed average gain/loss = SMA of the first *period* deltas.
        3. Subsequent: avg = (prev_avg × (period-1) + current) / period
        4. RSI = 100 - 100 / (1 + avg_gain / avg_loss); 100 when avg_loss is 0.

    Requires ``period + 1`` closes. Degraded: entries without enough history
    (or the whole series when input is short) hold ``NEUTRAL_RSI``.
    """
    n = len(closes)
    rsi = [NEUTRAL_RSI] * n
    if n < period + 1:
        return rsi

    deltas = [closes[i] - closes[i - 1] for i in range(1, n)]
    gains = [max(d, 0.0) for d in deltas]
    losses = [abs(min(d, 0.0)) for d in deltas]

    def _rsi_from_avgs(ag: float, al: float) -> float:
        if al == 0:
            return 100.0
        return 100.0 - 100.0 / (1.0 + ag / al)

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period
    rsi[period] = _rsi_from_avgs(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        rsi[i + 1] = _rsi_from_avgs(avg_gain, avg_loss)

    return rsi


def calculate_rsi(closes: Sequence[float], period: int = 14) -> float:
    """Latest Wilder RSI. Degraded: ``NEUTRAL_RSI`` below ``period + 1`` closes."""
    if len(closes) < period + 1:
        return NEUTRAL_RSI
    return calculate_rsi_series(closes, period)[-1]


def calculate_stoch_rsi(rsi_series: Sequence[float], period: int = 14) -> StochRsi:
    """Stochastic RSI over the last *period* RSI values.

    ``k = (rsi - min) / (max - min) × 100``; 0 when the window is flat.
    """
    if not rsi_series:
        return StochRsi(NEUTRAL_RSI, NEUTRAL_RSI)
    window = rsi_series[-period:]
    low, high = min(window), max(window)
    if high == low:
        return StochRsi(0.0, 0.0)
    k = (window[-1] - low) / (high - low) * 100
    return StochRsi(k, k)


# ── ATR / ADX ────────────────────────────────────────────────────────────


def _true_ranges(candles: Sequence[Candle]) -> list[float]:
    trs = [candles[0].high - candles[0].low]
    for i in range(1, len(candles)):
        prev_close = candles[i - 1].close
        trs.append(
            max(
                candles[i].high - candles[i].low,
                abs(candles[i].high - prev_close),
                abs(candles[i].low - prev_close),
            )
        )
    return trs


def calculate_atr(candles: Sequence[Candle], period: int = 14) -> float:
    """Wilder-smoothed Average True Range.

    TR = max(high - low, |high - prev_close|, |low - prev_close|). Seeded by
    the SMA of the first *period* true ranges.

    Degraded: with fewer than ``period + 1`` candles returns the last bar's
    true range.
    """
    if not candles:
        return 0.0
    trs = _true_ranges(candles)
    if len(candles) < period + 1:
        return trs[-1]
    atr = sum(trs[1 : period + 1]) / period
    for tr in trs[period + 1 :]:
        atr = (atr * (period - 1) + tr) / period
    return atr


def calculate_adx(candles: Sequence[Candle], period: int = 14) -> float:
    """Latest Average Directional Index.

    Algorithm:
        1. +DM / -DM directional movement per bar.
        2. Wilder-smooth +DM, -DM and TR over *period*.
        3. DX = 100 × |+DI − −DI| / (+DI + −DI)
        4. First ADX = mean of the first *period* DX values, then
           Wilder-smoothed.

    Degraded: ``NEUTRAL_ADX`` with fewer than ``2 × period`` candles.
    """
    n = len(candles)
    if n < 2 * period:
        return NEUTRAL_ADX

    plus_dm = [0.0]
    minus_dm = [0.0]
    trs = _true_ranges(candles)
    for i in range(1, n):
        up_move = candles[i].high - candles[i - 1].high
        down_move = candles[i - 1].low - candles[i].low
        plus_dm.append(up_move if (up_move > down_move and up_move > 0) else 0.0)
        minus_dm.append(down_move if (down_move > up_move and down_move > 0) else 0.0)

    def _dx(s_pdm: float, s_mdm: float, s_tr: float) -> float:
        if s_tr == 0:
            return 0.0
        plus_di = 100.0 * s_pdm / s_tr
        minus_di = 100.0 * s_mdm / s_tr
        di_sum = plus_di + minus_di
        if di_sum == 0:
            return 0.0
        return 100.0 * abs(plus_di - minus_di) / di_sum

    s_pdm = sum(plus_dm[1 : period + 1])
    s_mdm = sum(minus_dm[1 : period + 1])
    s_tr = sum(trs[1 : period + 1])
    dx_values = [_dx(s_pdm, s_mdm, s_tr)]
    for i in range(period + 1, n):
        s_pdm = s_pdm - s_pdm / period + plus_dm[i]
        s_mdm = s_mdm - s_mdm / period + minus_dm[i]
        s_tr = s_tr - s_tr / period + trs[i]
        dx_values.append(_dx(s_pdm, s_mdm, s_tr))

    adx = sum(dx_values[:period]) / period
    for dx in dx_values[period:]:
        adx = (adx * (period - 1) + dx) / period
    return adx


# ── Volume-weighted & structural levels ──────────────────────────────────


def calculate_vwap(candles: Sequence[Candle]) -> float:
    """Cumulative VWAP on typical price ``(high + low + close) / 3``.

    Degraded: the last close when cumulative volume is zero.
    """
    if not candles:
        return 0.0
    cum_pv = 0.0
    cum_vol = 0.0
    for c in candles:
        cum_pv += (c.high + c.low + c.close) / 3 * c.volume
        cum_vol += c.volume
    if cum_vol == 0:
        return candles[-1].close
    return cum_pv / cum_vol


def calculate_pivots(candles: Sequence[Candle]) -> PivotPoints:
    """Classic floor pivots from the previous (completed) bar.

    P = (H + L + C) / 3, R1 = 2P − L, S1 = 2P − H, R2 = P + (H − L),
    S2 = P − (H − L).
    """
    if not candles:
        return PivotPoints(0.0, 0.0, 0.0, 0.0, 0.0)
    bar = candles[-2] if len(candles) >= 2 else candles[-1]
    pivot = (bar.high + bar.low + bar.close) / 3
    spread = bar.high - bar.low
    return PivotPoints(
        pivot=pivot,
        r1=2 * pivot - bar.low,
        r2=pivot + spread,
        s1=2 * pivot - bar.high,
        s2=pivot - spread,
    )


def calculate_rvol(volumes: Sequence[float], period: int = 20) -> float:
    """Relative volume: current volume over the SMA of the previous *period*.

    Degraded: ``NEUTRAL_RVOL`` below ``period + 1`` samples; 0 when the
    trailing average is zero.
    """
    if len(volumes) < period + 1:
        return NEUTRAL_RVOL
    avg = sum(volumes[-period - 1 : -1]) / period
    if avg == 0:
        return 0.0
    return volumes[-1] / avg


def calculate_z_score(closes: Sequence[float], baseline: float, period: int = 20) -> float:
    """Distance of the last close from *baseline* in σ of the last *period* closes.

    Returns 0 when σ is 0 or fewer than *period* closes exist.
    """
    if len(closes) < period:
        return 0.0
    window = closes[-period:]
    sigma = population_std(window)
    if sigma == 0:
        return 0.0
    return (closes[-1] - baseline) / sigma
