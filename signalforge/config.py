"""SignalForge — application configuration.

Loads .env variables (and an optional JSON settings file) into a typed,
read-only config object. Validates values on startup.

The config is built once and passed explicitly into every pipeline entry
point. Mappings are exposed through ``MappingProxyType`` so a scan can never
mutate the thresholds it was started with; reload between scans instead.
"""

import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from dotenv import load_dotenv


DEFAULT_STRATEGY_MATRIX: dict[str, dict[str, float]] = {
    "TRENDING": {
        "ichimoku_dragon": 0.40,
        "breakout_momentum": 0.30,
        "smc_liquidity": 0.20,
        "quant_volatility": 0.10,
    },
    "RANGING": {
        "mean_reversion": 0.50,
        "smc_liquidity": 0.30,
        "quant_volatility": 0.20,
    },
    "VOLATILE": {
        "quant_volatility": 0.50,
        "breakout_momentum": 0.30,
        "meme_hunter": 0.20,
    },
    "EXTREME": {
        "divergence_hunter": 0.50,
        "smc_liquidity": 0.30,
        "mean_reversion": 0.20,
    },
}

def _freeze_matrix(matrix: Mapping[str, Mapping[str, float]]) -> Mapping[str, Mapping[str, float]]:
    return MappingProxyType(
        {regime: MappingProxyType(dict(weights)) for regime, weights in matrix.items()}
    )


# ── Config sections ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class IndicatorPeriods:
    """Lookback periods for the numeric kernel."""

    rsi: int = 14
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0
    stoch_rsi: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    bollinger: int = 20
    bollinger_std: float = 2.0
    atr: int = 14
    adx: int = 14
    rvol: int = 20
    z_score: int = 20
    slope: int = 10
    fractals: int = 5
    fib_lookback: int = 300
    bandwidth_history: int = 50


@dataclass(frozen=True)
class RegimeThresholds:
    """Cut-offs for the priority-ordered regime classifier."""

    extreme_rsi_low: float = 25.0
    extreme_rsi_high: float = 75.0
    volatile_atr_pct: float = 3.5
    volatile_bandwidth: float = 4.0
    trending_adx: float = 25.0
    ranging_adx: float = 20.0
    ranging_bandwidth: float = 3.0
    gray_zone_bandwidth: float = 3.5
    base_confidence: float = 50.0
    max_confidence: float = 95.0
    # confidence tiers beyond the classification cut-offs
    strong_trend_adx: float = 30.0
    trend_rvol: float = 1.2
    deep_range_adx: float = 15.0
    tight_bandwidth: float = 2.0
    high_atr_pct: float = 5.0
    wide_bandwidth: float = 5.0
    panic_rsi_low: float = 20.0
    panic_rsi_high: float = 80.0


@dataclass(frozen=True)
class ScoringWeights:
    """Additive weights for the confluence scorer and the runner."""

    ema_alignment: int = 15
    rsi_oversold: int = 10
    rsi_overbought: int = 10
    rsi_divergence: int = 20
    volume_spike: int = 20
    order_block_retest: int = 20
    liquidation_flutter: int = 20
    cvd_divergence_boost: int = 25
    cvd_contradiction_penalty: int = 15
    harmonic_pattern: int = 20
    chart_pattern_breakout: int = 15
    fvg_retest: int = 10
    poc_retest: int = 10
    cloud_breakout: int = 15
    z_score_extreme: int = 20
    n_pattern: int = 15
    box_theory: int = 15
    sentiment_alignment: int = 10
    sentiment_conflict_penalty: int = 20
    freeze_protocol_boost: int = 25
    kill_zone_penalty: int = 20
    god_mode_threshold: int = 90
    strategy_noise_floor: float = 10.0
    volume_spike_rvol: float = 2.0
    poi_proximity_pct: float = 1.5


@dataclass(frozen=True)
class FilterThresholds:
    """Hard-filter thresholds for the veto chain."""

    min_score_entry: float = 75.0
    min_adx: float = 20.0
    min_adx_commodity: float = 15.0
    min_volume_24h: float = 5_000_000.0
    rsi_exhaustion_long: float = 80.0
    rsi_exhaustion_short: float = 20.0
    critical_rvol_ratio: float = 0.5
    fomo_max_distance_pct: float = 1.5
    chop_adx: float = 25.0
    chop_multiplier: float = 0.5
    mid_range_rsi_low: float = 35.0
    mid_range_rsi_high: float = 65.0
    mid_range_multiplier: float = 0.8
    risk_tolerant_strategies: tuple[str, ...] = ("quant_volatility", "meme_hunter")
    range_friendly_strategies: tuple[str, ...] = (
        "mean_reversion",
        "divergence_hunter",
        "freeze_protocol",
        "smc_liquidity",
    )
    htf_exempt_styles: tuple[str, ...] = ("SCALP", "MEME_SCALP", "HEDGE")


@dataclass(frozen=True)
class RiskParameters:
    """Risk parameters: whipsaw safety and drawdown-based size scaling."""

    max_daily_drawdown: float = 0.05
    max_total_exposure: float = 0.25
    max_leverage: int = 20
    direction_flip_penalty: float = 25.0
    high_conviction_threshold: float = 85.0
    volume_climax_rvol: float = 2.0
    low_accuracy_threshold: float = 0.5
    low_accuracy_multiplier: float = 1.5
    # (drawdown fraction reached, position-size multiplier)
    drawdown_scaling: tuple[tuple[float, float], ...] = (
        (0.02, 0.75),
        (0.035, 0.5),
        (0.05, 0.0),
    )

    def size_multiplier(self, drawdown: float) -> float:
        """Return the position-size multiplier for the current *drawdown*."""
        multiplier = 1.0
        for threshold, scale in self.drawdown_scaling:
            if drawdown >= threshold:
                multiplier = scale
        return multiplier


@dataclass(frozen=True)
class AssetTiers:
    """Symbol lists used for classification, compatibility and blacklisting."""

    s_tier: tuple[str, ...] = (
        "BTCUSDT", "ETHUSDT", "SOLUSDT", "BNBUSDT", "XAGUSDT", "XAUUSDT",
    )
    a_tier: tuple[str, ...] = (
        "XRPUSDT", "ADAUSDT", "LINKUSDT", "AVAXUSDT", "DOTUSDT",
        "TRXUSDT", "TONUSDT", "SUIUSDT", "APTUSDT",
    )
    b_tier: tuple[str, ...] = ()
    c_tier_patterns: tuple[str, ...] = (
        "PEPE", "DOGE", "SHIB", "BONK", "WIF", "FLOKI",
        "1000SATS", "ORDI", "MEME", "LUNA", "LUNC",
    )
    meme_list: tuple[str, ...] = (
        "DOGE", "SHIB", "PEPE", "FLOKI", "BONK", "WIF", "BOME", "DOGS",
        "TURBO", "MYRO", "NEIRO", "1000SATS", "ORDI", "BABYDOGE",
        "MOODENG", "PNUT", "ACT", "POPCAT", "SLERF", "BRETT", "GOAT",
        "MOG", "SPX", "HIPPO", "LADYS", "CHILLGUY", "LUCE", "PENGU",
    )
    commodities: tuple[str, ...] = ("PAXG", "XAU", "XAG", "GOLD")
    large_caps: tuple[str, ...] = ("BTC", "ETH", "BNB", "SOL")
    mid_caps: tuple[str, ...] = (
        "XRP", "ADA", "AVAX", "DOT", "MATIC", "LTC", "UNI", "LINK",
        "ATOM", "ETC", "XLM", "NEAR", "ALGO", "FIL", "VET", "SAND",
        "MANA", "AXS", "THETA", "ICP", "FTM", "HBAR", "EOS", "AAVE",
        "GRT", "MKR", "SNX", "COMP", "TRX", "TON", "SUI", "APT",
    )
    ignored_symbols: tuple[str, ...] = (
        "USDCUSDT", "FDUSDUSDT", "USDPUSDT", "TUSDUSDT",
        "BUSDUSDT", "DAIUSDT", "EURUSDT",
    )


@dataclass(frozen=True)
class PatternTolerances:
    """Independent tolerance bands for the geometric detectors."""

    harmonic: float = 0.05
    harmonic_extension: float = 0.07
    harmonic_recency_bars: int = 20
    double_top_bottom: float = 0.015
    shoulders: float = 0.02
    wedge_compression: float = 0.8


@dataclass(frozen=True)
class SessionOverrideSettings:
    """Gold/silver session override strategy."""

    assets: tuple[str, ...] = ("PAXG", "XAU", "XAG")
    session_start_utc: int = 7
    session_end_utc: int = 21
    rsi_support: float = 40.0
    rsi_lookback: int = 10
    golden_zone_tolerance: float = 0.002
    sl_atr_multiplier: float = 1.5
    min_score: float = 80.0


@dataclass(frozen=True)
class Config:
    """Typed, read-only configuration for one scan cycle."""

    indicators: IndicatorPeriods = field(default_factory=IndicatorPeriods)
    regime: RegimeThresholds = field(default_factory=RegimeThresholds)
    scoring: ScoringWeights = field(default_factory=ScoringWeights)
    filters: FilterThresholds = field(default_factory=FilterThresholds)
    risk: RiskParameters = field(default_factory=RiskParameters)
    assets: AssetTiers = field(default_factory=AssetTiers)
    patterns: PatternTolerances = field(default_factory=PatternTolerances)
    session_override: SessionOverrideSettings = field(default_factory=SessionOverrideSettings)
    strategy_matrix: Mapping[str, Mapping[str, float]] = field(
        default_factory=lambda: _freeze_matrix(DEFAULT_STRATEGY_MATRIX)
    )
    min_history: int = 150
    max_workers: int = 8
    log_level: str = "INFO"
    api_port: int = 8080

    def as_dict(self) -> dict:
        """Plain-dict view for the ``/config`` endpoint."""
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "strategy_matrix":
                out[f.name] = {k: dict(v) for k, v in value.items()}
            elif hasattr(value, "__dataclass_fields__"):
                out[f.name] = {
                    sf.name: getattr(value, sf.name) for sf in fields(value)
                }
            else:
                out[f.name] = value
        return out


# ── Loading ──────────────────────────────────────────────────────────────


def _env_number(name: str, default: float, cast=float):
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from None


def _apply_overrides(section, overrides: Mapping[str, Any], name: str):
    """Return *section* with JSON *overrides* applied (lists become tuples)."""
    known = {f.name for f in fields(section)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown {name} setting(s): {', '.join(unknown)}")
    cleaned = {
        k: tuple(tuple(x) if isinstance(x, list) else x for x in v)
        if isinstance(v, list) else v
        for k, v in overrides.items()
    }
    return replace(section, **cleaned)


def load_settings_file(path: str | Path) -> dict:
    """Read a JSON settings file. Raises ``ValueError`` if it is not an object."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a JSON object")
    return data


def load_config(env_path: str | None = None, settings_path: str | None = None) -> Config:
    """Load configuration from environment variables and an optional JSON file.

    Raises ``ValueError`` with a message naming the offending variable when a
    value cannot be parsed or is out of range.
    """
    load_dotenv(dotenv_path=env_path)

    settings_path = settings_path or os.environ.get("SIGNALFORGE_SETTINGS_PATH")
    settings = load_settings_file(settings_path) if settings_path else {}

    base = Config()
    sections = {}
    for section_name in (
        "indicators", "regime", "scoring", "filters",
        "risk", "assets", "patterns", "session_override",
    ):
        section = getattr(base, section_name)
        if section_name in settings:
            section = _apply_overrides(section, settings[section_name], section_name)
        sections[section_name] = section

    filters = replace(
        sections["filters"],
        min_score_entry=_env_number(
            "SIGNALFORGE_MIN_SCORE_ENTRY", sections["filters"].min_score_entry
        ),
        min_adx=_env_number("SIGNALFORGE_MIN_ADX", sections["filters"].min_adx),
        min_volume_24h=_env_number(
            "SIGNALFORGE_MIN_VOLUME_24H", sections["filters"].min_volume_24h
        ),
    )
    if not 0 <= filters.min_score_entry <= 100:
        raise ValueError("SIGNALFORGE_MIN_SCORE_ENTRY must be between 0 and 100")
    if filters.min_volume_24h < 0:
        raise ValueError("SIGNALFORGE_MIN_VOLUME_24H must be non-negative")
    sections["filters"] = filters

    matrix = settings.get("strategy_matrix", DEFAULT_STRATEGY_MATRIX)
    for regime, weights in matrix.items():
        if any(w < 0 for w in weights.values()):
            raise ValueError(f"strategy_matrix.{regime} contains a negative weight")

    min_history = _env_number("SIGNALFORGE_MIN_HISTORY", 150, int)
    if min_history < 60:
        raise ValueError("SIGNALFORGE_MIN_HISTORY must be at least 60")
    max_workers = _env_number("SIGNALFORGE_MAX_WORKERS", 8, int)
    if max_workers < 1:
        raise ValueError("SIGNALFORGE_MAX_WORKERS must be at least 1")

    return Config(
        **sections,
        strategy_matrix=_freeze_matrix(matrix),
        min_history=min_history,
        max_workers=max_workers,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=_env_number("API_PORT", 8080, int),
    )
