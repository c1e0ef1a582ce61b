"""Asset classifier — per-class RVOL requirements.

Relative-volume floors are never a blanket constant: gold moves slowly on
institutional flow, memes need hype. Classification order is commodity,
meme, large cap, mid cap, then small cap as the fallback.
"""

import re
from dataclasses import dataclass
from typing import Literal

from signalforge.config import AssetTiers

AssetClass = Literal["COMMODITY", "LARGE_CAP", "MID_CAP", "SMALL_CAP", "MEME"]


@dataclass(frozen=True)
class AssetProfile:
    asset_class: AssetClass
    min_rvol: float  # hard-filter floor before regime scaling
    bonus_rvol: float  # scoring bonus threshold


PROFILES: dict[str, AssetProfile] = {
    "COMMODITY": AssetProfile("COMMODITY", 0.8, 1.2),
    "LARGE_CAP": AssetProfile("LARGE_CAP", 1.0, 1.5),
    "MID_CAP": AssetProfile("MID_CAP", 1.2, 1.8),
    "SMALL_CAP": AssetProfile("SMALL_CAP", 1.5, 2.0),
    "MEME": AssetProfile("MEME", 1.8, 2.5),
}

REGIME_RVOL_MULTIPLIER: dict[str, float] = {
    "RANGING": 0.8,
    "TRENDING": 1.0,
    "VOLATILE": 1.2,
    "EXTREME": 0.9,
}


def base_asset(symbol: str) -> str:
    """``"BTC/USDT"`` or ``"BTCUSDT"`` → ``"BTC"``."""
    cleaned = re.sub(r"/.*$", "", symbol.upper())
    return re.sub(r"(USDT|USDC|USD)$", "", cleaned)


def classify(symbol: str, tiers: AssetTiers) -> AssetProfile:
    base = base_asset(symbol)
    if any(c in base for c in tiers.commodities):
        return PROFILES["COMMODITY"]
    if base in tiers.meme_list:
        return PROFILES["MEME"]
    if base in tiers.large_caps:
        return PROFILES["LARGE_CAP"]
    if base in tiers.mid_caps:
        return PROFILES["MID_CAP"]
    return PROFILES["SMALL_CAP"]


def is_meme(symbol: str, tiers: AssetTiers) -> bool:
    """Meme list member or matches a C-tier pattern."""
    upper = symbol.upper()
    return base_asset(symbol) in tiers.meme_list or any(p in upper for p in tiers.c_tier_patterns)


def is_commodity(symbol: str, tiers: AssetTiers) -> bool:
    return classify(symbol, tiers).asset_class == "COMMODITY"


def required_rvol(symbol: str, regime: str, tiers: AssetTiers) -> float:
    """Class floor scaled by the regime multiplier."""
    return classify(symbol, tiers).min_rvol * REGIME_RVOL_MULTIPLIER.get(regime, 1.0)


def rvol_score_adjustment(symbol: str, rvol: float, regime: str, tiers: AssetTiers) -> float:
    """Score adjustment (+15 to -15) for *rvol* against the class profile."""
    profile = classify(symbol, tiers)
    multiplier = REGIME_RVOL_MULTIPLIER.get(regime, 1.0)
    minimum = profile.min_rvol * multiplier
    bonus = profile.bonus_rvol * multiplier

    if rvol >= bonus * 1.5:
        return 15
    if rvol >= bonus:
        return 10
    if rvol >= minimum * 1.2:
        return 5
    if rvol >= minimum:
        return 0
    if rvol >= minimum * 0.7:
        return -5
    if rvol >= minimum * 0.5:
        return -10
    return -15
