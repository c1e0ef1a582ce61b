"""Strategy registry — maps strategy ids to adapter classes.

Used by the runner to instantiate the regime-selected adapters.
"""

from signalforge.strategies.base import StrategyProtocol
from signalforge.strategies.breakout import BreakoutStrategy
from signalforge.strategies.freeze import FreezeStrategy
from signalforge.strategies.ichimoku import IchimokuStrategy
from signalforge.strategies.meme import MemeStrategy
from signalforge.strategies.pinball import PinballStrategy
from signalforge.strategies.scalp import ScalpStrategy
from signalforge.strategies.session_override import SessionOverrideStrategy
from signalforge.strategies.swing import MeanReversionStrategy, SmcLiquidityStrategy


STRATEGY_REGISTRY: dict[str, type] = {
    "ichimoku_dragon": IchimokuStrategy,
    "breakout_momentum": BreakoutStrategy,
    "smc_liquidity": SmcLiquidityStrategy,
    "mean_reversion": MeanReversionStrategy,
    "quant_volatility": ScalpStrategy,
    "divergence_hunter": PinballStrategy,
    "meme_hunter": MemeStrategy,
    "session_override": SessionOverrideStrategy,
    "freeze_protocol": FreezeStrategy,
}

# Strategy id → trading style, used by the HTF and compatibility filters.
STRATEGY_STYLES: dict[str, str] = {
    "ichimoku_dragon": "SWING",
    "breakout_momentum": "DAY_TRADE",
    "smc_liquidity": "SWING",
    "mean_reversion": "SWING",
    "quant_volatility": "SCALP",
    "divergence_hunter": "SWING",
    "meme_hunter": "MEME_SCALP",
    "session_override": "DAY_TRADE",
    "freeze_protocol": "SWING",
}


def get_strategy(name: str) -> StrategyProtocol:
    """Look up and instantiate a strategy by registry key.

    Raises ``KeyError`` if the strategy name is not registered.
    """
    if name not in STRATEGY_REGISTRY:
        raise KeyError(
            f"Unknown strategy '{name}'. "
            f"Available: {', '.join(STRATEGY_REGISTRY.keys())}"
        )
    return STRATEGY_REGISTRY[name]()


def strategy_style(name: str) -> str:
    return STRATEGY_STYLES.get(name, "SWING")
