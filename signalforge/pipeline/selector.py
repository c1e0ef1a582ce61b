"""Strategy selector — regime → weighted strategy set."""

from typing import Mapping

from signalforge.models.signal import MarketRegime, StrategySelection


def select_strategies(
    regime: MarketRegime,
    strategy_matrix: Mapping[str, Mapping[str, float]],
) -> StrategySelection:
    """Look up the weight vector for *regime*.

    Zero-weighted strategies are reported as disabled and never run. Active
    strategies are ordered by weight, heaviest first (ties by id).
    """
    weights = strategy_matrix.get(regime.regime, {})
    active = sorted(
        ((sid, w) for sid, w in weights.items() if w > 0),
        key=lambda item: (-item[1], item[0]),
    )
    disabled = tuple(sorted(sid for sid, w in weights.items() if w <= 0))
    return StrategySelection(
        regime=regime.regime,
        active=tuple(active),
        disabled=disabled,
        total_weight=sum(w for _, w in active),
    )
