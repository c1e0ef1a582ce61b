"""Tests for POI clustering, the staged-entry planner and the session clock."""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from signalforge.models.signal import POI, ConfluenceAnalysis
from signalforge.models.snapshot import FairValueGap, IndicatorSnapshot, OrderBlock
from signalforge.pipeline.confluence import calculate_pois
from signalforge.pipeline.dca import build_dca_plan
from signalforge.pipeline.session import MarketSession

PLACEHOLDER = IndicatorSnapshot.placeholder("BTCUSDT", "", price=100.0)


def _snapshot(**overrides) -> IndicatorSnapshot:
    return replace(PLACEHOLDER, invalidated=False, **overrides)


def _ob(price: float) -> OrderBlock:
    return OrderBlock(price, price + 0.5, price - 0.5, 8.0, "BULLISH", 0, False)


def _fvg(midpoint: float) -> FairValueGap:
    return FairValueGap(midpoint + 0.2, midpoint - 0.2, midpoint, "BULLISH", 0, False, 0.4)


def _poi(price: float, kind: str, score: float = 3.0) -> POI:
    return POI(price=price, score=score, factors=(f"level {price:g}",), kind=kind)


# ── Confluence ───────────────────────────────────────────────────────────


class TestCalculatePois:
    def test_nearby_levels_merge_and_sum(self):
        snap = _snapshot(atr=2.0, bullish_order_blocks=(_ob(95.0),), bullish_fvgs=(_fvg(95.4),))
        supports = calculate_pois(snap).supports
        assert len(supports) == 1
        poi = supports[0]
        assert poi.score == 7  # OB ceil(8 / 2.5) = 4, FVG 3
        assert poi.price == pytest.approx((95.0 * 4 + 95.4 * 3) / 7)
        assert poi.factors == ("Bullish OB (8.0)", "Bullish FVG")
        assert poi.kind == "SUPPORT"

    def test_distant_levels_stay_apart(self):
        snap = _snapshot(atr=0.2, bullish_order_blocks=(_ob(95.0),), bullish_fvgs=(_fvg(95.4),))
        supports = calculate_pois(snap).supports
        assert [p.price for p in supports] == [95.0, 95.4]

    def test_fib_and_order_block_synergy(self):
        fib = replace(PLACEHOLDER.fibonacci, level0_618=95.2)
        snap = _snapshot(atr=2.0, fibonacci=fib, bullish_order_blocks=(_ob(95.0),))
        poi = calculate_pois(snap).supports[0]
        assert poi.score == 11  # ceil((3 + 4) * 1.5)
        assert poi.factors[-1] == "Institutional confluence"

    def test_levels_at_price_count_as_resistance(self):
        analysis = calculate_pois(_snapshot(atr=1.0))
        assert analysis.supports == ()
        assert len(analysis.resistances) == 1
        assert analysis.resistances[0].price == pytest.approx(100.0)

    def test_keeps_top_three(self):
        blocks = tuple(_ob(p) for p in (90.0, 92.0, 94.0, 96.0))
        supports = calculate_pois(_snapshot(atr=1.0, bullish_order_blocks=blocks)).supports
        assert len(supports) == 3


# ── Staged entries ───────────────────────────────────────────────────────


class TestBuildDcaPlan:
    def _pois(self):
        return ConfluenceAnalysis(
            supports=(_poi(98.0, "SUPPORT", 5), _poi(96.0, "SUPPORT", 4), _poi(94.0, "SUPPORT")),
            resistances=(_poi(104.0, "RESISTANCE"), _poi(108.0, "RESISTANCE"), _poi(112.0, "RESISTANCE")),
        )

    def test_long_from_supports(self):
        plan = build_dca_plan(100.0, self._pois(), atr=1.0, side="LONG", regime="TRENDING")
        assert [e.price for e in plan.entries] == [98.0, 96.0, 94.0]
        assert [e.weight_pct for e in plan.entries] == [50.0, 30.0, 20.0]
        assert plan.average_entry == pytest.approx(96.6)
        assert plan.stop_loss == pytest.approx(92.5)
        assert [tp.price for tp in plan.take_profits] == [104.0, 108.0, 112.0]
        assert [tp.weight_pct for tp in plan.take_profits] == [30.0, 30.0, 40.0]
        assert plan.entries[0].distance_pct == pytest.approx(2.0)
        # average entry 96.6 sits 3.4% below price
        assert plan.proximity_penalty == 7.0

    def test_weights_sum_to_100(self):
        for regime in ("TRENDING", "RANGING", "VOLATILE", "EXTREME", "UNKNOWN"):
            plan = build_dca_plan(100.0, self._pois(), atr=1.0, side="LONG", regime=regime)
            assert sum(e.weight_pct for e in plan.entries) == pytest.approx(100.0)
            assert sum(tp.weight_pct for tp in plan.take_profits) == pytest.approx(100.0)

    def test_short_falls_back_to_atr(self):
        plan = build_dca_plan(100.0, ConfluenceAnalysis((), ()), atr=2.0, side="SHORT", regime="RANGING")
        assert [e.price for e in plan.entries] == [103.0, 105.0, 107.0]
        assert plan.stop_loss == pytest.approx(110.0)
        assert plan.average_entry == pytest.approx(104.8)
        assert [tp.price for tp in plan.take_profits] == pytest.approx([100.8, 96.8, 92.8])

    def test_fibonacci_fills_missing_levels(self):
        fib = replace(
            PLACEHOLDER.fibonacci,
            level0_618=97.0, level0_65=96.9, level0_5=101.0, level0_786=95.0, level0_886=94.0,
        )
        pois = ConfluenceAnalysis(supports=(_poi(99.0, "SUPPORT"),), resistances=())
        plan = build_dca_plan(100.0, pois, atr=1.0, side="LONG", regime="RANGING", fibonacci=fib)
        assert [e.price for e in plan.entries] == [99.0, 97.0, 95.0]
        assert plan.entries[1].factors == ("Golden Pocket (0.618)",)

    def test_distant_entries_are_penalised(self):
        plan = build_dca_plan(100.0, ConfluenceAnalysis((), ()), atr=4.0, side="LONG", regime="RANGING")
        assert [e.price for e in plan.entries] == [94.0, 90.0, 86.0]
        # average entry 90.4 sits 9.6% below price
        assert plan.proximity_penalty == 19.0

    def test_close_average_entry_is_not_penalised(self):
        pois = ConfluenceAnalysis(
            supports=(_poi(99.5, "SUPPORT"), _poi(99.0, "SUPPORT"), _poi(98.5, "SUPPORT")),
            resistances=(),
        )
        plan = build_dca_plan(100.0, pois, atr=1.0, side="LONG", regime="RANGING")
        assert plan.proximity_penalty == 0.0

    def test_penalty_is_capped(self):
        plan = build_dca_plan(100.0, ConfluenceAnalysis((), ()), atr=10.0, side="LONG", regime="RANGING")
        assert plan.proximity_penalty == 30.0

    def test_zero_atr_still_plans_three_entries(self):
        plan = build_dca_plan(100.0, ConfluenceAnalysis((), ()), atr=0.0, side="LONG", regime="TRENDING")
        assert len(plan.entries) == 3
        assert sum(e.weight_pct for e in plan.entries) == pytest.approx(100.0)
        assert plan.average_entry == pytest.approx(100.0)
        assert plan.proximity_penalty == 0.0

    def test_atr_fill_does_not_skip_levels_near_a_poi(self):
        pois = ConfluenceAnalysis(supports=(_poi(97.0, "SUPPORT"),), resistances=())
        plan = build_dca_plan(100.0, pois, atr=2.0, side="LONG", regime="RANGING")
        assert [e.price for e in plan.entries] == [97.0, 97.0, 95.0]
        assert sum(e.weight_pct for e in plan.entries) == pytest.approx(100.0)

    @pytest.mark.parametrize("atr", [0.5, 1.0, 5.0])
    @pytest.mark.parametrize("side", ["LONG", "SHORT"])
    def test_atr_wider_than_price(self, atr, side):
        plan = build_dca_plan(1.0, ConfluenceAnalysis((), ()), atr=atr, side=side, regime="RANGING")
        assert len(plan.entries) == 3
        assert sum(e.weight_pct for e in plan.entries) == pytest.approx(100.0)
        assert all(e.price > 0 for e in plan.entries)
        assert plan.stop_loss > 0
        assert all(tp.price > 0 for tp in plan.take_profits)

    def test_neutral_side_rejected(self):
        with pytest.raises(ValueError, match="NEUTRAL"):
            build_dca_plan(100.0, self._pois(), atr=1.0, side="NEUTRAL", regime="RANGING")


# ── Sessions ─────────────────────────────────────────────────────────────


class TestMarketSession:
    def _at(self, *args):
        return MarketSession().analyze(datetime(*args, tzinfo=timezone.utc))

    def test_new_york_morning_overlaps_london(self):
        state = self._at(2025, 1, 15, 13, 0)
        assert state.active == ("LONDON", "NEW_YORK")
        assert state.primary == "OVERLAP"
        assert not state.in_kill_zone

    def test_london_open_kill_zone(self):
        state = self._at(2025, 1, 15, 8, 5)
        assert state.kill_zone == "London open"
        assert state.primary == "LONDON"
        assert "ASIA" in state.active

    def test_london_open_tracks_daylight_saving(self):
        assert self._at(2025, 7, 15, 7, 0).kill_zone == "London open"
        assert self._at(2025, 7, 15, 8, 0).kill_zone is None

    def test_new_york_open(self):
        assert self._at(2025, 1, 15, 14, 30).kill_zone == "New York open"

    def test_naive_datetime_is_utc(self):
        assert MarketSession().kill_zone(datetime(2025, 1, 15, 8, 5)) == "London open"

    def test_asia_only(self):
        state = self._at(2025, 1, 15, 0, 30)
        assert state.active == ("ASIA",)
        assert state.primary == "ASIA"

    def test_between_sessions(self):
        state = self._at(2025, 1, 15, 22, 0)
        assert state.active == ()
        assert state.primary == "OTHER"
