"""Volume profile — point of control, value area and low-volume nodes."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from signalforge.models.candle import Candle
from signalforge.models.snapshot import EMPTY_VOLUME_PROFILE, VolumeProfile

VALUE_AREA_SHARE = 0.7
MAX_BINS = 500


def calculate_volume_profile(candles: Sequence[Candle], atr: float) -> VolumeProfile:
    """Distribute each bar's volume over ATR/2-wide price bins.

    A bar's volume is split across the bins its high-low range overlaps, in
    proportion to the overlap; a zero-range bar puts all volume in the bin
    holding its close. The POC is the heaviest bin centre; the value area is
    the smallest set of heaviest bins holding 70% of the volume. Low-volume
    nodes are local minima below half the mean bin volume.
    """
    if not candles or atr <= 0:
        return EMPTY_VOLUME_PROFILE

    lows = np.array([c.low for c in candles], dtype=float)
    highs = np.array([c.high for c in candles], dtype=float)
    volumes = np.array([c.volume for c in candles], dtype=float)
    min_price = float(lows.min())
    max_price = float(highs.max())

    bin_size = atr / 2
    num_bins = max(1, math.ceil((max_price - min_price) / bin_size))
    if num_bins > MAX_BINS:
        num_bins = MAX_BINS
        bin_size = (max_price - min_price) / num_bins

    edges = min_price + bin_size * np.arange(num_bins + 1)
    bin_low = edges[:-1]
    bin_high = edges[1:]
    centres = bin_low + bin_size / 2
    bins = np.zeros(num_bins)

    for low, high, volume, close in zip(lows, highs, volumes, (c.close for c in candles)):
        span = high - low
        if span == 0:
            idx = min(int((close - min_price) // bin_size), num_bins - 1)
            bins[idx] += volume
            continue
        overlap = np.minimum(high, bin_high) - np.maximum(low, bin_low)
        overlap = np.clip(overlap, 0.0, None)
        bins += volume * overlap / span

    total = float(volumes.sum())
    poc = float(centres[int(np.argmax(bins))])

    order = np.argsort(-bins, kind="stable")
    cumulative = np.cumsum(bins[order])
    cutoff = int(np.searchsorted(cumulative, total * VALUE_AREA_SHARE)) + 1
    area = centres[order[: max(1, min(cutoff, num_bins))]]

    nodes: list[float] = []
    if num_bins > 2:
        mean_bin = total / num_bins
        for i in range(1, num_bins - 1):
            if bins[i] < bins[i - 1] and bins[i] < bins[i + 1] and bins[i] < mean_bin * 0.5:
                nodes.append(float(centres[i]))

    return VolumeProfile(
        poc=poc,
        value_area_high=float(area.max()),
        value_area_low=float(area.min()),
        total_volume=total,
        low_volume_nodes=tuple(nodes),
    )
