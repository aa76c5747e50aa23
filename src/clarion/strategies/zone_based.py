"""
Zone-based DCA allocation model.

The observed z-score range is cut into contiguous zones of fixed width,
starting at the lowest z-score. Rare undervalued zones (upper edge below 0)
earn a bonus on top of the baseline multiplier; every other zone keeps the
baseline. The model never allocates below baseline.

Pure deterministic logic, no side effects.
"""
import math
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from clarion.core.logging import logger


@dataclass
class Zone:
    min_z: float
    max_z: float
    day_count: int
    rarity: float  # day_count / total days with a finite z-score
    index: int = 0  # bin position counted from the lowest z-score


@dataclass
class ZoneAllocation:
    zone: Zone
    allocation_multiplier: float


# Bin indices stay exact in float64 up to 2**53
MAX_ZONE_INDEX = 2 ** 53


def _zone_indices(values: np.ndarray, min_z: float, zone_size: float, last_index: int) -> np.ndarray:
    indices = np.floor((values - min_z) / zone_size)
    # The maximum z-score lands exactly on the last upper edge
    return np.clip(indices, 0, last_index).astype(np.int64)


def create_zones(z_scores: Sequence[float], zone_size: float = 0.25) -> List[Zone]:
    """
    Partition the finite z-scores into zones of width `zone_size`.

    Bins are laid out contiguously from the lowest z-score; only bins that
    hold at least one day are returned, so a tiny zone size costs no more
    than one zone per day.

    Returns:
        Occupied zones ordered from the lowest z-score upwards; empty when
        there are no finite z-scores.

    Raises:
        ValueError: If zone_size <= 0, or so small that bin indices overflow
    """
    if zone_size <= 0:
        raise ValueError("Zone size must be positive")

    z = np.asarray(z_scores, dtype=float)
    finite = z[np.isfinite(z)]
    if len(finite) == 0:
        return []

    min_z = float(finite.min())
    z_range = float(finite.max()) - min_z
    span = z_range / zone_size
    if not math.isfinite(span) or span >= MAX_ZONE_INDEX:
        raise ValueError(f"Zone size {zone_size} is too small for a z-score range of {z_range}")
    last_index = int(math.floor(span))

    indices, counts = np.unique(
        _zone_indices(finite, min_z, zone_size, last_index), return_counts=True
    )

    total = len(finite)
    return [
        Zone(
            min_z=min_z + int(i) * zone_size,
            max_z=min_z + (int(i) + 1) * zone_size,
            day_count=int(count),
            rarity=int(count) / total,
            index=int(i),
        )
        for i, count in zip(indices, counts)
    ]


def calculate_zone_allocations(
    zones: Sequence[Zone],
    baseline_multiplier: float = 1.0,
    max_bonus: float = 1.5,
) -> List[ZoneAllocation]:
    """
    Map each zone to an allocation multiplier.

    Formula:
        upper edge < 0:  baseline + (1 - rarity) * max_bonus
        otherwise:       baseline
    """
    allocations = []
    for zone in zones:
        if zone.max_z < 0:
            multiplier = baseline_multiplier + (1.0 - zone.rarity) * max_bonus
        else:
            multiplier = baseline_multiplier
        allocations.append(ZoneAllocation(zone=zone, allocation_multiplier=multiplier))
    return allocations


def log_zone_info(zones: Sequence[Zone], allocations: Sequence[ZoneAllocation]) -> None:
    for allocation in allocations:
        zone = allocation.zone
        logger.debug(
            f"Zone [{zone.min_z:+.2f}, {zone.max_z:+.2f}): "
            f"{zone.day_count} days, rarity={zone.rarity:.3f}, "
            f"multiplier={allocation.allocation_multiplier:.3f}"
        )


def zone_based_allocation(
    z_scores: Sequence[float],
    zone_size: float = 0.25,
    baseline_multiplier: float = 1.0,
    max_bonus: float = 1.5,
) -> np.ndarray:
    """
    Per-day allocation multipliers from the zone table.

    Args:
        z_scores: Z-score per day (negative = undervalued)
        zone_size: Width of each zone in standard deviations
        baseline_multiplier: Multiplier for non-undervalued days
        max_bonus: Largest bonus, reached as a zone's rarity approaches 0

    Returns:
        numpy array of multipliers in [baseline, baseline + max_bonus].
        Days with a non-finite z-score get the baseline.
    """
    z = np.asarray(z_scores, dtype=float)
    multipliers = np.full(len(z), float(baseline_multiplier))

    zones = create_zones(z, zone_size)
    if not zones:
        return multipliers

    allocations = calculate_zone_allocations(zones, baseline_multiplier, max_bonus)
    log_zone_info(zones, allocations)

    by_index = {a.zone.index: a.allocation_multiplier for a in allocations}
    finite = np.isfinite(z)
    indices = _zone_indices(z[finite], zones[0].min_z, zone_size, zones[-1].index)
    multipliers[finite] = [by_index[int(i)] for i in indices]

    return multipliers
