"""Descriptive statistics over per-iteration durations."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class DurationStats:
    """Summary of a non-empty duration sequence, in seconds.

    Attributes:
        iterations: Number of samples.
        min: Smallest sample.
        max: Largest sample.
        mean: Arithmetic mean.
        median: Median; the mean of the two central values for even counts.
        stdev: Population standard deviation.
        p95: 95th percentile by nearest rank.
        p99: 99th percentile by nearest rank.
        total: Sum of all samples.
    """

    iterations: int
    min: float
    max: float
    mean: float
    median: float
    stdev: float
    p95: float
    p99: float
    total: float


def nearest_rank(sorted_samples: np.ndarray, quantile: float) -> float:
    """Sample at index `floor(n * quantile)`, clamped to the last sample."""
    index = min(int(len(sorted_samples) * quantile), len(sorted_samples) - 1)
    return float(sorted_samples[index])


def summarize_durations(durations: Sequence[float]) -> DurationStats:
    """Compute descriptive statistics for a duration sequence.

    Args:
        durations: Per-iteration durations in seconds.

    Returns:
        DurationStats for the sequence.

    Raises:
        ValueError: If the sequence is empty.
    """
    samples = np.sort(np.asarray(durations, dtype=np.float64))
    if samples.size == 0:
        raise ValueError("cannot summarize an empty duration sequence")

    minimum = float(samples[0])
    maximum = float(samples[-1])
    # Keep rounding error from pushing the mean outside the sample range.
    mean = min(max(float(np.mean(samples)), minimum), maximum)

    return DurationStats(
        iterations=int(samples.size),
        min=minimum,
        max=maximum,
        mean=mean,
        median=float(np.median(samples)),
        stdev=float(np.std(samples)),
        p95=nearest_rank(samples, 0.95),
        p99=nearest_rank(samples, 0.99),
        total=float(np.sum(samples)),
    )
