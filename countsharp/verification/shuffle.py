"""
Statistical verification of the shoe shuffle.

This module checks that the Fisher-Yates shuffle used to build shoes places
every card in every position with equal probability. It shuffles an indexed
deck many times, tallies where each card lands and runs a chi-square
goodness-of-fit test against the uniform distribution.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import random

import numpy as np
import scipy.stats as stats

from countsharp.common.shoe import shuffle


@dataclass
class UniformityReport:
    """
    Result of a uniformity test on a position-frequency matrix.

    Attributes:
        chi2: Chi-square statistic over every (card, position) cell
        p_value: Probability of a statistic at least this large under a
                 uniform shuffle
        max_relative_deviation: Largest ``|observed - expected| / expected``
                                over all cells
        trials: Number of shuffles the matrix was built from
    """

    chi2: float
    p_value: float
    max_relative_deviation: float
    trials: int

    def is_uniform(self, alpha: float = 0.001) -> bool:
        """Whether the test fails to reject uniformity at significance ``alpha``."""
        return self.p_value >= alpha

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary."""
        return {
            "chi2": self.chi2,
            "p_value": self.p_value,
            "max_relative_deviation": self.max_relative_deviation,
            "trials": self.trials,
        }


def position_frequencies(
    deck_size: int = 52, trials: int = 10000, rng: Optional[random.Random] = None
) -> np.ndarray:
    """
    Shuffle an indexed deck repeatedly and count where each card ends up.

    Args:
        deck_size: Number of distinct cards
        trials: Number of shuffles
        rng: Optional random source passed to the shuffle

    Returns:
        A ``deck_size`` x ``deck_size`` integer matrix where entry
        ``[card, position]`` counts the shuffles that put ``card`` at
        ``position``
    """
    if deck_size < 2:
        raise ValueError(f"deck_size must be at least 2, got {deck_size}")
    if trials < 1:
        raise ValueError(f"trials must be positive, got {trials}")

    counts = np.zeros((deck_size, deck_size), dtype=np.int64)
    positions = np.arange(deck_size)
    cards = list(range(deck_size))
    for _ in range(trials):
        order = np.asarray(shuffle(cards, rng))
        counts[order, positions] += 1
    return counts


def uniformity_test(matrix: np.ndarray) -> UniformityReport:
    """
    Test a position-frequency matrix against a uniform shuffle.

    Every row sums to the number of trials, so each cell is expected to hold
    ``trials / n``. The statistic has ``(n - 1) ** 2`` degrees of freedom.

    Args:
        matrix: Square matrix as returned by `position_frequencies`

    Returns:
        A UniformityReport
    """
    observed = np.asarray(matrix, dtype=float)
    if observed.ndim != 2 or observed.shape[0] != observed.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {observed.shape}")

    n = observed.shape[0]
    trials = int(round(observed[0].sum()))
    if trials <= 0:
        raise ValueError("Matrix holds no observations")

    expected = trials / n
    chi2 = float(((observed - expected) ** 2 / expected).sum())
    dof = (n - 1) ** 2
    p_value = float(stats.chi2.sf(chi2, dof))
    max_dev = float(np.max(np.abs(observed - expected)) / expected)

    return UniformityReport(
        chi2=chi2, p_value=p_value, max_relative_deviation=max_dev, trials=trials
    )
