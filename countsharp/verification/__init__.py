"""
Verification tools for the countsharp engine.

This package provides statistical checks on the randomness of the shoe.
"""

from countsharp.verification.shuffle import (
    UniformityReport,
    position_frequencies,
    uniformity_test,
)

__all__ = ["UniformityReport", "position_frequencies", "uniformity_test"]
