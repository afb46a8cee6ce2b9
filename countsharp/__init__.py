"""
countsharp: a single-table blackjack engine with Hi-Lo card counting.
"""

__version__ = "0.1.0"
