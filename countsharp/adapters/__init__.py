"""
Platform adapters for the countsharp engine.

This package provides adapters that present the engine's snapshots on a
particular platform (terminal, tests, ...).
"""

from countsharp.adapters.base import PlatformAdapter
from countsharp.adapters.cli import CLIAdapter
from countsharp.adapters.dummy import DummyAdapter

__all__ = ["PlatformAdapter", "CLIAdapter", "DummyAdapter"]
