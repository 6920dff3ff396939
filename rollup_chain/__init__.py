"""
rollup-chain: TimescaleDB continuous aggregate chains.

Derives one continuous aggregate per (scope, timeframe) pair, each
timeframe rolled up from the previous one, and manages their lifecycle.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

__version__ = "0.1.0"
