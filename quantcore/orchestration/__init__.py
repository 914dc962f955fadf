"""Orchestration Layer - Coordinates feed, allocator, order queue and ledger.

This module provides the trading engine and the scheduler that runs its
evaluation, drain and settlement jobs.
"""

from quantcore.orchestration.engine import EngineSettings, EngineState, TradingEngine
from quantcore.orchestration.scheduler import TradingScheduler

__all__ = [
    "TradingEngine",
    "EngineSettings",
    "EngineState",
    "TradingScheduler",
]
