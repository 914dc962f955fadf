"""Monitoring Layer - Engine events and portfolio history.

Components:
- EventBus: Non-blocking event channel with background delivery
- EventLog: Bounded buffer of recent events
- PortfolioHistory: Rolling total-asset series
"""

from quantcore.monitoring.events import (
    EngineEvent,
    EngineEventType,
    EventBus,
    EventLog,
)
from quantcore.monitoring.history import PortfolioHistory, PortfolioSnapshot

__all__ = [
    "EventBus",
    "EventLog",
    "EngineEvent",
    "EngineEventType",
    "PortfolioHistory",
    "PortfolioSnapshot",
]
