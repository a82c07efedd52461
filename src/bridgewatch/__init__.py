"""Historical drawbridge opening analytics: cells, streaks, cascades and predictions."""

from .config import EngineConfig
from .service import AnalyticsRunResult, BridgeAnalyticsService

__all__ = ["AnalyticsRunResult", "BridgeAnalyticsService", "EngineConfig"]
