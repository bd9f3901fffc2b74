"""
Dashboard Module for MarketPulse

Turns raw data-plane JSON into bounded, human-meaningful signals:
- Stream lag bands
- Market event direction (new markets / price jumps)
- Strategy rankings with stale-while-error fallback
"""

from dashboard.lag import LagBand, LagLevel, LagPolicy, classify_lag, get_lag_policy
from dashboard.events import Direction, EventClassification, classify_event
from dashboard.feeds import EventFeedController, EventTab
from dashboard.strategies import StrategyBoard, rank_strategies, top_strategies

__all__ = [
    'LagBand',
    'LagLevel',
    'LagPolicy',
    'classify_lag',
    'get_lag_policy',
    'Direction',
    'EventClassification',
    'classify_event',
    'EventFeedController',
    'EventTab',
    'StrategyBoard',
    'rank_strategies',
    'top_strategies',
]
