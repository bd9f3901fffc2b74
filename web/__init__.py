"""
MarketPulse Gateway Module.

Read-only proxy between the dashboard and the upstream data-plane API:
- Credential injection (header only)
- Default query parameters for market events
- Normalized error envelopes
"""

from .gateway import ProxyGateway, ProxyResponse
from .main import create_app

__all__ = [
    'ProxyGateway',
    'ProxyResponse',
    'create_app',
]
