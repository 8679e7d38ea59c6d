"""
eventrelay - Webhook-forwarding proxy for push-based event sources.

Terminates the event source's subscription handshake and relays accepted
events to a downstream callback with bounded retries and canary fallback.
"""

from eventrelay.__version__ import __version__, __title__, __description__
from eventrelay.core.config import RelayConfig, get_config
from eventrelay.webhooks.server import create_app

__all__ = [
    "__version__",
    "__title__",
    "__description__",
    "RelayConfig",
    "get_config",
    "create_app",
]
