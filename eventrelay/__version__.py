"""Version information for eventrelay."""

__title__ = "eventrelay"
__description__ = "Webhook-forwarding proxy with subscription handshake, retries and canary fallback"
__version__ = "0.3.0"
