"""
feedgate - Resilient client gateway for rate-limited, authenticated APIs.

Serializes outbound calls, survives token expiry and throttling, caches
fetched objects and ingests each object into the record store only once.
"""

from feedgate.services.gateway_session import GatewaySession, create_gateway_session

__version__ = "0.1.0"

__all__ = ["GatewaySession", "create_gateway_session", "__version__"]
