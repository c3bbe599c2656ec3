from .gateway_session import GatewaySession, create_gateway_session

__all__ = ["GatewaySession", "create_gateway_session"]
