from gatehouse.gateways.base import GatewayError, NotificationGateway
from gatehouse.gateways.logging_gateway import LoggingGateway
from gatehouse.gateways.socket_gateway import SocketGateway
from gatehouse.gateways.webhook_gateway import WebhookGateway

__all__ = [
    "GatewayError",
    "LoggingGateway",
    "NotificationGateway",
    "SocketGateway",
    "WebhookGateway",
]
