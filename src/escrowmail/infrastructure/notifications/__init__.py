from .logging_gateway import LoggingGateway
from .resend_gateway import ResendGateway

__all__ = ["LoggingGateway", "ResendGateway"]
