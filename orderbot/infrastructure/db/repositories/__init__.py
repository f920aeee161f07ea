from .operator_repository import OperatorRepository
from .order_repository import OrderRepository
from .whatsapp_repository import WhatsAppDeadLetterRepository

__all__ = [
    "OrderRepository",
    "OperatorRepository",
    "WhatsAppDeadLetterRepository",
]
