"""Order lifecycle enumerations and the lookup tables built on them"""

from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    PREORDER = "PREORDER"
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    REPARANDO = "REPARANDO"
    COMPLETED = "COMPLETED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    APROBADO = "APROBADO"
    NO_APROBADO = "NO_APROBADO"
    PENDIENTE_AVISAR = "PENDIENTE_AVISAR"
    FACTURADO = "FACTURADO"
    ENTREGA_GENERADA = "ENTREGA_GENERADA"
    GARANTIA_APLICADA = "GARANTIA_APLICADA"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class WarrantyPriority(str, Enum):
    BAJA = "BAJA"
    MEDIA = "MEDIA"
    ALTA = "ALTA"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    WarrantyPriority.BAJA: 1,
    WarrantyPriority.MEDIA: 2,
    WarrantyPriority.ALTA: 3,
}

UNASSIGNED = "unassigned"  # Sentinel the order form sends when no technician is picked

STATUS_TEXT = {
    OrderStatus.PREORDER: "Pre-order",
    OrderStatus.PENDING: "Pending",
    OrderStatus.ASSIGNED: "Assigned",
    OrderStatus.IN_PROGRESS: "In progress",
    OrderStatus.REPARANDO: "Repairing",
    OrderStatus.COMPLETED: "Completed",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
    OrderStatus.APROBADO: "Budget approved",
    OrderStatus.NO_APROBADO: "Budget rejected",
    OrderStatus.PENDIENTE_AVISAR: "Client to be notified",
    OrderStatus.FACTURADO: "Invoiced",
    OrderStatus.ENTREGA_GENERADA: "Delivery generated",
    OrderStatus.GARANTIA_APLICADA: "Warranty applied",
}

STATUS_EMOJI = {
    OrderStatus.PREORDER: "🟡",
    OrderStatus.PENDING: "⏳",
    OrderStatus.ASSIGNED: "👨‍🔧",
    OrderStatus.IN_PROGRESS: "🔧",
    OrderStatus.REPARANDO: "🔧",
    OrderStatus.COMPLETED: "✅",
    OrderStatus.DELIVERED: "🚚",
    OrderStatus.CANCELLED: "❌",
    OrderStatus.APROBADO: "👍",
    OrderStatus.NO_APROBADO: "👎",
    OrderStatus.PENDIENTE_AVISAR: "📣",
    OrderStatus.FACTURADO: "🧾",
    OrderStatus.ENTREGA_GENERADA: "📦",
    OrderStatus.GARANTIA_APLICADA: "🛡️",
}

# (title, emoji) for status-change notifications
STATUS_NOTIFICATION_TITLES = {
    OrderStatus.COMPLETED: ("SERVICE COMPLETED", "✅"),
    OrderStatus.DELIVERED: ("EQUIPMENT DELIVERED", "🚚"),
    OrderStatus.APROBADO: ("BUDGET APPROVED", "👍"),
    OrderStatus.NO_APROBADO: ("BUDGET REJECTED", "👎"),
    OrderStatus.IN_PROGRESS: ("SERVICE IN PROGRESS", "🔧"),
    OrderStatus.ASSIGNED: ("TECHNICIAN ASSIGNED", "👨‍🔧"),
    OrderStatus.GARANTIA_APLICADA: ("WARRANTY APPLIED", "🛡️"),
    OrderStatus.CANCELLED: ("ORDER CANCELLED", "❌"),
}
DEFAULT_NOTIFICATION_TITLE = ("ORDER UPDATED", "🔄")
RESCHEDULED_NOTIFICATION_TITLE = ("ORDER RESCHEDULED", "📅")

PAYMENT_METHOD_TEXT = {
    "CASH": "Cash",
    "TRANSFER": "Bank transfer",
    "ZELLE": "Zelle",
    "CARD": "Card",
    "PAYPAL": "PayPal",
    "OTHER": "Other",
}


def parse_status(value) -> Optional[OrderStatus]:
    """Return the OrderStatus for value, or None if it is not a known status"""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        return None


def parse_priority(value) -> Optional[WarrantyPriority]:
    if isinstance(value, WarrantyPriority):
        return value
    try:
        return WarrantyPriority(value)
    except ValueError:
        return None


def status_text(status) -> str:
    parsed = parse_status(status)
    return STATUS_TEXT[parsed] if parsed else str(status)


def status_emoji(status) -> str:
    parsed = parse_status(status)
    return STATUS_EMOJI.get(parsed, "📋") if parsed else "📋"


def notification_title(new_status, rescheduled: bool = False) -> tuple[str, str]:
    """Title and emoji for a status-change message; unknown statuses get the generic title"""
    parsed = parse_status(new_status)
    if parsed == OrderStatus.PENDING and rescheduled:
        return RESCHEDULED_NOTIFICATION_TITLE
    return STATUS_NOTIFICATION_TITLES.get(parsed, DEFAULT_NOTIFICATION_TITLE)


def payment_method_text(method: str) -> str:
    return PAYMENT_METHOD_TEXT.get(method, method)
