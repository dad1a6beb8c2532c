# kiosk/domain/statuses.py
from enum import Enum


class OrderStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CANCELED = "canceled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    AUTHORIZED = "authorized"
    CANCELED = "canceled"
    EXPIRED = "expired"


class GatewayStatus(str, Enum):
    """Normalized status of a payment as reported by the gateway."""

    PENDING = "pending"
    APPROVED = "approved"
    AUTHORIZED = "authorized"
    CANCELED = "canceled"
    REJECTED = "rejected"
    ERROR = "error"


SUCCESS_STATUSES = frozenset({GatewayStatus.APPROVED, GatewayStatus.AUTHORIZED})
FAILURE_STATUSES = frozenset({GatewayStatus.CANCELED, GatewayStatus.REJECTED, GatewayStatus.ERROR})
TERMINAL_STATUSES = SUCCESS_STATUSES | FAILURE_STATUSES

# point intents in these states can be dropped from the device
STALE_INTENT_STATES = frozenset({"FINISHED", "CANCELED", "ERROR"})

_RAW_TO_GATEWAY = {
    "approved": GatewayStatus.APPROVED,
    "authorized": GatewayStatus.AUTHORIZED,
    "pending": GatewayStatus.PENDING,
    "in_process": GatewayStatus.PENDING,
    "in_mediation": GatewayStatus.PENDING,
    "open": GatewayStatus.PENDING,
    "rejected": GatewayStatus.REJECTED,
    "refunded": GatewayStatus.REJECTED,
    "charged_back": GatewayStatus.REJECTED,
    "cancelled": GatewayStatus.CANCELED,
    "canceled": GatewayStatus.CANCELED,
    "error": GatewayStatus.ERROR,
}


def normalize_gateway_status(raw: str | None) -> GatewayStatus:
    if not raw:
        return GatewayStatus.PENDING
    return _RAW_TO_GATEWAY.get(str(raw).lower(), GatewayStatus.PENDING)


def normalize_payment_id(value) -> str | None:
    """Gateway ids are stored as plain strings; objects and arrays become None."""
    if value is None:
        return None
    if isinstance(value, (dict, list, tuple, set)):
        return None
    if isinstance(value, bool):
        return None
    text = str(value).strip()
    if not text or text == "[object Object]":
        return None
    return text
