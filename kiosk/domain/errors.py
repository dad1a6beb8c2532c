# kiosk/domain/errors.py


class KioskError(Exception):
    """Base for errors the API surfaces to callers."""

    status_code = 400


class ValidationError(KioskError):
    status_code = 400


class InsufficientStock(KioskError):
    status_code = 409

    def __init__(self, product_id: int, requested: int, available: int | None):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}"
        )


class DeviceNotConfigured(KioskError):
    status_code = 400

    def __init__(self, message: str = "Terminal device id is not configured for this store"):
        super().__init__(message)


class GatewayUnavailable(KioskError):
    status_code = 503


class NotFound(KioskError):
    status_code = 404


class FinalizationError(KioskError):
    status_code = 409


class FinalizationConflict(FinalizationError):
    """Order left `pending` before the payment could be applied."""

    def __init__(self, order_id: int, payment_status: str, payment_id: str | None = None):
        self.order_id = order_id
        self.payment_status = payment_status
        self.payment_id = payment_id
        super().__init__(
            f"Order {order_id} is already {payment_status}; payment {payment_id} "
            f"queued for manual reconciliation"
        )


class OrderNotFound(NotFound, FinalizationError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")
