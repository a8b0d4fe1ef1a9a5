"""Service order error taxonomy"""


class OrderEngineError(Exception):
    """Base class for every error raised by the order engine"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OrderEngineError):
    """Missing reference, non-positive amount, unknown enum value"""

    status_code = 400


class NotFound(OrderEngineError):
    status_code = 404


class ExhaustedRetries(OrderEngineError):
    """No unique order code after the configured number of attempts - the user may retry"""

    status_code = 409


class PersistenceError(OrderEngineError):
    """Infrastructure failure; callers only see an opaque message"""

    status_code = 500


class NotificationError(OrderEngineError):
    """A messaging channel failed. Never leaves the notification dispatcher."""

    status_code = 502


class DuplicateOrderCode(Exception):
    """Storage rejected an order code that passed the existence check"""

    def __init__(self, code: str):
        super().__init__(f"Order code already taken: {code}")
        self.code = code
