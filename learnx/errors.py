"""Error taxonomy shared by the payment, catalog and notes flows."""


class LearnxError(Exception):
    status_code = 500
    default_message = 'An unexpected error occurred.'

    def __init__(self, message=None, status_code=None):
        self.message = str(message or self.default_message)
        if status_code is not None:
            self.status_code = int(status_code)
        super().__init__(self.message)

    def to_dict(self):
        return {'error': self.message}


class ValidationError(LearnxError):
    status_code = 400
    default_message = 'Invalid request.'


class NotFoundError(LearnxError):
    status_code = 404
    default_message = 'Not found.'


class ConfigurationError(LearnxError):
    status_code = 500
    default_message = 'Payment gateway credentials are not configured.'


class GatewayError(LearnxError):
    """Upstream payment gateway failure.

    ``transient`` marks failures worth retrying (network errors and 5xx);
    webhook callers use it to ask the gateway for redelivery.
    """

    status_code = 502
    default_message = 'Payment gateway request failed.'

    def __init__(self, message=None, status_code=None, transient=False):
        super().__init__(message, status_code)
        self.transient = bool(transient) or self.status_code >= 500


class ReconciliationConflict(LearnxError):
    """Attempted to move a payment that already left PENDING."""

    status_code = 409
    default_message = 'Payment is already finalised.'

    def __init__(self, order_id, current_status, attempted_status):
        super().__init__(
            f"Payment {order_id} is already {current_status}; refusing transition to {attempted_status}."
        )
        self.order_id = order_id
        self.current_status = current_status
        self.attempted_status = attempted_status
