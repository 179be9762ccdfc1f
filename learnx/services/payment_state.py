"""PaymentIntent lifecycle: PENDING -> SUCCESS | FAILED, both terminal."""

PENDING = 'PENDING'
SUCCESS = 'SUCCESS'
FAILED = 'FAILED'

TERMINAL_STATUSES = frozenset({SUCCESS, FAILED})
ALL_STATUSES = frozenset({PENDING, SUCCESS, FAILED})

# Gateway order_status values.
GATEWAY_PAID = 'PAID'
GATEWAY_ACTIVE = 'ACTIVE'
GATEWAY_FAILURE_STATUSES = frozenset({
    'EXPIRED',
    'TERMINATED',
    'TERMINATION_REQUESTED',
    'FAILED',
    'CANCELLED',
})

OUTCOME_GRANTED = 'granted'
OUTCOME_FAILED = 'failed'
OUTCOME_PENDING = 'pending'
OUTCOME_ALREADY_PROCESSED = 'already_processed'


def normalize_status(value):
    status = str(value or '').strip().upper()
    return status if status in ALL_STATUSES else PENDING


def status_for_gateway(order_status):
    """Map a gateway order_status onto the local status it implies."""
    gateway_status = str(order_status or '').strip().upper()
    if gateway_status == GATEWAY_PAID:
        return SUCCESS
    if gateway_status in GATEWAY_FAILURE_STATUSES:
        return FAILED
    return PENDING


def can_transition(current, target):
    return normalize_status(current) == PENDING and target in TERMINAL_STATUSES
