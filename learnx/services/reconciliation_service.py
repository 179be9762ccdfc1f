"""Single reconciliation path for gateway orders.

The webhook, the browser redirect, the client status poll, the historical
sync and the periodic sweep all finish a payment through
``apply_gateway_order``. It moves ``payments/{orderId}`` out of PENDING and
grants the item inside one Firestore transaction, so a payment is never
marked SUCCESS without the entitlement (or the reverse). Because the status
is re-read inside the transaction, concurrent callers grant at most once.
"""

import logging
from dataclasses import dataclass

import sentry_sdk

from learnx.errors import ReconciliationConflict, ValidationError
from learnx.logging_config import log_event
from learnx.repositories import payments_repo, users_repo
from learnx.services import payment_state

logger = logging.getLogger('learnx.reconciliation')

SOURCES = ('webhook', 'redirect', 'poll', 'sync', 'sweep')
DEFAULT_FAILURE_REASON = 'Payment failed or was cancelled.'


@dataclass(frozen=True)
class ReconcileResult:
    order_id: str
    status: str
    outcome: str

    @property
    def granted(self):
        return self.outcome == payment_state.OUTCOME_GRANTED

    def to_dict(self):
        return {'order_id': self.order_id, 'status': self.status, 'outcome': self.outcome}


def normalize_order_id(raw_value):
    return str(raw_value or '').strip()


def order_tags(order):
    tags = order.get('order_tags') or {}
    return tags if isinstance(tags, dict) else {}


def build_record_from_order(order, order_id, now_ts):
    """Rebuild a PaymentIntent from the tags embedded at order creation."""
    tags = order_tags(order)
    return {
        'orderId': order_id,
        'userId': str(tags.get('userId') or '').strip(),
        'itemId': str(tags.get('itemId') or '').strip(),
        'itemType': str(tags.get('itemType') or '').strip(),
        'amount': order.get('order_amount', 0),
        'currency': order.get('order_currency') or 'INR',
        'status': payment_state.PENDING,
        'createdAt': now_ts,
        'reconstructed': True,
    }


def apply_gateway_order(ctx, order, source):
    """Apply an authoritative gateway order to the local PaymentIntent.

    ``order`` must come from the gateway API, never from a client payload.
    """
    order_id = normalize_order_id(order.get('order_id'))
    if not order_id:
        raise ValidationError('Gateway order is missing order_id.')
    gateway_status = str(order.get('order_status') or '').strip().upper()
    target = payment_state.status_for_gateway(gateway_status)
    db = ctx.require_db()
    firestore_module = ctx.firestore
    payment_ref = payments_repo.doc_ref(db, order_id)
    now_ts = ctx.time.time()

    @firestore_module.transactional
    def _apply(transaction):
        snapshot = payment_ref.get(transaction=transaction)
        record = (snapshot.to_dict() or {}) if snapshot.exists else None
        current = payment_state.normalize_status(record.get('status')) if record else payment_state.PENDING

        if target == payment_state.PENDING:
            if current == payment_state.PENDING:
                return current, payment_state.OUTCOME_PENDING
            return current, payment_state.OUTCOME_ALREADY_PROCESSED
        if not payment_state.can_transition(current, target):
            raise ReconciliationConflict(order_id, current, target)

        if record is None:
            record = build_record_from_order(order, order_id, now_ts)
        user_id = str(record.get('userId') or '').strip()
        item_id = str(record.get('itemId') or '').strip()
        if target == payment_state.SUCCESS and (not user_id or not item_id):
            raise ValidationError(f"Cannot grant order {order_id}: user or item is unknown.")

        updates = dict(record)
        updates.update({
            'orderId': order_id,
            'status': target,
            'gatewayStatus': gateway_status,
            'source': source,
            'updatedAt': now_ts,
        })
        updates.setdefault('createdAt', now_ts)
        if target == payment_state.FAILED:
            updates['error'] = DEFAULT_FAILURE_REASON
            transaction.set(payment_ref, updates, merge=True)
            return target, payment_state.OUTCOME_FAILED

        transaction.set(payment_ref, updates, merge=True)
        transaction.set(
            users_repo.doc_ref(db, user_id),
            {'purchasedItems': firestore_module.ArrayUnion([item_id])},
            merge=True,
        )
        return target, payment_state.OUTCOME_GRANTED

    try:
        status, outcome = _apply(db.transaction())
    except ReconciliationConflict as conflict:
        if conflict.current_status == conflict.attempted_status:
            log_event(logger, logging.INFO, 'payment_reconcile_duplicate', order_id=order_id, source=source,
                      status=conflict.current_status)
        else:
            log_event(logger, logging.WARNING, 'payment_reconcile_conflict', order_id=order_id, source=source,
                      status=conflict.current_status, gateway_status=gateway_status)
            sentry_sdk.capture_message(f"Payment {order_id} conflict: {conflict.message}", level='warning')
        return ReconcileResult(order_id, conflict.current_status, payment_state.OUTCOME_ALREADY_PROCESSED)

    log_event(logger, logging.INFO, 'payment_reconciled', order_id=order_id, source=source, status=status,
              outcome=outcome, gateway_status=gateway_status)
    return ReconcileResult(order_id, status, outcome)


def reconcile_order(ctx, order_id, source):
    """Fetch ``order_id`` from the gateway and apply its status locally.

    Safe to call any number of times, from any path, concurrently.
    """
    order_id = normalize_order_id(order_id)
    if not order_id:
        raise ValidationError('Order ID is required')
    gateway = ctx.require_gateway()
    order = dict(gateway.get_order(order_id) or {})
    order.setdefault('order_id', order_id)
    if normalize_order_id(order.get('order_id')) != order_id:
        raise ValidationError(f"Gateway returned a different order for {order_id}.")
    return apply_gateway_order(ctx, order, source)
