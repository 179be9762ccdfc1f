"""Gateway order creation for paid catalog items."""

import logging
import math
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from google.api_core.exceptions import AlreadyExists

from learnx.errors import GatewayError, ValidationError
from learnx.logging_config import log_event
from learnx.repositories import catalog_repo, payments_repo
from learnx.services import entitlement_service, payment_state

logger = logging.getLogger('learnx.orders')

ORDER_CURRENCY = 'INR'
ORDER_ID_RE = re.compile(r'^[A-Za-z0-9_-]{1,50}$')


@dataclass(frozen=True)
class OrderRequest:
    order_id: str
    user_id: str
    user_email: str
    user_phone: str
    user_name: str
    item_id: str
    item_name: str
    item_type: str
    price: float
    sub_folder_id: str = ''


def _clean(value, max_len=200):
    return str(value or '').strip()[:max_len]


def parse_price(raw_price):
    if isinstance(raw_price, bool) or not isinstance(raw_price, (int, float)):
        raise ValidationError('Item price must be a number.')
    if not math.isfinite(raw_price) or raw_price <= 0:
        raise ValidationError('Item price must be greater than zero.')
    return raw_price


def parse_order_request(payload, config):
    """Validate a create-order body, applying customer defaults."""
    if not isinstance(payload, dict):
        raise ValidationError('Invalid payload')
    item = payload.get('item')
    if not isinstance(item, dict):
        raise ValidationError('Item or user information is missing or invalid')

    user_id = _clean(payload.get('userId'), 128)
    order_id = _clean(payload.get('orderId'), 64)
    item_id = _clean(item.get('id'), 128)
    item_name = _clean(item.get('name'))
    item_type = _clean(payload.get('itemType'), 16).lower()
    if not user_id or not item_id or not item_name:
        raise ValidationError('Item or user information is missing or invalid')
    if not order_id or not ORDER_ID_RE.match(order_id):
        raise ValidationError('orderId is missing or invalid')
    if item_type not in catalog_repo.ITEM_TYPES:
        raise ValidationError('itemType must be one of: combo, pdf')
    sub_folder_id = _clean(item.get('subFolderId'), 128)
    if item_type == catalog_repo.ITEM_TYPE_PDF and not sub_folder_id:
        raise ValidationError('item.subFolderId is required for pdf items')

    return OrderRequest(
        order_id=order_id,
        user_id=user_id,
        user_email=_clean(payload.get('userEmail'), 160) or config.default_customer_email,
        user_phone=_clean(payload.get('userPhone'), 20) or config.default_customer_phone,
        user_name=_clean(payload.get('userName'), 120) or config.default_customer_name,
        item_id=item_id,
        item_name=item_name,
        item_type=item_type,
        price=parse_price(item.get('price')),
        sub_folder_id=sub_folder_id,
    )


def verify_catalog_price(db, order_request):
    """Reject unknown items, free items and prices that differ from the catalog."""
    catalog_item = catalog_repo.get_item(db, order_request.item_type, order_request.item_id, order_request.sub_folder_id)
    if catalog_item is None:
        raise ValidationError('This item is not in the catalog.')
    if entitlement_service.is_free(catalog_item):
        raise ValidationError('This item is free and does not require payment.')
    try:
        catalog_price = Decimal(str(catalog_item.get('price')))
    except (InvalidOperation, ValueError):
        raise ValidationError('This item is not available for purchase.')
    if catalog_price != Decimal(str(order_request.price)):
        raise ValidationError('Item price has changed. Please refresh and try again.')
    return catalog_item


def build_gateway_payload(order_request, config, fallback_base_url=''):
    return {
        'order_id': order_request.order_id,
        'order_amount': order_request.price,
        'order_currency': ORDER_CURRENCY,
        'order_note': f"Payment for {order_request.item_name}",
        'customer_details': {
            'customer_id': order_request.user_id,
            'customer_email': order_request.user_email,
            'customer_phone': order_request.user_phone,
            'customer_name': order_request.user_name,
        },
        'order_meta': {
            'return_url': config.build_return_url(fallback_base_url),
            'notify_url': config.build_notify_url(fallback_base_url),
        },
        'order_tags': {
            'itemId': order_request.item_id,
            'itemType': order_request.item_type,
            'userId': order_request.user_id,
        },
    }


def build_pending_record(order_request, payment_session_id, now_ts):
    return {
        'orderId': order_request.order_id,
        'userId': order_request.user_id,
        'itemId': order_request.item_id,
        'itemType': order_request.item_type,
        'itemName': order_request.item_name,
        'amount': order_request.price,
        'currency': ORDER_CURRENCY,
        'status': payment_state.PENDING,
        'paymentSessionId': payment_session_id,
        'source': 'create',
        'createdAt': now_ts,
        'updatedAt': now_ts,
    }


def create_order(ctx, order_request, fallback_base_url=''):
    """Create the gateway order and persist its PENDING PaymentIntent.

    Returns ``{'payment_session_id', 'order_id'}`` for the checkout SDK.
    """
    gateway = ctx.require_gateway()
    db = ctx.require_db()
    verify_catalog_price(db, order_request)
    if payments_repo.get_doc(db, order_request.order_id).exists:
        raise ValidationError('This orderId has already been used.')

    payload = build_gateway_payload(order_request, ctx.config, fallback_base_url)
    response = gateway.create_order(payload) or {}
    payment_session_id = str(response.get('payment_session_id') or '').strip()
    if not payment_session_id:
        raise GatewayError('Payment gateway did not return a payment session.', status_code=502)

    record = build_pending_record(order_request, payment_session_id, ctx.time.time())
    try:
        payments_repo.create_doc(db, order_request.order_id, record)
    except AlreadyExists:
        # A reconciliation path reconstructed the record first; keep its state.
        logger.warning(f"Payment record for {order_request.order_id} already existed at creation time.")

    log_event(logger, logging.INFO, 'order_created', order_id=order_request.order_id, user_id=order_request.user_id,
              item_id=order_request.item_id, item_type=order_request.item_type, amount=order_request.price)
    return {'payment_session_id': payment_session_id, 'order_id': order_request.order_id}
