"""Business logic handlers for payment APIs."""

import logging
from urllib.parse import urlencode

from flask import redirect

from learnx.errors import ConfigurationError, GatewayError, LearnxError, ValidationError
from learnx.services import order_service, payment_state, rate_limit_service, reconciliation_service

REDIRECT_RESULTS = {
    payment_state.SUCCESS: 'success',
    payment_state.FAILED: 'failed',
    payment_state.PENDING: 'pending',
}


def create_order(ctx, request):
    order_request = order_service.parse_order_request(request.get_json(silent=True) or {}, ctx.config)
    allowed, retry_after = rate_limit_service.check_rate_limit(
        ctx,
        key=f"create_order:{rate_limit_service.normalize_key_part(order_request.user_id, fallback='anon_uid')}",
        limit=ctx.config.create_order_rate_limit_max_requests,
        window_seconds=ctx.config.create_order_rate_limit_window_seconds,
    )
    if not allowed:
        ctx.logger.info(f"Create-order rate limit hit for user {order_request.user_id}")
        return rate_limit_service.build_rate_limited_response(
            ctx,
            'Too many payment attempts. Please wait before starting another checkout.',
            retry_after,
        )
    result = order_service.create_order(ctx, order_request, fallback_base_url=request.host_url)
    return ctx.jsonify(result), 200


def get_payment_status(ctx, request):
    order_id = reconciliation_service.normalize_order_id(request.args.get('order_id'))
    if not order_id:
        return ctx.jsonify({'order_id': '', 'status': None, 'error': 'Order ID is required'}), 400
    try:
        result = reconciliation_service.reconcile_order(ctx, order_id, 'poll')
    except LearnxError as e:
        ctx.logger.warning(f"Payment status check failed for {order_id}: {e.message}")
        return ctx.jsonify({'order_id': order_id, 'status': None, 'error': e.message}), e.status_code
    return ctx.jsonify({'order_id': order_id, 'status': result.status, 'error': None}), 200


def build_result_url(ctx, result):
    return f"{ctx.config.payment_result_path}?{urlencode({'payment': result})}"


def payment_redirect(ctx, request):
    """Browser return from hosted checkout: reconcile, then drop the order id from the URL."""
    order_id = reconciliation_service.normalize_order_id(request.args.get('order_id'))
    if not order_id:
        return redirect(build_result_url(ctx, 'error'), code=302)
    try:
        result = reconciliation_service.reconcile_order(ctx, order_id, 'redirect')
    except LearnxError as e:
        ctx.logger.warning(f"Redirect reconciliation failed for {order_id}: {e.message}")
        return redirect(build_result_url(ctx, 'error'), code=302)
    return redirect(build_result_url(ctx, REDIRECT_RESULTS.get(result.status, 'pending')), code=302)


def extract_webhook_order_id(payload):
    data = payload.get('data') if isinstance(payload, dict) else None
    order = data.get('order') if isinstance(data, dict) else None
    if not isinstance(order, dict):
        return ''
    return reconciliation_service.normalize_order_id(order.get('order_id'))


def payment_webhook(ctx, request):
    """Server-to-server notification. The payload status is ignored; the gateway is re-queried."""
    raw_body = request.get_data(cache=True)
    if ctx.config.cashfree_webhook_verify:
        gateway = ctx.require_gateway()
        signature = request.headers.get('x-webhook-signature', '')
        timestamp = request.headers.get('x-webhook-timestamp', '')
        if not gateway.verify_webhook_signature(raw_body, timestamp, signature):
            ctx.logger.warning(f"Payment webhook rejected: invalid signature from {request.remote_addr}")
            return ctx.jsonify({'error': 'Invalid signature'}), 401

    order_id = extract_webhook_order_id(request.get_json(silent=True) or {})
    if not order_id:
        ctx.logger.warning('Payment webhook missing order id')
        return ctx.jsonify({'error': 'Missing required parameters'}), 400

    try:
        result = reconciliation_service.reconcile_order(ctx, order_id, 'webhook')
    except ConfigurationError:
        raise
    except GatewayError as e:
        if e.transient:
            ctx.logger.warning(f"Payment webhook for {order_id} deferred, gateway unavailable: {e.message}")
            return ctx.jsonify({'error': e.message}), 503
        ctx.logger.error(f"Payment webhook for {order_id} could not verify order: {e.message}")
        return ctx.jsonify({'status': 'ok', 'error': e.message}), 200
    except ValidationError as e:
        ctx.logger.error(f"Payment webhook for {order_id} not processed: {e.message}")
        return ctx.jsonify({'status': 'ok', 'error': e.message}), 200

    return ctx.jsonify({'status': 'ok', 'result': result.outcome}), 200
