"""Business logic handlers for admin APIs."""

from learnx.repositories import payments_repo
from learnx.services import auth_service, payment_state, sync_service

MAX_TRANSACTIONS = 500


def _require_admin(ctx, request):
    decoded_token = auth_service.verify_firebase_token(request, ctx)
    if not decoded_token:
        return ctx.jsonify({'error': 'Unauthorized'}), 401
    if not auth_service.is_admin_user(ctx, decoded_token):
        return ctx.jsonify({'error': 'Forbidden'}), 403
    return None


def _parse_lookback_days(raw_value):
    try:
        days = int(raw_value)
    except (TypeError, ValueError):
        return None
    return min(max(days, 1), 365)


def sync_transactions(ctx, request):
    denied = _require_admin(ctx, request)
    if denied:
        return denied
    payload = request.get_json(silent=True) or {}
    lookback_days = _parse_lookback_days(payload.get('lookbackDays')) if isinstance(payload, dict) else None
    report = sync_service.sync_paid_orders(ctx, lookback_days=lookback_days)
    return ctx.jsonify(report.to_dict()), 200


def sweep_pending(ctx, request):
    denied = _require_admin(ctx, request)
    if denied:
        return denied
    report = sync_service.sweep_pending_payments(ctx)
    return ctx.jsonify(report.to_dict()), 200


def list_transactions(ctx, request):
    denied = _require_admin(ctx, request)
    if denied:
        return denied
    db = ctx.require_db()
    try:
        limit = int(request.args.get('limit', 100))
    except (TypeError, ValueError):
        limit = 100
    limit = min(max(limit, 1), MAX_TRANSACTIONS)

    transactions = []
    for doc in payments_repo.list_recent(db, limit, ctx.firestore):
        payment = doc.to_dict() or {}
        transactions.append({
            'orderId': doc.id,
            'userId': payment.get('userId', ''),
            'itemId': payment.get('itemId', ''),
            'itemType': payment.get('itemType', ''),
            'amount': payment.get('amount', 0),
            'status': payment_state.normalize_status(payment.get('status')),
            'source': payment.get('source', ''),
            'createdAt': payment.get('createdAt', 0),
            'updatedAt': payment.get('updatedAt', 0),
        })

    total_revenue = 0
    success_count = 0
    for doc in payments_repo.list_by_status(db, payment_state.SUCCESS):
        amount = (doc.to_dict() or {}).get('amount', 0)
        if isinstance(amount, (int, float)) and not isinstance(amount, bool):
            total_revenue += amount
        success_count += 1

    return ctx.jsonify({
        'transactions': transactions,
        'totalRevenue': total_revenue,
        'successCount': success_count,
    }), 200
