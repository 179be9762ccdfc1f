"""Business logic handlers for entitlement lookups."""

from learnx.repositories import payments_repo
from learnx.services import auth_service, entitlement_service, payment_state

PURCHASE_HISTORY_LIMIT = 50


def get_access(ctx, request):
    decoded_token = auth_service.verify_firebase_token(request, ctx)
    if not decoded_token:
        return ctx.jsonify({'error': 'Unauthorized'}), 401
    access = entitlement_service.check_access(
        ctx.require_db(),
        decoded_token['uid'],
        request.args.get('itemType', ''),
        request.args.get('itemId', ''),
        str(request.args.get('subFolderId', '') or '').strip(),
    )
    return ctx.jsonify(access), 200


def get_purchase_history(ctx, request):
    decoded_token = auth_service.verify_firebase_token(request, ctx)
    if not decoded_token:
        return ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    purchases = []
    for doc in payments_repo.list_by_user_recent(ctx.require_db(), uid, PURCHASE_HISTORY_LIMIT, ctx.firestore):
        p = doc.to_dict() or {}
        purchases.append({
            'orderId': doc.id,
            'itemId': p.get('itemId', ''),
            'itemType': p.get('itemType', ''),
            'itemName': p.get('itemName', ''),
            'amount': p.get('amount', 0),
            'currency': p.get('currency', 'INR'),
            'status': payment_state.normalize_status(p.get('status')),
            'createdAt': p.get('createdAt', 0),
        })
    return ctx.jsonify({'purchases': purchases}), 200
