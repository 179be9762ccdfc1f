"""Authentication utility helpers."""

from learnx.repositories import users_repo


def bearer_token(request):
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return ''
    return auth_header.split('Bearer ', 1)[1].strip()


def verify_firebase_token(request, ctx):
    """Return decoded Firebase token dict, or None when invalid/missing."""
    token = bearer_token(request)
    if not token:
        return None
    try:
        return ctx.verify_id_token(token)
    except Exception as exc:
        ctx.logger.info(f"Token verification failed: {exc}")
        return None


def is_admin_user(ctx, decoded_token):
    if not decoded_token:
        return False
    uid = str(decoded_token.get('uid', '') or '')
    email = str(decoded_token.get('email', '') or '').lower()
    if uid in ctx.config.admin_uids or (email and email in ctx.config.admin_emails):
        return True
    if ctx.db is None or not uid:
        return False
    return users_repo.has_admin_role(ctx.db, uid)
