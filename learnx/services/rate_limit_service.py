"""Fixed-window rate limiting: Firestore counters first, process memory as fallback."""

import hashlib
import re

from learnx.repositories import rate_limit_repo


def normalize_key_part(value, fallback='anon', max_len=120):
    raw = str(value or '').strip().lower()
    if not raw:
        return fallback
    safe = re.sub(r'[^a-z0-9_.:@-]+', '_', raw)
    return safe[:max_len] if safe else fallback


def window_counter_id(key, window_seconds, window_start):
    raw = f"{key}|{window_seconds}|{int(window_start)}".encode('utf-8')
    return hashlib.sha256(raw).hexdigest()


def _check_firestore(ctx, key, limit, window_seconds, now_ts):
    if not ctx.config.rate_limit_firestore_enabled or ctx.db is None:
        return None
    window_start = int(now_ts // window_seconds) * int(window_seconds)
    retry_after = max(1, int((window_start + window_seconds) - now_ts))
    counter_ref = rate_limit_repo.counter_doc_ref(ctx.db, window_counter_id(key, window_seconds, window_start))

    @ctx.firestore.transactional
    def _txn(transaction):
        snapshot = counter_ref.get(transaction=transaction)
        count = int((snapshot.to_dict() or {}).get('count', 0) or 0) if snapshot.exists else 0
        if count >= limit:
            return False, retry_after
        transaction.set(counter_ref, {
            'key': key,
            'count': count + 1,
            'window_start': window_start,
            'window_seconds': int(window_seconds),
            'updated_at': now_ts,
            'expires_at': window_start + (window_seconds * 3),
        }, merge=True)
        return True, 0

    try:
        return _txn(ctx.db.transaction())
    except Exception as exc:
        ctx.logger.warning(f"Rate limit counter unavailable, using in-memory window: {exc}")
        return None


def _check_in_memory(ctx, key, limit, window_seconds, now_ts):
    with ctx.rate_limit_lock:
        cutoff = now_ts - window_seconds
        kept = [ts for ts in ctx.rate_limit_events.get(key, []) if ts >= cutoff]
        if len(kept) >= limit:
            ctx.rate_limit_events[key] = kept
            return False, max(1, int((kept[0] + window_seconds) - now_ts))
        kept.append(now_ts)
        ctx.rate_limit_events[key] = kept
    return True, 0


def check_rate_limit(ctx, key, limit, window_seconds):
    """Return ``(allowed, retry_after_seconds)``."""
    now_ts = ctx.time.time()
    result = _check_firestore(ctx, key, limit, window_seconds, now_ts)
    if result is not None:
        return result
    return _check_in_memory(ctx, key, limit, window_seconds, now_ts)


def build_rate_limited_response(ctx, message, retry_after):
    retry_after = int(max(1, retry_after))
    response = ctx.jsonify({'error': message, 'retry_after_seconds': retry_after})
    response.status_code = 429
    response.headers['Retry-After'] = str(retry_after)
    return response
