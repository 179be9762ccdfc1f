"""Firestore accessors for the payments collection (one document per gateway order)."""

from .query_utils import apply_where, chunked

COLLECTION = 'payments'
GET_ALL_CHUNK_SIZE = 100


def doc_ref(db, order_id):
    return db.collection(COLLECTION).document(order_id)


def get_doc(db, order_id, transaction=None):
    if transaction is not None:
        return doc_ref(db, order_id).get(transaction=transaction)
    return doc_ref(db, order_id).get()


def create_doc(db, order_id, data):
    return doc_ref(db, order_id).create(data)


def get_many(db, order_ids):
    """Return ``{order_id: dict | None}`` reading documents in batches."""
    found = {order_id: None for order_id in order_ids}
    for chunk in chunked(order_ids, GET_ALL_CHUNK_SIZE):
        refs = [doc_ref(db, order_id) for order_id in chunk]
        for snapshot in db.get_all(refs):
            if snapshot.exists:
                found[snapshot.id] = snapshot.to_dict() or {}
    return found


def list_by_status_created_before(db, status, created_before, limit):
    query = apply_where(db.collection(COLLECTION), 'status', '==', status)
    query = apply_where(query, 'createdAt', '<=', created_before)
    return list(query.limit(limit).stream())


def list_by_user_recent(db, uid, limit, firestore_module):
    query = apply_where(db.collection(COLLECTION), 'userId', '==', uid)
    query = query.order_by('createdAt', direction=firestore_module.Query.DESCENDING).limit(limit)
    return list(query.stream())


def list_recent(db, limit, firestore_module):
    query = db.collection(COLLECTION).order_by('createdAt', direction=firestore_module.Query.DESCENDING)
    return list(query.limit(limit).stream())


def list_by_status(db, status):
    return list(apply_where(db.collection(COLLECTION), 'status', '==', status).stream())
