"""Who may open which catalog item."""

from learnx.errors import NotFoundError, ValidationError
from learnx.repositories import catalog_repo, users_repo

ACCESS_FREE = 'Free'
ACCESS_PAID = 'Paid'


def is_free(item_data):
    return str((item_data or {}).get('accessType') or '').strip().lower() == ACCESS_FREE.lower()


def purchased_items(user_data):
    items = (user_data or {}).get('purchasedItems') or []
    if not isinstance(items, (list, tuple, set)):
        return set()
    return {str(item) for item in items if item}


def has_access(user_data, item_data):
    if is_free(item_data):
        return True
    item_id = str((item_data or {}).get('id') or '').strip()
    return bool(item_id) and item_id in purchased_items(user_data)


def check_access(db, uid, item_type, item_id, sub_folder_id=''):
    item_type = str(item_type or '').strip().lower()
    item_id = str(item_id or '').strip()
    if item_type not in catalog_repo.ITEM_TYPES or not item_id:
        raise ValidationError('itemType and itemId are required')
    if item_type == catalog_repo.ITEM_TYPE_PDF and not sub_folder_id:
        raise ValidationError('subFolderId is required for pdf items')
    item_data = catalog_repo.get_item(db, item_type, item_id, sub_folder_id)
    if item_data is None:
        raise NotFoundError('Item not found')
    user_doc = users_repo.get_doc(db, uid)
    user_data = (user_doc.to_dict() or {}) if user_doc.exists else {}
    return {
        'itemId': item_id,
        'itemType': item_type,
        'accessType': ACCESS_FREE if is_free(item_data) else ACCESS_PAID,
        'hasAccess': has_access(user_data, item_data),
    }
