"""Firestore accessors for purchasable catalog items."""

ITEM_TYPE_COMBO = 'combo'
ITEM_TYPE_PDF = 'pdf'
ITEM_TYPES = (ITEM_TYPE_COMBO, ITEM_TYPE_PDF)


def combo_doc_ref(db, combo_id):
    return db.collection('combos').document(combo_id)


def pdf_doc_ref(db, sub_folder_id, pdf_id):
    return db.collection('subFolders').document(sub_folder_id).collection('pdfDocuments').document(pdf_id)


def get_item(db, item_type, item_id, sub_folder_id=''):
    """Return the catalog item dict, or None when it cannot be located.

    PDFs live under their sub-folder, so they can only be located when the
    sub-folder id is known.
    """
    if not item_id:
        return None
    if item_type == ITEM_TYPE_COMBO:
        snapshot = combo_doc_ref(db, item_id).get()
    elif item_type == ITEM_TYPE_PDF and sub_folder_id:
        snapshot = pdf_doc_ref(db, sub_folder_id, item_id).get()
    else:
        return None
    if not snapshot.exists:
        return None
    data = snapshot.to_dict() or {}
    data.setdefault('id', item_id)
    return data
