"""Firestore accessors for users and admin roles."""


def doc_ref(db, uid):
    return db.collection('users').document(uid)


def get_doc(db, uid):
    return doc_ref(db, uid).get()


def admin_role_doc_ref(db, uid):
    return db.collection('roles_admin').document(uid)


def has_admin_role(db, uid):
    return admin_role_doc_ref(db, uid).get().exists
