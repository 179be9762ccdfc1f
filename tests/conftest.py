import copy
import threading
import uuid
from types import SimpleNamespace

import pytest
from google.api_core.exceptions import AlreadyExists, NotFound

from learnx import create_app
from learnx.config import AppConfig
from learnx.errors import GatewayError


class FakeArrayUnion:
    def __init__(self, values):
        self.values = list(values)


def _resolve(existing, value):
    if isinstance(value, FakeArrayUnion):
        current = list(existing) if isinstance(existing, list) else []
        for item in value.values:
            if item not in current:
                current.append(item)
        return current
    return copy.deepcopy(value)


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = copy.deepcopy(data)

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, db, path):
        self._db = db
        self.path = path
        self.id = path.rsplit('/', 1)[-1]

    def collection(self, name):
        return FakeCollection(self._db, f"{self.path}/{name}")

    def get(self, transaction=None):
        return FakeSnapshot(self, self._db.store.get(self.path))

    def set(self, data, merge=False):
        self._db.write(self.path, data, merge=merge)

    def update(self, data):
        with self._db.lock:
            if self.path not in self._db.store:
                raise NotFound(f"No document to update: {self.path}")
            self._db.write(self.path, data, merge=True)

    def create(self, data):
        with self._db.lock:
            if self.path in self._db.store:
                raise AlreadyExists(f"Document already exists: {self.path}")
            self._db.write(self.path, data)


_OPS = {
    '==': lambda a, b: a == b,
    '<=': lambda a, b: a is not None and a <= b,
    '>=': lambda a, b: a is not None and a >= b,
    '<': lambda a, b: a is not None and a < b,
    '>': lambda a, b: a is not None and a > b,
}


class FakeQuery:
    def __init__(self, db, path, filters=None, order=None, limit_count=None):
        self._db = db
        self._path = path
        self._filters = list(filters or [])
        self._order = order
        self._limit = limit_count

    def _copy(self, **changes):
        values = {'filters': self._filters, 'order': self._order, 'limit_count': self._limit}
        values.update(changes)
        return FakeQuery(self._db, self._path, **values)

    def where(self, *args, **kwargs):
        if 'filter' in kwargs:
            raise TypeError('filter keyword unsupported')
        return self._copy(filters=self._filters + [args])

    def order_by(self, field_path, direction='ASCENDING'):
        return self._copy(order=(field_path, direction))

    def limit(self, count):
        return self._copy(limit_count=count)

    def stream(self):
        with self._db.lock:
            rows = [
                (path, copy.deepcopy(data))
                for path, data in self._db.store.items()
                if path.rsplit('/', 1)[0] == self._path
            ]
        for field_path, op, value in self._filters:
            rows = [row for row in rows if _OPS[op](row[1].get(field_path), value)]
        if self._order:
            field_path, direction = self._order
            rows.sort(key=lambda row: row[1].get(field_path) or 0, reverse=direction == 'DESCENDING')
        if self._limit is not None:
            rows = rows[:self._limit]
        return iter([FakeSnapshot(FakeDocumentRef(self._db, path), data) for path, data in rows])


class FakeCollection(FakeQuery):
    def __init__(self, db, path):
        super().__init__(db, path)

    def document(self, doc_id=None):
        return FakeDocumentRef(self._db, f"{self._path}/{doc_id or uuid.uuid4().hex}")


class FakeTransaction:
    def __init__(self, db):
        self._db = db
        self._writes = []

    def set(self, reference, data, merge=False):
        self._writes.append((reference.path, data, merge))

    def update(self, reference, data):
        self._writes.append((reference.path, data, True))

    def _commit(self):
        for path, data, merge in self._writes:
            self._db.write(path, data, merge=merge)
        self._db.commits += 1
        self._writes = []


class FakeDB:
    """In-memory Firestore double; transactions run serially under one lock."""

    def __init__(self):
        self.store = {}
        self.lock = threading.RLock()
        self.commits = 0

    def collection(self, name):
        return FakeCollection(self, name)

    def transaction(self):
        return FakeTransaction(self)

    def get_all(self, references):
        for reference in references:
            yield reference.get()

    def write(self, path, data, merge=False):
        with self.lock:
            if merge and path in self.store:
                doc = self.store[path]
                for key, value in data.items():
                    doc[key] = _resolve(doc.get(key), value)
            else:
                self.store[path] = {key: _resolve(None, value) for key, value in data.items()}

    def seed(self, path, data):
        self.store[path] = copy.deepcopy(data)

    def data(self, path):
        return copy.deepcopy(self.store.get(path))


class _QueryConstants:
    ASCENDING = 'ASCENDING'
    DESCENDING = 'DESCENDING'


class FakeFirestoreModule:
    Query = _QueryConstants
    ArrayUnion = FakeArrayUnion

    @staticmethod
    def transactional(fn):
        def wrapper(transaction, *args, **kwargs):
            with transaction._db.lock:
                result = fn(transaction, *args, **kwargs)
                transaction._commit()
                return result

        return wrapper


class FakeGateway:
    def __init__(self):
        self.orders = {}
        self.created = []
        self.get_calls = []
        self.list_calls = []
        self.error = None
        self.signature_valid = True

    def add_order(self, order_id, status, user_id='u1', item_id='pdf1', item_type='pdf', amount=99, tags=True):
        self.orders[order_id] = {
            'order_id': order_id,
            'order_status': status,
            'order_amount': amount,
            'order_currency': 'INR',
            'order_tags': {'userId': user_id, 'itemId': item_id, 'itemType': item_type} if tags else None,
        }
        return self.orders[order_id]

    def set_status(self, order_id, status):
        self.orders[order_id]['order_status'] = status

    def create_order(self, payload):
        if self.error:
            raise self.error
        self.created.append(copy.deepcopy(payload))
        order_id = payload['order_id']
        self.orders[order_id] = {
            'order_id': order_id,
            'order_status': 'ACTIVE',
            'order_amount': payload['order_amount'],
            'order_currency': payload['order_currency'],
            'order_tags': dict(payload['order_tags']),
        }
        return {'order_id': order_id, 'payment_session_id': f"session_{order_id}", 'order_status': 'ACTIVE'}

    def get_order(self, order_id):
        self.get_calls.append(order_id)
        if self.error:
            raise self.error
        if order_id not in self.orders:
            raise GatewayError('Order not found', status_code=404)
        return copy.deepcopy(self.orders[order_id])

    def iter_orders(self, from_date, to_date, order_status='PAID', count=100):
        self.list_calls.append((from_date, to_date, order_status, count))
        if self.error:
            raise self.error
        for order in list(self.orders.values()):
            if order['order_status'] == order_status:
                yield copy.deepcopy(order)

    def verify_webhook_signature(self, raw_body, timestamp, signature):
        return self.signature_valid


class _FakeModels:
    def __init__(self, text='', error=None):
        self.text = text
        self.error = error
        self.calls = []

    def generate_content(self, model, contents, config=None):
        self.calls.append({'model': model, 'contents': contents, 'config': config})
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)


class FakeNotesClient:
    def __init__(self, text='', error=None):
        self.models = _FakeModels(text=text, error=error)


class FakeClock:
    def __init__(self, now):
        self.now = float(now)

    def time(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


TOKENS = {
    'user-token': {'uid': 'u1', 'email': 'u1@example.com'},
    'other-token': {'uid': 'u2', 'email': 'u2@example.com'},
    'admin-token': {'uid': 'admin-1', 'email': 'admin@example.com'},
}


def fake_verify_id_token(token):
    if token not in TOKENS:
        raise ValueError('invalid token')
    return dict(TOKENS[token])


def auth_header(token):
    return {'Authorization': f"Bearer {token}"}


def make_config(**overrides):
    values = {
        'environment': 'test',
        'cashfree_app_id': 'cf_app',
        'cashfree_secret_key': 'cf_secret',
        'cashfree_env': 'sandbox',
        'app_base_url': 'https://app.example.com',
        'reconcile_sweep_interval_seconds': 0,
        'admin_emails': frozenset({'admin@example.com'}),
    }
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture()
def db():
    return FakeDB()


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def clock():
    return FakeClock(1_700_000_000)


@pytest.fixture()
def config():
    return make_config()


@pytest.fixture()
def app(config, db, gateway, clock):
    flask_app = create_app(
        config,
        db=db,
        firestore_module=FakeFirestoreModule,
        gateway=gateway,
        verify_id_token=fake_verify_id_token,
        time_module=clock,
    )
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture()
def client(app):
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture()
def ctx(app):
    return app.extensions['learnx']


def seed_pending_payment(db, order_id, user_id='u1', item_id='pdf1', item_type='pdf', amount=99, created_at=1_700_000_000):
    db.seed(f"payments/{order_id}", {
        'orderId': order_id,
        'userId': user_id,
        'itemId': item_id,
        'itemType': item_type,
        'amount': amount,
        'currency': 'INR',
        'status': 'PENDING',
        'createdAt': created_at,
        'updatedAt': created_at,
    })
