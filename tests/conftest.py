"""Fixtures: an in-memory stand-in for the Firestore client and a test client using it."""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from segment_stats.db_config import get_db_client
from segment_stats.main import app


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeAggregationQuery:
    def __init__(self, query):
        self._query = query
        self._aggregations = []

    def count(self, alias=None):
        self._aggregations.append((alias, lambda docs: len(docs)))
        return self

    def sum(self, field, alias=None):
        def _sum(docs):
            return sum(
                doc[field] for doc in docs
                if isinstance(doc.get(field), (int, float)) and not isinstance(doc.get(field), bool)
            )

        self._aggregations.append((alias, _sum))
        return self

    def get(self):
        self._query._db.check_failure()
        docs = [data for _, data in self._query._matching()]
        return [[SimpleNamespace(alias=alias, value=fn(docs)) for alias, fn in self._aggregations]]


class FakeQuery:
    def __init__(self, db, name, filters=()):
        self._db = db
        self._name = name
        self._filters = tuple(filters)

    def where(self, filter):
        return FakeQuery(self._db, self._name, self._filters + (filter,))

    def _matches(self, data):
        for field_filter in self._filters:
            value = data.get(field_filter.field_path)
            if field_filter.op_string == "==":
                if value != field_filter.value:
                    return False
            elif field_filter.op_string == "array_contains":
                if not isinstance(value, list) or field_filter.value not in value:
                    return False
            else:
                raise NotImplementedError(field_filter.op_string)
        return True

    def _matching(self):
        documents = self._db.collections.get(self._name, {})
        return [(doc_id, data) for doc_id, data in documents.items() if self._matches(data)]

    def stream(self):
        self._db.check_failure()
        for doc_id, data in self._matching():
            yield FakeSnapshot(doc_id, data)

    def count(self, alias=None):
        return FakeAggregationQuery(self).count(alias=alias)

    def sum(self, field, alias=None):
        return FakeAggregationQuery(self).sum(field, alias=alias)


class FakeDocumentReference:
    def __init__(self, db, name, doc_id):
        self._db = db
        self._name = name
        self.id = doc_id

    def get(self):
        self._db.check_failure()
        return FakeSnapshot(self.id, self._db.collections.get(self._name, {}).get(self.id))


class FakeCollection(FakeQuery):
    def document(self, doc_id):
        return FakeDocumentReference(self._db, self._name, doc_id)


class FakeFirestore:
    def __init__(self):
        self.collections = {}
        self.failure = None

    def collection(self, name):
        return FakeCollection(self, name)

    def add(self, name, doc_id, data):
        self.collections.setdefault(name, {})[doc_id] = data

    def check_failure(self):
        if self.failure is not None:
            raise self.failure


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db_client] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def add_user(db, doc_id, gender, income_level, income_type, segment_ids):
    db.add("users", doc_id, {
        "gender": gender,
        "income_level": income_level,
        "income_type": income_type,
        "segment_ids": list(segment_ids),
    })


@pytest.fixture
def seeded_db(db):
    db.add("segments", "young-adults", {"name": "Young Adults", "metadata": {"region": "EU"}})
    db.add("segments", "retirees", {"name": "Retirees", "metadata": {}})
    db.add("segments", "adult-learners", {"name": "Adult Learners", "metadata": {}})
    db.add("segments", "empty", {"name": "Empty Segment", "metadata": {}})

    add_user(db, "u1", "Female", 2000, "monthly", ["young-adults"])
    add_user(db, "u2", "Female", 30000, "yearly", ["young-adults", "adult-learners"])
    add_user(db, "u3", "Male", 1000, "monthly", ["retirees"])
    add_user(db, "u4", "Male", 24000, "yearly", ["retirees", "adult-learners"])
    add_user(db, "u5", "Male", 1500, "monthly", ["retirees"])
    add_user(db, "u6", "Female", 36000, "yearly", ["retirees"])
    return db


@pytest.fixture
def lenient_client(db):
    """Test client that returns 500 responses instead of re-raising server errors."""
    app.dependency_overrides[get_db_client] = lambda: db
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
