"""
Pytest configuration and shared fixtures for all tests.

This file is automatically loaded by pytest and provides:
  - Test configuration (env vars set before any studybuddy import)
  - An in-memory Firestore stand-in (``fake_db``) good enough for the
    queries, batches and transactions the service issues
  - Profile/edge seeding helpers
"""

import copy
import os
import threading
import uuid
from datetime import datetime, timezone

import pytest
from unittest.mock import MagicMock

# Config() is instantiated at import time, so the environment must be ready
# before test modules are collected.
os.environ.update(
    {
        "FIREBASE_PROJECT_ID": "test-project",
        "GOOGLE_APPLICATION_CREDENTIALS": "/config/test-serviceAccountKey.json",
        "DEEPSEEK_API_KEY": "test-deepseek-key",
        "OPENAI_API_KEY": "test-openai-key",
        "AI_SERVICE_TOKEN": "",
        "DEBUG": "True",
        "LOG_FILE": "",
    }
)

from firebase_admin import firestore  # noqa: E402
from google.api_core.exceptions import NotFound, ServiceUnavailable  # noqa: E402


# ============================================================
# IN-MEMORY FIRESTORE
# ============================================================

def _resolve(current, value):
    """Apply Firestore sentinels the way the server would."""
    if value is firestore.SERVER_TIMESTAMP:
        return datetime.now(timezone.utc)
    if isinstance(value, firestore.Increment):
        return (current or 0) + value.value
    if isinstance(value, firestore.ArrayUnion):
        merged = list(current or [])
        merged.extend(v for v in value.values if v not in merged)
        return merged
    return copy.deepcopy(value)


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentReference:
    def __init__(self, db, collection, doc_id):
        self._db = db
        self.collection_name = collection
        self.id = doc_id

    @property
    def path(self):
        return f"{self.collection_name}/{self.id}"

    def get(self, transaction=None):
        self._db.reads += 1
        return FakeSnapshot(self, self._db._read(self))

    def set(self, data, merge=False):
        self._db._apply([("set", self, data, merge)])

    def update(self, data):
        self._db._apply([("update", self, data, True)])

    def delete(self):
        self._db._apply([("delete", self, None, False)])


class FakeQuery:
    def __init__(self, db, collection, filters=(), max_results=None):
        self._db = db
        self._collection = collection
        self._filters = tuple(filters)
        self._limit = max_results

    def where(self, field, op, value):
        return FakeQuery(
            self._db, self._collection, self._filters + ((field, op, value),), self._limit
        )

    def limit(self, count):
        return FakeQuery(self._db, self._collection, self._filters, count)

    def _matches(self, data):
        for field, op, value in self._filters:
            actual = data.get(field)
            if op == "==" and actual != value:
                return False
            if op == "array_contains" and value not in (actual or []):
                return False
            if op == "in" and actual not in value:
                return False
        return True

    def stream(self):
        if self._db.fail_reads:
            raise ServiceUnavailable("firestore offline")
        results = []
        for doc_id, data in list(self._db.store.get(self._collection, {}).items()):
            if self._matches(data):
                ref = FakeDocumentReference(self._db, self._collection, doc_id)
                results.append(FakeSnapshot(ref, copy.deepcopy(data)))
            if self._limit is not None and len(results) >= self._limit:
                break
        return iter(results)


class FakeCollectionReference(FakeQuery):
    def __init__(self, db, name):
        super().__init__(db, name)
        self.id = name

    def document(self, doc_id=None):
        return FakeDocumentReference(self._db, self._collection, doc_id or uuid.uuid4().hex)

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return datetime.now(timezone.utc), ref


class FakeWriteBatch:
    def __init__(self, db):
        self._client = db
        self._writes = []

    def set(self, ref, data, merge=False):
        self._writes.append(("set", ref, data, merge))

    def update(self, ref, data):
        self._writes.append(("update", ref, data, True))

    def delete(self, ref):
        self._writes.append(("delete", ref, None, False))

    def commit(self):
        writes, self._writes = self._writes, []
        self._client._apply(writes)


class FakeTransaction(FakeWriteBatch):
    """Buffers writes; fake_transactional commits them under the db lock."""


class FakeFirestore:
    """Dict-backed Firestore double. ``store[collection][doc_id] = data``."""

    def __init__(self):
        self.store = {}
        self.lock = threading.RLock()
        self.fail_reads = False
        self.fail_writes = False
        self.reads = 0
        self.commits = 0

    def collection(self, name):
        return FakeCollectionReference(self, name)

    def batch(self):
        return FakeWriteBatch(self)

    def transaction(self):
        return FakeTransaction(self)

    def _read(self, ref):
        if self.fail_reads:
            raise ServiceUnavailable("firestore offline")
        data = self.store.get(ref.collection_name, {}).get(ref.id)
        return copy.deepcopy(data) if data is not None else None

    def _apply(self, writes):
        if self.fail_writes:
            raise ServiceUnavailable("firestore offline")
        with self.lock:
            # Validate first so a failing write leaves nothing behind.
            for kind, ref, _, _ in writes:
                if kind == "update" and ref.id not in self.store.get(ref.collection_name, {}):
                    raise NotFound(f"No document to update: {ref.path}")
            for kind, ref, data, merge in writes:
                docs = self.store.setdefault(ref.collection_name, {})
                if kind == "delete":
                    docs.pop(ref.id, None)
                    continue
                current = docs.get(ref.id, {}) if merge else {}
                updated = dict(current)
                for key, value in data.items():
                    updated[key] = _resolve(current.get(key), value)
                docs[ref.id] = updated
            self.commits += 1

    # Convenience accessors for assertions.
    def doc(self, collection, doc_id):
        data = self.store.get(collection, {}).get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    def docs(self, collection):
        return copy.deepcopy(self.store.get(collection, {}))


def fake_transactional(fn):
    """Stand-in for firestore.transactional: run and commit under one lock."""

    def wrapper(transaction, *args, **kwargs):
        with transaction._client.lock:
            result = fn(transaction, *args, **kwargs)
            transaction.commit()
        return result

    return wrapper


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def fake_db(monkeypatch):
    """
    Route every Firestore call in studybuddy to an in-memory store.

    Example:
        def test_something(fake_db, make_user):
            make_user("alice")
            assert fake_db.doc("users", "alice")["isActive"]
    """
    from studybuddy.tools import firestore_tools

    db = FakeFirestore()
    monkeypatch.setattr(firestore_tools, "_db", db)
    monkeypatch.setattr("firebase_admin.firestore.transactional", fake_transactional)
    return db


@pytest.fixture
def make_user(fake_db):
    """Seed users/{uid} with a plain, approved profile plus overrides."""

    def _make_user(uid, **fields):
        profile = {
            "displayName": uid.title(),
            "school": f"{uid} academy",
            "location": f"{uid} district",
            "age": 40,
            "interests": [],
            "isPremium": False,
            "isActive": True,
            "isVerified": False,
            "reviewStatus": "approved",
            "dailySwipeCount": 0,
            "lastSwipeResetAt": None,
            "tokens": 0,
        }
        profile.update(fields)
        fake_db.store.setdefault("users", {})[uid] = profile
        return profile

    return _make_user


@pytest.fixture
def add_edge(fake_db):
    """Seed likes/declines/blocks edges by ordered pair."""

    def _add_edge(collection, from_id, to_id, **fields):
        if collection == "blocks":
            data = {"blockerId": from_id, "blockedId": to_id}
        else:
            data = {"fromUserId": from_id, "toUserId": to_id}
        if collection == "likes":
            data["isReciprocated"] = False
        data.update(fields)
        fake_db.store.setdefault(collection, {})[f"{from_id}_{to_id}"] = data
        return data

    return _add_edge


@pytest.fixture
def mock_llm_response():
    """
    Provide a mock LLM response for the study assistant.

    Use this fixture to avoid making real LLM API calls in tests.
    """
    return MagicMock(
        content="Photosynthesis turns light, water and CO2 into glucose and oxygen.",
        response_metadata={},
    )
