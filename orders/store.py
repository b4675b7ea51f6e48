"""
Document store adapters.

The order lifecycle talks to its database through the small interface of
`DocumentStore`: per-document CRUD, filtered and sorted collection scans,
and live queries that push the full matching result set on every change.

Two implementations are provided:

- `FirestoreDocumentStore`, the production backend (Firebase Admin SDK).
- `InMemoryDocumentStore`, a process-local store for development and tests.

Filters are `(field, op, value)` tuples with op one of
`==`, `!=`, `<`, `<=`, `>`, `>=`.
"""
import copy
import functools
import logging
import operator
import threading
import uuid
from typing import Callable, Iterable, List, Optional, Tuple

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1 import Query
from google.cloud.firestore_v1.base_query import FieldFilter

from .exceptions import NotFound, RemoteUnavailable

logger = logging.getLogger(__name__)

Filter = Tuple[str, str, object]
Snapshot = List[Tuple[str, dict]]
Unsubscribe = Callable[[], None]

FIRESTORE_BATCH_LIMIT = 500

_OPERATORS = {
    '==': operator.eq,
    '!=': operator.ne,
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
}


class DocumentStore:
    """Interface shared by the store backends."""

    def add(self, collection: str, data: dict) -> str:
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        raise NotImplementedError

    def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> None:
        raise NotImplementedError

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        raise NotImplementedError

    def delete(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError

    def delete_many(self, collection: str, doc_ids: Iterable[str]) -> int:
        raise NotImplementedError

    def query(self, collection: str, filters: Iterable[Filter] = (),
              order_by: Optional[str] = None, descending: bool = False) -> Snapshot:
        raise NotImplementedError

    def subscribe(self, collection: str, filters: Iterable[Filter],
                  order_by: Optional[str], descending: bool,
                  callback: Callable[[Snapshot], None]) -> Unsubscribe:
        raise NotImplementedError


# --- In-memory backend ---

def _matches(data: dict, filters: Iterable[Filter]) -> bool:
    for field, op, value in filters:
        # Firestore never matches a document that lacks the filtered field.
        if field not in data:
            return False
        try:
            if not _OPERATORS[op](data[field], value):
                return False
        except TypeError:
            return False
    return True


class _Watch:
    def __init__(self, collection, filters, order_by, descending, callback):
        self.collection = collection
        self.filters = list(filters)
        self.order_by = order_by
        self.descending = descending
        self.callback = callback
        self.last_snapshot = None
        self.active = True


class InMemoryDocumentStore(DocumentStore):
    """
    Thread-safe in-process document store.

    Writes and the notification of affected watches happen under one
    re-entrant lock, so each watch sees snapshots in commit order and a
    callback may itself write to the store.
    """

    def __init__(self):
        self._collections = {}
        self._watches: List[_Watch] = []
        self._lock = threading.RLock()

    def _docs(self, collection):
        return self._collections.setdefault(collection, {})

    def add(self, collection, data):
        doc_id = uuid.uuid4().hex[:20]
        self.set(collection, doc_id, data)
        return doc_id

    def get(self, collection, doc_id):
        with self._lock:
            data = self._docs(collection).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    def set(self, collection, doc_id, data, merge=False):
        with self._lock:
            docs = self._docs(collection)
            if merge and doc_id in docs:
                docs[doc_id].update(copy.deepcopy(data))
            else:
                docs[doc_id] = copy.deepcopy(data)
            self._notify(collection)

    def update(self, collection, doc_id, fields):
        with self._lock:
            docs = self._docs(collection)
            if doc_id not in docs:
                raise NotFound(f"No document {collection}/{doc_id}")
            docs[doc_id].update(copy.deepcopy(fields))
            self._notify(collection)

    def delete(self, collection, doc_id):
        with self._lock:
            if self._docs(collection).pop(doc_id, None) is not None:
                self._notify(collection)

    def delete_many(self, collection, doc_ids):
        with self._lock:
            docs = self._docs(collection)
            deleted = 0
            for doc_id in doc_ids:
                if docs.pop(doc_id, None) is not None:
                    deleted += 1
            if deleted:
                self._notify(collection)
            return deleted

    def query(self, collection, filters=(), order_by=None, descending=False):
        filters = list(filters)
        with self._lock:
            rows = [
                (doc_id, copy.deepcopy(data))
                for doc_id, data in self._docs(collection).items()
                if _matches(data, filters)
            ]
        if order_by:
            rows = [row for row in rows if row[1].get(order_by) is not None]
            rows.sort(key=lambda row: row[1][order_by], reverse=descending)
        return rows

    def subscribe(self, collection, filters, order_by, descending, callback):
        watch = _Watch(collection, filters, order_by, descending, callback)
        with self._lock:
            self._watches.append(watch)
            self._deliver(watch)

        def unsubscribe():
            with self._lock:
                watch.active = False
                if watch in self._watches:
                    self._watches.remove(watch)

        return unsubscribe

    def _deliver(self, watch):
        snapshot = self.query(watch.collection, watch.filters, watch.order_by, watch.descending)
        if snapshot == watch.last_snapshot:
            return
        watch.last_snapshot = snapshot
        watch.callback(copy.deepcopy(snapshot))

    def _notify(self, collection):
        for watch in list(self._watches):
            if watch.active and watch.collection == collection:
                self._deliver(watch)


# --- Firestore backend ---

def _remote(func):
    """Translates Google API failures into RemoteUnavailable."""

    @functools.wraps(func)
    def wrapper(self, collection, *args, **kwargs):
        try:
            return func(self, collection, *args, **kwargs)
        except (NotFound, RemoteUnavailable):
            raise
        except (google_exceptions.GoogleAPICallError, google_exceptions.RetryError) as e:
            logger.error(f"Firestore call {func.__name__} on '{collection}' failed: {e}")
            raise RemoteUnavailable(f"Document store unavailable: {e}") from e

    return wrapper


class FirestoreDocumentStore(DocumentStore):
    def __init__(self, client=None):
        if client is None:
            from farmhouse_backend.firebase_config import get_firestore_client
            client = get_firestore_client()
        self._client = client

    def _build_query(self, collection, filters, order_by, descending):
        query = self._client.collection(collection)
        for field, op, value in filters or ():
            query = query.where(filter=FieldFilter(field, op, value))
        if order_by:
            direction = Query.DESCENDING if descending else Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        return query

    @_remote
    def add(self, collection, data):
        doc_ref = self._client.collection(collection).document()
        doc_ref.set(data)
        return doc_ref.id

    @_remote
    def get(self, collection, doc_id):
        snapshot = self._client.collection(collection).document(doc_id).get()
        return snapshot.to_dict() if snapshot.exists else None

    @_remote
    def set(self, collection, doc_id, data, merge=False):
        self._client.collection(collection).document(doc_id).set(data, merge=merge)

    @_remote
    def update(self, collection, doc_id, fields):
        try:
            self._client.collection(collection).document(doc_id).update(fields)
        except google_exceptions.NotFound:
            raise NotFound(f"No document {collection}/{doc_id}")

    @_remote
    def delete(self, collection, doc_id):
        self._client.collection(collection).document(doc_id).delete()

    @_remote
    def delete_many(self, collection, doc_ids):
        doc_ids = list(doc_ids)
        collection_ref = self._client.collection(collection)
        for start in range(0, len(doc_ids), FIRESTORE_BATCH_LIMIT):
            batch = self._client.batch()
            for doc_id in doc_ids[start:start + FIRESTORE_BATCH_LIMIT]:
                batch.delete(collection_ref.document(doc_id))
            batch.commit()
        return len(doc_ids)

    @_remote
    def query(self, collection, filters=(), order_by=None, descending=False):
        query = self._build_query(collection, filters, order_by, descending)
        return [(doc.id, doc.to_dict()) for doc in query.stream()]

    @_remote
    def subscribe(self, collection, filters, order_by, descending, callback):
        query = self._build_query(collection, filters, order_by, descending)

        # Runs on the Firestore watch thread.
        def on_snapshot(docs, changes, read_time):
            callback([(doc.id, doc.to_dict()) for doc in docs])

        watch = query.on_snapshot(on_snapshot)
        return watch.unsubscribe


# --- Backend selection ---

_store = None
_store_lock = threading.Lock()


def get_document_store() -> DocumentStore:
    """Returns the process-wide store for ORDER_STORE_BACKEND."""
    global _store
    with _store_lock:
        if _store is None:
            backend = settings.ORDER_STORE_BACKEND
            if backend == 'firestore':
                _store = FirestoreDocumentStore()
            elif backend == 'memory':
                _store = InMemoryDocumentStore()
            else:
                raise ImproperlyConfigured(f"Unknown ORDER_STORE_BACKEND: {backend!r}")
            logger.info(f"Using {type(_store).__name__} for orders.")
        return _store


def reset_document_store():
    global _store
    with _store_lock:
        _store = None
