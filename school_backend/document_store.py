"""Path-addressed document storage on top of SQLAlchemy."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, TypeVar

from fastapi import Depends
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from school_backend.database import get_db
from school_backend.models.document import Document

TIMESTAMP_TAG = '$timestamp'
REFERENCE_TAG = '$ref'
# Wraps caller dicts that would otherwise be read back as one of the tags above.
ESCAPE_TAG = '$literal'
RESERVED_TAGS = {TIMESTAMP_TAG, REFERENCE_TAG, ESCAPE_TAG}

T = TypeVar('T')


class StorageError(Exception):
    """Raised when the underlying database fails."""


class DocumentNotFoundError(StorageError):
    """Raised when a partial update targets a document that does not exist."""


class _ServerTimestamp:
    def __repr__(self) -> str:
        return 'SERVER_TIMESTAMP'


# Resolved to the commit time when a write is applied.
SERVER_TIMESTAMP = _ServerTimestamp()


def normalize_path(path: str) -> str:
    return '/'.join(segment for segment in path.split('/') if segment)


def join_path(*parts: str) -> str:
    return normalize_path('/'.join(parts))


@dataclass(frozen=True)
class DocumentReference:
    """A handle on a document path that may or may not exist."""

    path: str

    def __post_init__(self) -> None:
        object.__setattr__(self, 'path', normalize_path(self.path))

    @property
    def id(self) -> str:
        return self.path.rpartition('/')[2]

    @property
    def collection_path(self) -> str:
        return self.path.rpartition('/')[0]


@dataclass(frozen=True)
class DocumentSnapshot:
    reference: DocumentReference
    data: dict[str, Any]

    @property
    def id(self) -> str:
        return self.reference.id

    @property
    def path(self) -> str:
        return self.reference.path


@dataclass
class WriteOperation:
    kind: str  # set | update
    path: str
    fields: dict[str, Any]


def encode_value(value: Any, now: datetime) -> Any:
    if value is SERVER_TIMESTAMP:
        value = now
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return {TIMESTAMP_TAG: value.isoformat()}
    if isinstance(value, DocumentReference):
        return {REFERENCE_TAG: value.path}
    if isinstance(value, dict):
        encoded = {key: encode_value(item, now) for key, item in value.items()}
        if len(encoded) == 1 and next(iter(encoded)) in RESERVED_TAGS:
            return {ESCAPE_TAG: encoded}
        return encoded
    if isinstance(value, (list, tuple)):
        return [encode_value(item, now) for item in value]
    return value


def decode_value(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1 and ESCAPE_TAG in value:
            return {key: decode_value(item) for key, item in value[ESCAPE_TAG].items()}
        if len(value) == 1 and TIMESTAMP_TAG in value:
            return datetime.fromisoformat(value[TIMESTAMP_TAG])
        if len(value) == 1 and REFERENCE_TAG in value:
            return DocumentReference(value[REFERENCE_TAG])
        return {key: decode_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_value(item) for item in value]
    return value


def serialize_value(value: Any) -> Any:
    """Convert decoded document data into plain JSON types for responses."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, DocumentReference):
        return f'/{value.path}'
    if isinstance(value, dict):
        return {key: serialize_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(item) for item in value]
    return value


def _path_of(target: 'str | DocumentReference') -> str:
    if isinstance(target, DocumentReference):
        return target.path
    return normalize_path(target)


def _json_condition(field_name: str, value: Any):
    element = Document.data[field_name]
    # bool is checked first because it is a subclass of int
    if isinstance(value, bool):
        return element.as_boolean() == value
    if isinstance(value, int):
        return element.as_integer() == value
    if isinstance(value, float):
        return element.as_float() == value
    if isinstance(value, str):
        return element.as_string() == value
    raise ValueError(f'Unsupported filter value for {field_name!r}: {value!r}')


def _snapshot(row: Document) -> DocumentSnapshot:
    try:
        data = decode_value(row.data or {})
    except (ValueError, TypeError, AttributeError) as exc:
        raise StorageError(f'Corrupt document at {row.path}.') from exc
    return DocumentSnapshot(reference=DocumentReference(row.path), data=data)


class WriteBatch:
    """Collects writes and applies them in one transaction on commit."""

    def __init__(self, store: 'DocumentStore') -> None:
        self._store = store
        self.operations: list[WriteOperation] = []

    def __len__(self) -> int:
        return len(self.operations)

    def set(self, target: 'str | DocumentReference', fields: dict[str, Any]) -> 'WriteBatch':
        self.operations.append(WriteOperation('set', _path_of(target), fields))
        return self

    def update(self, target: 'str | DocumentReference', fields: dict[str, Any]) -> 'WriteBatch':
        self.operations.append(WriteOperation('update', _path_of(target), fields))
        return self

    def commit(self) -> None:
        self._store.batch_commit(self.operations)


class DocumentStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def get_document(self, collection_path: str, doc_id: str) -> DocumentSnapshot | None:
        return self.get(join_path(collection_path, doc_id))

    def get(self, target: 'str | DocumentReference') -> DocumentSnapshot | None:
        return self.get_all([target])[0]

    def get_all(self, targets: Iterable['str | DocumentReference']) -> list[DocumentSnapshot | None]:
        """Fetch many documents in one query, in the order they were requested."""
        paths = [_path_of(target) for target in targets]
        if not paths:
            return []

        try:
            rows = self.db.scalars(select(Document).where(Document.path.in_(list(set(paths))))).all()
        except SQLAlchemyError as exc:
            raise StorageError('Failed to read documents.') from exc

        by_path = {row.path: _snapshot(row) for row in rows}
        return [by_path.get(path) for path in paths]

    def query_equals(
        self,
        collection_path: str,
        field_name: str,
        value: Any,
        limit: int | None = None,
    ) -> list[DocumentSnapshot]:
        return self.query(collection_path, {field_name: value}, limit=limit)

    def query(
        self,
        collection_path: str,
        filters: dict[str, Any],
        limit: int | None = None,
    ) -> list[DocumentSnapshot]:
        statement = select(Document).where(Document.collection == normalize_path(collection_path))
        for field_name, value in filters.items():
            statement = statement.where(_json_condition(field_name, value))
        statement = statement.order_by(Document.created_at.asc(), Document.path.asc())
        if limit is not None:
            statement = statement.limit(limit)

        try:
            rows = self.db.scalars(statement).all()
        except SQLAlchemyError as exc:
            raise StorageError(f'Failed to query {collection_path}.') from exc

        return [_snapshot(row) for row in rows]

    def set_document(self, collection_path: str, doc_id: str, fields: dict[str, Any]) -> None:
        self.batch_commit([WriteOperation('set', join_path(collection_path, doc_id), fields)])

    def update_fields(self, collection_path: str, doc_id: str, fields: dict[str, Any]) -> None:
        self.batch_commit([WriteOperation('update', join_path(collection_path, doc_id), fields)])

    def batch_commit(self, operations: list[WriteOperation]) -> None:
        """Apply every operation or none of them."""
        self.run_transaction(lambda batch: batch.operations.extend(operations))

    def run_transaction(
        self,
        build: Callable[[WriteBatch], T],
        lock_target: 'str | DocumentReference | None' = None,
    ) -> T:
        """Run ``build`` and commit the writes it adds to the batch, all in one transaction.

        When ``lock_target`` is given its row is write-locked before ``build``
        runs, so reads made inside ``build`` cannot go stale before the commit
        for any other transaction locking the same document.
        """
        try:
            try:
                if lock_target is not None:
                    self._lock(_path_of(lock_target))
                batch = WriteBatch(self)
                result = build(batch)
                now = datetime.now(timezone.utc)
                for operation in batch.operations:
                    self._apply(operation, now)
                self.db.commit()
            except SQLAlchemyError as exc:
                raise StorageError('Failed to commit document writes.') from exc
        except Exception:
            self.db.rollback()
            raise
        return result

    def _lock(self, path: str) -> None:
        # A no-op write takes the row lock on Postgres and the database write lock on SQLite.
        self.db.execute(
            update(Document)
            .where(Document.path == path)
            .values(updated_at=Document.updated_at)
            .execution_options(synchronize_session=False)
        )

    def _apply(self, operation: WriteOperation, now: datetime) -> None:
        row = self.db.get(Document, operation.path)
        encoded = encode_value(operation.fields, now)

        if operation.kind == 'set':
            if row is None:
                reference = DocumentReference(operation.path)
                row = Document(
                    path=reference.path,
                    collection=reference.collection_path,
                    doc_id=reference.id,
                    data=encoded,
                    created_at=now,
                    updated_at=now,
                )
                self.db.add(row)
            else:
                row.data = encoded
                row.updated_at = now
        elif operation.kind == 'update':
            if row is None:
                raise DocumentNotFoundError(f'No document to update at {operation.path}.')
            row.data = {**(row.data or {}), **encoded}
            row.updated_at = now
        else:
            raise ValueError(f'Unknown write operation: {operation.kind}')

        self.db.flush()


def get_store(db: Session = Depends(get_db)) -> DocumentStore:
    return DocumentStore(db)
