"""
Storage backends for the question bank and the session archive.

Both backends expose the same small get/put/query surface over two logical
collections:

    questions       keyed by question id; indexed on type, category,
                    difficulty and tags
    quiz_sessions   auto-incrementing key; indexed on user_id, completed
                    and start_time

Records travel as plain JSON-compatible dictionaries.
"""
import copy
import itertools
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Boolean, Column, Integer, JSON, String, create_engine, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker


QUESTIONS = "questions"
QUIZ_SESSIONS = "quiz_sessions"

# Fields each collection can be filtered or ordered on
INDEXED_FIELDS = {
    QUESTIONS: ("id", "type", "category", "difficulty"),
    QUIZ_SESSIONS: ("id", "user_id", "completed", "start_time"),
}

DEFAULT_DATABASE_URL = "sqlite:///./data/aptitude.db"


class StorageError(Exception):
    """Base exception for storage failures."""
    pass


class StoreUnavailable(StorageError):
    """Raised when the backing database cannot be opened."""
    pass


class SeedFailure(StorageError):
    """Raised when the question corpus could not be inserted."""
    pass


class SessionSaveFailure(StorageError):
    """Raised when a finished session could not be archived."""
    pass


def _check_collection(collection: str) -> None:
    if collection not in INDEXED_FIELDS:
        raise ValueError(f"Unknown collection: {collection}")


def _check_fields(collection: str, fields: Iterable[str]) -> None:
    for name in fields:
        if name not in INDEXED_FIELDS[collection]:
            raise ValueError(f"Field '{name}' is not indexed on {collection}")


class StorageBackend:
    """Interface shared by the embedded database and the in-memory map."""

    def open(self) -> None:
        """Open the backend, raising StoreUnavailable on failure. Safe to call repeatedly."""
        raise NotImplementedError

    @property
    def is_open(self) -> bool:
        raise NotImplementedError

    def count(self, collection: str) -> int:
        raise NotImplementedError

    def get(self, collection: str, key) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def put(self, collection: str, record: Dict[str, Any]):
        """Insert a record and return its key."""
        raise NotImplementedError

    def put_many(self, collection: str, records: List[Dict[str, Any]]) -> int:
        raise NotImplementedError

    def query(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def clear(self, collection: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class InMemoryBackend(StorageBackend):
    """Dictionary-backed storage used by tests and as a throwaway store."""

    def __init__(self):
        self._collections: Dict[str, Dict[Any, Dict[str, Any]]] = {
            QUESTIONS: {},
            QUIZ_SESSIONS: {},
        }
        self._session_ids = itertools.count(1)
        self._open = False
        self.logger = logging.getLogger(__name__)

    def open(self) -> None:
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def count(self, collection: str) -> int:
        _check_collection(collection)
        return len(self._collections[collection])

    def get(self, collection: str, key) -> Optional[Dict[str, Any]]:
        _check_collection(collection)
        record = self._collections[collection].get(key)
        return copy.deepcopy(record) if record is not None else None

    def put(self, collection: str, record: Dict[str, Any]):
        _check_collection(collection)
        stored = copy.deepcopy(record)
        if collection == QUIZ_SESSIONS:
            key = next(self._session_ids)
            stored['id'] = key
        else:
            key = stored['id']
            if key in self._collections[collection]:
                raise StorageError(f"Duplicate key {key} in {collection}")
        self._collections[collection][key] = stored
        return key

    def put_many(self, collection: str, records: List[Dict[str, Any]]) -> int:
        _check_collection(collection)
        if collection == QUESTIONS:
            # All-or-nothing, like a single transaction
            keys = [record['id'] for record in records]
            if len(set(keys)) != len(keys) or any(key in self._collections[collection] for key in keys):
                raise StorageError(f"Duplicate keys in bulk insert into {collection}")
        for record in records:
            self.put(collection, record)
        return len(records)

    def query(self, collection, filters=None, order_by=None, descending=False, limit=None):
        _check_collection(collection)
        filters = filters or {}
        _check_fields(collection, filters.keys())
        rows = [
            record for record in self._collections[collection].values()
            if all(record.get(name) == value for name, value in filters.items())
        ]
        if order_by is not None:
            _check_fields(collection, [order_by])
            rows.sort(key=lambda record: (record.get(order_by), record.get('id')), reverse=descending)
        if limit is not None:
            rows = rows[:max(limit, 0)]
        return [copy.deepcopy(record) for record in rows]

    def clear(self, collection: str) -> None:
        _check_collection(collection)
        self._collections[collection].clear()


Base = declarative_base()


class QuestionRow(Base):
    __tablename__ = QUESTIONS

    id = Column(String(64), primary_key=True)
    type = Column(String(32), index=True, nullable=False)
    category = Column(String(32), index=True, nullable=False)
    difficulty = Column(String(16), index=True, nullable=False)
    tags = Column(JSON)
    payload = Column(JSON, nullable=False)


class QuizSessionRow(Base):
    __tablename__ = QUIZ_SESSIONS

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), index=True, nullable=False)
    completed = Column(Boolean, index=True, nullable=False, default=False)
    start_time = Column(String(40), index=True, nullable=False)  # ISO-8601
    payload = Column(JSON, nullable=False)


_ROW_TYPES = {
    QUESTIONS: QuestionRow,
    QUIZ_SESSIONS: QuizSessionRow,
}


class SQLAlchemyBackend(StorageBackend):
    """Embedded SQL storage; SQLite by default."""

    def __init__(self, database_url: str = DEFAULT_DATABASE_URL):
        self.database_url = database_url
        self.engine = None
        self.SessionLocal = None
        self.logger = logging.getLogger(__name__)

    def open(self) -> None:
        if self.engine is not None:
            return
        try:
            self._ensure_sqlite_directory()
            engine = create_engine(self.database_url)
            Base.metadata.create_all(bind=engine)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Cannot open database {self.database_url}: {e}") from e

        self.engine = engine
        self.SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        self.logger.info(f"Opened question database at {self.database_url}")

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def _ensure_sqlite_directory(self) -> None:
        prefix = "sqlite:///"
        if not self.database_url.startswith(prefix):
            return
        path = self.database_url[len(prefix):]
        if not path or path == ":memory:":
            return
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def get_session(self):
        if self.SessionLocal is None:
            raise StoreUnavailable("Database has not been opened")
        db = self.SessionLocal()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(str(e)) from e
        finally:
            db.close()

    def _to_row(self, collection: str, record: Dict[str, Any]):
        if collection == QUESTIONS:
            return QuestionRow(
                id=record['id'],
                type=record['type'],
                category=record['category'],
                difficulty=record['difficulty'],
                tags=list(record.get('tags') or []),
                payload=record,
            )
        return QuizSessionRow(
            user_id=record['user_id'],
            completed=bool(record.get('completed', False)),
            start_time=record['start_time'],
            payload=record,
        )

    @staticmethod
    def _from_row(collection: str, row) -> Dict[str, Any]:
        record = dict(row.payload)
        if collection == QUIZ_SESSIONS:
            record['id'] = row.id
        return record

    def count(self, collection: str) -> int:
        _check_collection(collection)
        row_type = _ROW_TYPES[collection]
        with self.get_session() as db:
            return db.scalar(select(func.count()).select_from(row_type)) or 0

    def get(self, collection: str, key) -> Optional[Dict[str, Any]]:
        _check_collection(collection)
        with self.get_session() as db:
            row = db.get(_ROW_TYPES[collection], key)
            return self._from_row(collection, row) if row is not None else None

    def put(self, collection: str, record: Dict[str, Any]):
        _check_collection(collection)
        with self.get_session() as db:
            row = self._to_row(collection, record)
            db.add(row)
            db.commit()
            return row.id

    def put_many(self, collection: str, records: List[Dict[str, Any]]) -> int:
        _check_collection(collection)
        with self.get_session() as db:
            db.add_all([self._to_row(collection, record) for record in records])
            db.commit()
        return len(records)

    def query(self, collection, filters=None, order_by=None, descending=False, limit=None):
        _check_collection(collection)
        filters = filters or {}
        _check_fields(collection, filters.keys())
        row_type = _ROW_TYPES[collection]

        statement = select(row_type)
        for name, value in filters.items():
            statement = statement.where(getattr(row_type, name) == value)
        if order_by is not None:
            _check_fields(collection, [order_by])
            column = getattr(row_type, order_by)
            if descending:
                statement = statement.order_by(column.desc(), row_type.id.desc())
            else:
                statement = statement.order_by(column.asc(), row_type.id.asc())
        if limit is not None:
            statement = statement.limit(max(limit, 0))

        with self.get_session() as db:
            return [self._from_row(collection, row) for row in db.scalars(statement)]

    def clear(self, collection: str) -> None:
        _check_collection(collection)
        with self.get_session() as db:
            db.execute(delete(_ROW_TYPES[collection]))
            db.commit()

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            self.SessionLocal = None


def create_backend(database_url: Optional[str] = None) -> StorageBackend:
    """Pick a backend from a URL; ``memory://`` selects the in-memory map."""
    if database_url in (None, ""):
        database_url = DEFAULT_DATABASE_URL
    if database_url.startswith("memory://"):
        return InMemoryBackend()
    return SQLAlchemyBackend(database_url)
