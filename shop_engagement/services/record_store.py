"""Durable key-value record store shared by every engine.

Each key holds one JSON document (a whole collection). Backends only move
JSON text around; typed decoding lives in :func:`read_collection` and
:func:`update_collection`. Reads treat corrupt or mis-shaped payloads as an
empty collection; updates refuse to overwrite them, so a bad payload is
never replaced by an empty one.
"""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, TypeVar

import redis
from pydantic import TypeAdapter, ValidationError
from sqlalchemy import update as sql_update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shop_engagement.core.config import Settings, settings
from shop_engagement.core.logging import get_logger
from shop_engagement.core.metrics import record_decode_failure, record_store_conflict
from shop_engagement.db.session import Base, build_engine, build_session_factory
from shop_engagement.models.record import StoredRecord
from shop_engagement.services.exceptions import StoreConflictError, StoreCorruptionError, StoreError

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")
Mutator = Callable[[Any], Any]


class RecordStore(ABC):
    """get/set contract over JSON-serializable values."""

    backend = "abstract"

    def __init__(self, prefix: str = "") -> None:
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}" if self._prefix else key

    def _decode(self, key: str, raw: str | bytes | None, *, strict: bool = False) -> Any:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Discarding undecodable record", extra={"key": key, "backend": self.backend})
            record_decode_failure(key)
            if strict:
                raise StoreCorruptionError(f"undecodable payload under {key}") from exc
            return None

    @staticmethod
    def _encode(value: Any) -> str:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))

    @abstractmethod
    def read(self, key: str, *, strict: bool = False) -> Any:
        """Return the decoded value stored under ``key`` or ``None``.

        An undecodable payload reads as ``None``, or raises
        :class:`StoreCorruptionError` when ``strict`` is set.
        """

    @abstractmethod
    def write(self, key: str, value: Any) -> None:
        """Replace the value stored under ``key``."""

    def update(self, key: str, mutator: Mutator) -> Any:
        """Read, apply ``mutator`` and write back. Not atomic unless a backend overrides it."""
        new_value = mutator(self.read(key, strict=True))
        self.write(key, new_value)
        return new_value


class MemoryRecordStore(RecordStore):
    """Process-local store; updates are serialized by a lock."""

    backend = "memory"

    def __init__(self, prefix: str = "", initial: dict[str, str] | None = None) -> None:
        super().__init__(prefix)
        self._data: dict[str, str] = {}
        self._lock = threading.RLock()
        for key, raw in (initial or {}).items():
            self._data[self._key(key)] = raw

    def read(self, key: str, *, strict: bool = False) -> Any:
        with self._lock:
            raw = self._data.get(self._key(key))
        return self._decode(key, raw, strict=strict)

    def write(self, key: str, value: Any) -> None:
        payload = self._encode(value)
        with self._lock:
            self._data[self._key(key)] = payload

    def update(self, key: str, mutator: Mutator) -> Any:
        with self._lock:
            return super().update(key, mutator)

    def raw(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(self._key(key))

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class RedisRecordStore(RecordStore):
    """Redis-backed store using WATCH/MULTI for compare-and-swap updates."""

    backend = "redis"

    def __init__(
        self,
        redis_url: str | None = None,
        prefix: str = "",
        max_retries: int = 5,
        client: Any | None = None,
    ) -> None:
        super().__init__(prefix)
        self._max_retries = max_retries
        if client is not None:
            self._redis = client
        elif redis_url:
            self._redis = redis.Redis.from_url(redis_url, decode_responses=True)
        else:
            raise ValueError("RedisRecordStore needs a redis_url or a client")

    def read(self, key: str, *, strict: bool = False) -> Any:
        try:
            raw = self._redis.get(self._key(key))
        except redis.RedisError as exc:
            raise StoreError(f"redis read failed for {key}") from exc
        return self._decode(key, raw, strict=strict)

    def write(self, key: str, value: Any) -> None:
        try:
            self._redis.set(self._key(key), self._encode(value))
        except redis.RedisError as exc:
            raise StoreError(f"redis write failed for {key}") from exc

    def update(self, key: str, mutator: Mutator) -> Any:
        redis_key = self._key(key)
        try:
            with self._redis.pipeline() as pipe:
                for _ in range(self._max_retries):
                    try:
                        pipe.watch(redis_key)
                        current = self._decode(key, pipe.get(redis_key), strict=True)
                        new_value = mutator(current)
                        pipe.multi()
                        pipe.set(redis_key, self._encode(new_value))
                        pipe.execute()
                        return new_value
                    except redis.WatchError:
                        record_store_conflict(self.backend)
                        logger.debug("Concurrent write on %s, retrying", key)
                        continue
        except redis.RedisError as exc:
            raise StoreError(f"redis update failed for {key}") from exc
        raise StoreConflictError(f"gave up updating {key} after {self._max_retries} attempts")


class SqlRecordStore(RecordStore):
    """SQL-backed store; one row per key, versioned for optimistic updates."""

    backend = "sql"

    def __init__(
        self,
        engine: Engine | None = None,
        prefix: str = "",
        max_retries: int = 5,
        create_tables: bool = True,
    ) -> None:
        super().__init__(prefix)
        self._engine = engine or build_engine()
        self._session_factory = build_session_factory(self._engine)
        self._max_retries = max_retries
        if create_tables:
            Base.metadata.create_all(bind=self._engine, tables=[StoredRecord.__table__])

    def read(self, key: str, *, strict: bool = False) -> Any:
        try:
            with self._session_factory() as session:
                row = session.get(StoredRecord, self._key(key))
                raw = row.payload if row else None
        except SQLAlchemyError as exc:
            raise StoreError(f"sql read failed for {key}") from exc
        return self._decode(key, raw, strict=strict)

    def write(self, key: str, value: Any) -> None:
        payload = self._encode(value)
        try:
            with self._session_factory() as session:
                row = session.get(StoredRecord, self._key(key))
                if row is None:
                    session.add(StoredRecord(key=self._key(key), payload=payload, version=1))
                else:
                    row.payload = payload
                    row.version += 1
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"sql write failed for {key}") from exc

    def update(self, key: str, mutator: Mutator) -> Any:
        row_key = self._key(key)
        try:
            for _ in range(self._max_retries):
                with self._session_factory() as session:
                    row = session.get(StoredRecord, row_key)
                    seen_version = row.version if row else None
                    current = self._decode(key, row.payload if row else None, strict=True)
                    new_value = mutator(current)
                    payload = self._encode(new_value)

                    if seen_version is None:
                        session.add(StoredRecord(key=row_key, payload=payload, version=1))
                        try:
                            session.commit()
                            return new_value
                        except IntegrityError:
                            session.rollback()
                            record_store_conflict(self.backend)
                            continue

                    result = session.execute(
                        sql_update(StoredRecord)
                        .where(StoredRecord.key == row_key)
                        .where(StoredRecord.version == seen_version)
                        .values(payload=payload, version=seen_version + 1)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 1:
                        session.commit()
                        return new_value
                    session.rollback()
                    record_store_conflict(self.backend)
        except SQLAlchemyError as exc:
            raise StoreError(f"sql update failed for {key}") from exc
        raise StoreConflictError(f"gave up updating {key} after {self._max_retries} attempts")


def build_record_store(config: Settings = settings) -> RecordStore:
    """Instantiate the backend selected by ``STORE_BACKEND``."""
    if config.STORE_BACKEND == "redis":
        return RedisRecordStore(
            redis_url=config.REDIS_URL,
            prefix=config.STORE_KEY_PREFIX,
            max_retries=config.STORE_MAX_RETRIES,
        )
    if config.STORE_BACKEND == "sql":
        return SqlRecordStore(
            engine=build_engine(config.DATABASE_URL),
            prefix=config.STORE_KEY_PREFIX,
            max_retries=config.STORE_MAX_RETRIES,
        )
    return MemoryRecordStore(prefix=config.STORE_KEY_PREFIX)


def _validate(
    key: str,
    adapter: TypeAdapter[T],
    raw: Any,
    default_factory: Callable[[], T],
    *,
    strict: bool = False,
) -> T:
    if raw is None:
        return default_factory()
    try:
        return adapter.validate_python(raw)
    except ValidationError as exc:
        logger.warning("Discarding malformed collection", extra={"key": key}, exc_info=True)
        record_decode_failure(key)
        if strict:
            raise StoreCorruptionError(f"malformed collection under {key}") from exc
        return default_factory()


def read_collection(
    store: RecordStore,
    key: str,
    adapter: TypeAdapter[T],
    default_factory: Callable[[], T],
    *,
    strict: bool = False,
) -> T:
    """Load a typed collection, degrading to ``default_factory()`` on any failure.

    With ``strict=True`` backend failures and unreadable payloads are raised as
    :class:`StoreError` so the caller can pick its own fallback.
    """
    try:
        raw = store.read(key, strict=strict)
    except StoreError:
        if strict:
            raise
        logger.exception("Record store read failed", extra={"key": key})
        return default_factory()
    return _validate(key, adapter, raw, default_factory, strict=strict)


def update_collection(
    store: RecordStore,
    key: str,
    adapter: TypeAdapter[T],
    default_factory: Callable[[], T],
    mutate: Callable[[T], R],
) -> R:
    """Apply ``mutate`` in place to the stored collection and persist it.

    ``mutate`` may run more than once when the backend retries a lost race;
    it always sees a freshly read collection. A stored payload that cannot be
    decoded or validated is left untouched and :class:`StoreCorruptionError`
    is raised instead of overwriting it.
    """
    outcome: list[R] = []

    def apply(raw: Any) -> Any:
        collection = _validate(key, adapter, raw, default_factory, strict=True)
        outcome[:] = [mutate(collection)]
        return adapter.dump_python(collection, mode="json")

    store.update(key, apply)
    return outcome[0]
