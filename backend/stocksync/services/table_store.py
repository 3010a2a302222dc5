# Overview: Thin typed-table layer over a SQLAlchemy session with atomic scopes and change notification.
"""
Durable Table Store

Every component of the sync core (entity cache, outbox, activity log, pull
cursors) goes through this class to touch the database. It offers:

- transaction(): outermost scope commits, nested scopes join it. A gesture that
  mutates the cache, enqueues an outbox action and appends an activity entry
  therefore commits or rolls back as one unit.
- Primitives: get / select / count / insert / merge_all / update_columns /
  delete_where. Mutating primitives record the table they touched.
- subscribe(): live queries. After the outermost commit, subscriptions that
  watch a touched table receive a fresh snapshot.

Error mapping: OperationalError -> TransientIO(source="local"), any other
SQLAlchemyError -> Fatal. Everything else rolls back and propagates unchanged.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterable

from sqlalchemy import func
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from ..errors import Fatal, TransientIO
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)


def _table_name(model_or_name) -> str:
    if isinstance(model_or_name, str):
        return model_or_name
    return model_or_name.__tablename__


class Subscription:
    """A registered live query; cancel() stops further deliveries."""

    def __init__(self, store: "TableStore", tables: frozenset[str], query: Callable[[], Any], callback: Callable[[Any], None]):
        self._store = store
        self.tables = tables
        self._query = query
        self._callback = callback
        self.active = True

    def refresh(self) -> None:
        if not self.active:
            return
        self._callback(self._query())

    def cancel(self) -> None:
        self.active = False
        self._store._unsubscribe(self)


class TableStore:
    def __init__(self, session, *, retry_attempts: int = 3, retry_backoff: float = 0.1):
        self._session = session
        self._retry_attempts = retry_attempts
        self._retry_backoff = retry_backoff
        self._local = threading.local()
        self._subscriptions: list[Subscription] = []
        self._subs_lock = threading.RLock()

    @property
    def session(self):
        return self._session

    # ------------------------------------------------------------------
    # Transaction scope
    # ------------------------------------------------------------------

    def _scope(self):
        scope = self._local
        if not hasattr(scope, "depth"):
            scope.depth = 0
            scope.touched = set()
        return scope

    @property
    def in_transaction(self) -> bool:
        return self._scope().depth > 0

    @contextmanager
    def transaction(self):
        scope = self._scope()
        if scope.depth:
            scope.depth += 1
            try:
                yield self._session
            finally:
                scope.depth -= 1
            return

        scope.depth = 1
        scope.touched = set()
        try:
            yield self._session
            self._session.commit()
        except OperationalError as exc:
            self._session.rollback()
            raise TransientIO(f"local store unavailable: {exc.orig}", source="local") from exc
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise Fatal(f"local store failure: {exc}") from exc
        except BaseException:
            self._session.rollback()
            raise
        finally:
            touched = scope.touched
            scope.depth = 0
            scope.touched = set()

        self._notify(touched)

    def atomic(self, func: Callable[[Any], Any]):
        """
        Run func(session) inside a transaction.

        Joins an enclosing transaction when there is one; otherwise the whole
        scope is retried on local lock contention.
        """
        if self.in_transaction:
            return func(self._session)

        def _op():
            with self.transaction() as session:
                return func(session)

        return run_with_retry(_op, attempts=self._retry_attempts, backoff_base=self._retry_backoff)

    def touch(self, *models) -> None:
        scope = self._scope()
        for model in models:
            scope.touched.add(_table_name(model))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _read(self, func):
        try:
            return func()
        except OperationalError as exc:
            if not self.in_transaction:
                self._session.rollback()
            raise TransientIO(f"local store unavailable: {exc.orig}", source="local") from exc
        except SQLAlchemyError as exc:
            if not self.in_transaction:
                self._session.rollback()
            raise Fatal(f"local store failure: {exc}") from exc

    def get(self, model, pk):
        return self._read(lambda: self._session.get(model, pk))

    def select(self, model, *criteria, order_by: Iterable = (), limit: int | None = None) -> list:
        def _q():
            query = self._session.query(model)
            if criteria:
                query = query.filter(*criteria)
            if order_by:
                query = query.order_by(*order_by)
            if limit is not None:
                query = query.limit(limit)
            return query.all()
        return self._read(_q)

    def count(self, model, *criteria) -> int:
        def _q():
            query = self._session.query(model)
            if criteria:
                query = query.filter(*criteria)
            return query.count()
        return self._read(_q)

    def max_of(self, column, default: int = 0):
        """Largest value in column, or default for an empty table."""
        value = self._read(lambda: self._session.query(func.max(column)).scalar())
        return default if value is None else value

    # ------------------------------------------------------------------
    # Writes (callers wrap these in transaction()/atomic())
    # ------------------------------------------------------------------

    def insert(self, row):
        self._session.add(row)
        self._session.flush()
        self.touch(type(row))
        return row

    def merge_all(self, rows: Iterable) -> list:
        """Insert-or-replace by primary key."""
        merged = []
        for row in rows:
            merged.append(self._session.merge(row))
            self.touch(type(row))
        self._session.flush()
        return merged

    def update_columns(self, model, *criteria, values: dict) -> int:
        updated = self._session.query(model).filter(*criteria).update(values, synchronize_session="fetch")
        if updated:
            self.touch(model)
        return updated

    def delete_where(self, model, *criteria) -> int:
        query = self._session.query(model)
        if criteria:
            query = query.filter(*criteria)
        deleted = query.delete(synchronize_session="fetch")
        # wipes notify even when the table was already empty
        self.touch(model)
        return deleted

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, tables, query: Callable[[], Any], callback: Callable[[Any], None], *, emit_initial: bool = True) -> Subscription:
        if isinstance(tables, str) or hasattr(tables, "__tablename__"):
            tables = [tables]
        sub = Subscription(self, frozenset(_table_name(t) for t in tables), query, callback)
        with self._subs_lock:
            self._subscriptions.append(sub)
        if emit_initial:
            sub.refresh()
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        with self._subs_lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def _notify(self, touched: set[str]) -> None:
        if not touched:
            return
        with self._subs_lock:
            interested = [s for s in self._subscriptions if s.tables & touched]
        for sub in interested:
            try:
                sub.refresh()
            except Exception:
                logger.exception("live query subscriber failed for tables %s", sorted(sub.tables))
