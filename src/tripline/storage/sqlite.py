"""SQLAlchemy-backed execution store.

Keeps cooldown and execute-once bookkeeping across process restarts.
Node ids are only stable across restarts when scripts are compiled with
a fixed namespace (see ``ForestCompiler.compile``).
"""

from __future__ import annotations

import threading
from datetime import datetime

from sqlalchemy import Engine, delete, select
from sqlalchemy.orm import Session, sessionmaker

from tripline.storage.engine import create_session_factory, create_tripline_engine, init_db
from tripline.storage.repositories import Acquisition, ExecutionStore, check_policy
from tripline.storage.schema import ExecutionRow


class SqlExecutionStore(ExecutionStore):
    """Execution store persisting to any SQLAlchemy database.

    Each call runs in its own short transaction. A process-local lock
    serialises check-and-set so :meth:`try_acquire` stays atomic for
    threads sharing this store.
    """

    def __init__(self, engine: Engine, *, create_tables: bool = True) -> None:
        self._engine = engine
        self._session_factory: sessionmaker[Session] = create_session_factory(engine)
        self._lock = threading.Lock()
        if create_tables:
            init_db(engine)

    @classmethod
    def open(cls, path: str = ":memory:", *, url: str | None = None) -> SqlExecutionStore:
        """Create a store on a new engine for *path* (or *url*)."""
        return cls(create_tripline_engine(path, url=url))

    def close(self) -> None:
        self._engine.dispose()

    def last_execution(self, node_id: str, target_id: str) -> int | None:
        with self._session_factory() as session:
            row = session.get(ExecutionRow, (node_id, target_id))
            return row.last_execution_ms if row is not None else None

    def try_acquire(
        self,
        node_id: str,
        target_id: str,
        now: int,
        *,
        cooldown_ms: int = 0,
        execute_once: bool = False,
    ) -> Acquisition:
        with self._lock, self._session_factory.begin() as session:
            row = session.get(ExecutionRow, (node_id, target_id))
            previous = row.last_execution_ms if row is not None else None
            reason = check_policy(
                previous, now, cooldown_ms=cooldown_ms, execute_once=execute_once
            )
            if reason is not None:
                return Acquisition(granted=False, reason=reason, previous=previous)
            self._upsert(session, row, node_id, target_id, now)
        return Acquisition(granted=True, reserved_at=now, previous=previous)

    def record(self, node_id: str, target_id: str, timestamp: int) -> None:
        with self._lock, self._session_factory.begin() as session:
            row = session.get(ExecutionRow, (node_id, target_id))
            self._upsert(session, row, node_id, target_id, timestamp)

    def release(self, node_id: str, target_id: str, acquisition: Acquisition) -> None:
        if not acquisition.granted:
            return
        with self._lock, self._session_factory.begin() as session:
            row = session.get(ExecutionRow, (node_id, target_id))
            if row is None or row.last_execution_ms != acquisition.reserved_at:
                return
            if acquisition.previous is None:
                session.delete(row)
            else:
                row.last_execution_ms = acquisition.previous
                row.updated_at = datetime.now()

    def clear(self, node_id: str | None = None) -> None:
        with self._lock, self._session_factory.begin() as session:
            stmt = delete(ExecutionRow)
            if node_id is not None:
                stmt = stmt.where(ExecutionRow.node_id == node_id)
            session.execute(stmt)

    def node_ids(self) -> list[str]:
        """Distinct node ids with recorded executions."""
        with self._session_factory() as session:
            result = session.execute(select(ExecutionRow.node_id).distinct())
            return sorted(row[0] for row in result)

    @staticmethod
    def _upsert(
        session: Session,
        row: ExecutionRow | None,
        node_id: str,
        target_id: str,
        timestamp: int,
    ) -> None:
        if row is None:
            session.add(
                ExecutionRow(
                    node_id=node_id,
                    target_id=target_id,
                    last_execution_ms=timestamp,
                    updated_at=datetime.now(),
                )
            )
        else:
            row.last_execution_ms = timestamp
            row.updated_at = datetime.now()
