# Overview: Locking helpers for check-then-write sequences.

"""
Row and database locking.

Postgres and MySQL honor SELECT ... FOR UPDATE, so lock_for_update() is
enough to serialize writers on one row.

SQLite ignores FOR UPDATE, and pysqlite only emits BEGIN right before the
first INSERT/UPDATE, so a check SELECT runs outside any transaction. For
file-based SQLite engines, install_sqlite_transaction_hooks() takes over
BEGIN from the driver, and begin_write() starts the session's transaction
with BEGIN IMMEDIATE: the database write lock is taken before the check
and held until commit or rollback.
"""

from __future__ import annotations

from sqlalchemy import event


_SQLITE_BEGIN_OPTION = "sqlite_begin"


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    The lock is held until the surrounding transaction commits or rolls back.
    NOTE: SQLite ignores SELECT ... FOR UPDATE; see begin_write().
    """
    return query.with_for_update()


def _disable_driver_begin(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


def _emit_begin(conn):
    mode = conn.get_execution_options().get(_SQLITE_BEGIN_OPTION)
    conn.exec_driver_sql(f"BEGIN {mode}" if mode else "BEGIN")


def is_sqlite_file_engine(engine) -> bool:
    if engine.dialect.name != "sqlite":
        return False
    database = engine.url.database or ""
    # In-memory databases share a single connection (StaticPool)
    return database not in ("", ":memory:") and "mode=memory" not in database


def install_sqlite_transaction_hooks(engine) -> bool:
    """
    Let SQLAlchemy emit BEGIN itself on file-based SQLite engines.

    Returns False (and changes nothing) for other engines. Safe to call
    more than once for the same engine.
    """
    if not is_sqlite_file_engine(engine):
        return False

    if not event.contains(engine, "begin", _emit_begin):
        event.listen(engine, "connect", _disable_driver_begin)
        event.listen(engine, "begin", _emit_begin)
    return True


def uses_sqlite_write_lock(engine) -> bool:
    return event.contains(engine, "begin", _emit_begin)


def begin_write(session) -> None:
    """
    Open the transaction for a check-then-write sequence.

    On hooked SQLite engines any open transaction is committed first, then a
    new one starts with BEGIN IMMEDIATE. Other backends are left alone and
    rely on lock_for_update().
    """
    if not uses_sqlite_write_lock(session.get_bind()):
        return

    if session.in_transaction():
        session.commit()
    session.connection(execution_options={_SQLITE_BEGIN_OPTION: "IMMEDIATE"})
