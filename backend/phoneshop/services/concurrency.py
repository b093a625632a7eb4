# Overview: Row-locking helper for read-modify-write sequences on ledger rows.

from __future__ import annotations


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE (it serializes writers at the
    database level instead), but PostgreSQL/MySQL will honor it.
    """
    return query.with_for_update()
