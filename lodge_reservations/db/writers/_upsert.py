"""
Generic upsert helper with IS DISTINCT FROM optimization.

Works on PostgreSQL and SQLite; both dialects expose the same
``insert(...).on_conflict_do_update`` construct.
"""

from typing import Any, Sequence

from sqlalchemy import or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection


def _dialect_insert(conn: Connection, table: type) -> Any:
    if conn.dialect.name == "postgresql":
        return postgresql.insert(table)
    if conn.dialect.name == "sqlite":
        return sqlite.insert(table)
    raise ValueError(f"Upsert not supported for dialect {conn.dialect.name}")


def upsert_with_distinct_check(
    conn: Connection,
    table: type,
    rows: list[dict[str, Any]],
    conflict_columns: Sequence[str],
    distinct_columns: Sequence[str],
    update_columns: Sequence[str] | None = None,
) -> None:
    """
    Perform upsert with IS DISTINCT FROM optimization.

    Only updates rows where at least one of ``distinct_columns`` actually
    changed, so that ``updated_at`` is not bumped by no-op re-imports.

    Args:
        conn: Active database connection (within transaction)
        table: SQLAlchemy ORM table class (e.g., Reservation)
        rows: List of row dicts to upsert
        conflict_columns: Columns of the unique constraint used for ON CONFLICT
        distinct_columns: Columns compared to decide whether to update
        update_columns: Columns to update on conflict
            (default: distinct_columns + ["updated_at"])

    Example:
        >>> with engine.begin() as conn:
        ...     upsert_with_distinct_check(
        ...         conn=conn,
        ...         table=Reservation,
        ...         rows=[{...}],
        ...         conflict_columns=["mapping_id", "external_id"],
        ...         distinct_columns=["check_in", "check_out"],
        ...     )
    """
    if not rows:
        return

    if update_columns is None:
        update_columns = [*distinct_columns, "updated_at"]

    stmt = _dialect_insert(conn, table).values(rows)

    set_dict = {col: getattr(stmt.excluded, col) for col in update_columns}

    distinct_check = or_(
        *(
            getattr(table, col).is_distinct_from(getattr(stmt.excluded, col))
            for col in distinct_columns
        )
    )

    stmt = stmt.on_conflict_do_update(
        index_elements=list(conflict_columns),
        set_=set_dict,
        where=distinct_check,
    )

    conn.execute(stmt)
