"""Dialect detection and the grant upsert (ON CONFLICT or MERGE)."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.dialects import postgresql, sqlite

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

GRANT_KEY_COLUMNS: list[str] = ["resource_id", "share_type", "target_id"]
GRANT_UPDATE_COLUMNS: list[str] = ["shared_by", "shared_at", "permissions"]

_DIALECT_ALIASES = {
    "sqlite": "sqlite",
    "postgresql": "postgresql",
    "postgres": "postgresql",
    "mssql": "mssql",
    "pyodbc": "mssql",
}

_ON_CONFLICT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def get_dialect(engine: Engine | AsyncEngine) -> str:
    """Normalized dialect name: 'sqlite', 'postgresql', 'mssql', or the raw name."""
    # AsyncEngine exposes the underlying Engine as sync_engine
    name = getattr(engine, "sync_engine", engine).dialect.name
    return _DIALECT_ALIASES.get(name, name)


async def upsert_grant(
    session: AsyncSession,
    dialect: str,
    values: dict[str, Any],
    model: type | None = None,
    schema: str | None = None,
) -> int:
    """Insert a grant row or overwrite the one with the same key. Returns rowcount.

    The key is ``(resource_id, share_type, target_id)``.  On conflict only
    ``shared_by``, ``shared_at`` and ``permissions`` change, so an existing
    row keeps its ``id``.

    *model* defaults to ``ShareGrant``; *schema* optionally qualifies the
    table.  MSSQL goes through ``MERGE ... WITH (HOLDLOCK)``; SQLite and
    PostgreSQL use ``INSERT ... ON CONFLICT DO UPDATE``.
    """
    if model is None:
        from sharegate.models.grants import ShareGrant

        model = ShareGrant

    if dialect == "mssql":
        return await _merge_grant(session, values, model, schema)
    return await _on_conflict_grant(session, dialect, values, model, schema)


async def _on_conflict_grant(
    session: AsyncSession,
    dialect: str,
    values: dict[str, Any],
    model: type,
    schema: str | None,
) -> int:
    insert = _ON_CONFLICT_INSERTS.get(dialect, sqlite.insert)
    stmt = insert(model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=GRANT_KEY_COLUMNS,
        set_={col: values[col] for col in GRANT_UPDATE_COLUMNS if col in values},
    )
    if schema:
        stmt = stmt.execution_options(schema_translate_map={None: schema})

    result = await session.execute(stmt)
    return result.rowcount  # type: ignore[return-value]


async def _merge_grant(
    session: AsyncSession,
    values: dict[str, Any],
    model: type,
    schema: str | None,
) -> int:
    table = getattr(model, "__tablename__", "sharegate_share_grants")
    if schema:
        table = f"[{schema}].{table}"

    # text() binds carry no column types, so the JSON list is serialized here
    params = {k: json.dumps(v) if isinstance(v, list) else v for k, v in values.items()}
    columns = list(params)

    source = ", ".join(f":{col} AS {col}" for col in GRANT_KEY_COLUMNS)
    match = " AND ".join(f"target.{col} = :{col}" for col in GRANT_KEY_COLUMNS)
    updates = ", ".join(f"target.{col} = :{col}" for col in GRANT_UPDATE_COLUMNS if col in params)

    sql = (
        f"MERGE INTO {table} WITH (HOLDLOCK) AS target "
        f"USING (SELECT {source}) AS source "
        f"ON {match} "
        f"WHEN NOT MATCHED THEN INSERT ({', '.join(columns)}) "
        f"VALUES ({', '.join(':' + col for col in columns)}) "
        f"WHEN MATCHED THEN UPDATE SET {updates};"
    )
    result = await session.execute(text(sql), params)
    return result.rowcount  # type: ignore[return-value]
