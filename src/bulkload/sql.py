"""SQL text builders shared by the backends."""


def insert_sql(table: str, columns: list[str], placeholder: str) -> str:
    cols = ", ".join(columns)
    placeholders = ", ".join(placeholder for _ in columns)
    return f"INSERT INTO {table} ({cols}) VALUES ({placeholders})"


def upsert_sql(
    table: str,
    columns: list[str],
    conflict_columns: list[str],
    placeholder: str,
    excluded: str = "excluded",
) -> str:
    """INSERT ... ON CONFLICT, updating every non-key column from the new row.

    When all columns are part of the conflict target there is nothing to
    update and conflicting rows are ignored.
    """
    conflict_cols = ", ".join(conflict_columns)
    update_cols = [c for c in columns if c not in conflict_columns]
    sql = f"{insert_sql(table, columns, placeholder)} ON CONFLICT ({conflict_cols}) "
    if not update_cols:
        return sql + "DO NOTHING"
    update_clause = ", ".join(f"{c} = {excluded}.{c}" for c in update_cols)
    return sql + f"DO UPDATE SET {update_clause}"
