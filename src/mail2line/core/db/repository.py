from __future__ import annotations

from pathlib import Path

from .migrations import apply_migrations, connect_db


class PropertyRepository:
    """Flat string key-value store backed by the ``properties`` table."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.connection = connect_db(db_path)

    def close(self) -> None:
        self.connection.close()

    def __enter__(self) -> PropertyRepository:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    def migrate(self) -> list[str]:
        migrations_dir = Path(__file__).parent / "migrations"
        return apply_migrations(self.connection, migrations_dir)

    def get(self, key: str) -> str | None:
        row = self.connection.execute(
            "SELECT value FROM properties WHERE key = ?",
            (key,),
        ).fetchone()
        if row is None:
            return None
        return row["value"]

    def set(self, key: str, value: str) -> None:
        with self.connection:
            self.connection.execute(
                """
                INSERT INTO properties (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value),
            )

    def delete(self, key: str) -> bool:
        with self.connection:
            cursor = self.connection.execute("DELETE FROM properties WHERE key = ?", (key,))
        return cursor.rowcount > 0

    def items(self) -> dict[str, str]:
        rows = self.connection.execute("SELECT key, value FROM properties ORDER BY key")
        return {row["key"]: row["value"] for row in rows}
