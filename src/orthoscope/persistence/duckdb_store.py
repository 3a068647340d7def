"""DuckDB-based storage for the published orthology index tables."""

from pathlib import Path
from typing import TYPE_CHECKING, Optional

import duckdb
import polars as pl

if TYPE_CHECKING:
    from orthoscope.config.schema import OrthoscopeConfig


class IndexStore:
    """
    DuckDB-based storage for ingested orthology data.

    Tables written by one ingestion are replaced together inside a single
    transaction, so readers opening the database see either the previous
    index or the new one, never a mix of both.
    """

    def __init__(self, db_path: Path, read_only: bool = False):
        """
        Initialize IndexStore with a DuckDB database.

        Args:
            db_path: Path to DuckDB database file. Parent directories
                     are created automatically.
            read_only: Open the database without write access
        """
        self.db_path = Path(db_path)
        self.read_only = read_only

        if read_only:
            self.conn = duckdb.connect(str(self.db_path), read_only=True)
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = duckdb.connect(str(self.db_path))

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS _checkpoints (
                table_name VARCHAR PRIMARY KEY,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                row_count INTEGER,
                description VARCHAR
            )
        """)

    def _write_table(
        self,
        df: pl.DataFrame,
        table_name: str,
        description: str,
        replace: bool,
    ) -> None:
        # DuckDB resolves the local name ``df`` through replacement scans
        if replace:
            self.conn.execute(f"CREATE OR REPLACE TABLE {table_name} AS SELECT * FROM df")
        else:
            self.conn.execute(f"INSERT INTO {table_name} SELECT * FROM df")

        self.conn.execute("""
            INSERT OR REPLACE INTO _checkpoints (table_name, row_count, description, created_at)
            VALUES (?, ?, ?, CURRENT_TIMESTAMP)
        """, [table_name, len(df), description])

    def save_dataframe(
        self,
        df: pl.DataFrame,
        table_name: str,
        description: str = "",
        replace: bool = True
    ) -> None:
        """
        Save a polars DataFrame to DuckDB as a table.

        Args:
            df: Polars DataFrame to save
            table_name: Name for the DuckDB table
            description: Optional description for checkpoint metadata
            replace: If True, replace existing table; if False, append
        """
        if not isinstance(df, pl.DataFrame):
            raise ValueError("df must be a polars.DataFrame")

        self._write_table(df, table_name, description, replace)

    def replace_tables(
        self,
        tables: dict[str, pl.DataFrame],
        descriptions: Optional[dict[str, str]] = None,
        indexes: Optional[dict[str, list[str]]] = None,
    ) -> None:
        """
        Replace several tables atomically.

        All tables (and their indexes) are rewritten in one transaction;
        on any error the transaction is rolled back and the previous
        tables stay in place.

        Args:
            tables: Mapping of table name to DataFrame
            descriptions: Optional checkpoint description per table
            indexes: Optional mapping of table name to indexed columns
        """
        descriptions = descriptions or {}
        indexes = indexes or {}

        self.conn.execute("BEGIN TRANSACTION")
        try:
            for table_name, df in tables.items():
                if not isinstance(df, pl.DataFrame):
                    raise ValueError(f"Table {table_name} must be a polars.DataFrame")
                columns = indexes.get(table_name)
                index_name = f"idx_{table_name}_{'_'.join(columns)}" if columns else None
                if index_name:
                    self.conn.execute(f"DROP INDEX IF EXISTS {index_name}")
                self._write_table(df, table_name, descriptions.get(table_name, ""), True)

                if index_name:
                    self.conn.execute(
                        f"CREATE INDEX {index_name} "
                        f"ON {table_name} ({', '.join(columns)})"
                    )
            self.conn.execute("COMMIT")
        except Exception:
            self.conn.execute("ROLLBACK")
            raise

    def load_dataframe(self, table_name: str) -> Optional[pl.DataFrame]:
        """
        Load a table as a polars DataFrame.

        Args:
            table_name: Name of the DuckDB table

        Returns:
            DataFrame or None if table doesn't exist
        """
        try:
            return self.conn.execute(f"SELECT * FROM {table_name}").pl()
        except duckdb.CatalogException:
            return None

    def has_checkpoint(self, table_name: str) -> bool:
        """
        Check if a table was written by this store.

        Args:
            table_name: Name of the table to check

        Returns:
            True if checkpoint exists, False otherwise
        """
        try:
            result = self.conn.execute(
                "SELECT COUNT(*) FROM _checkpoints WHERE table_name = ?",
                [table_name]
            ).fetchone()
        except duckdb.CatalogException:
            return False
        return result[0] > 0

    def list_checkpoints(self) -> list[dict]:
        """
        List all checkpoints with metadata.

        Returns:
            List of checkpoint metadata dicts with keys:
            table_name, created_at, row_count, description
        """
        result = self.conn.execute("""
            SELECT table_name, created_at, row_count, description
            FROM _checkpoints
            ORDER BY created_at DESC, table_name
        """).fetchall()

        return [
            {
                "table_name": row[0],
                "created_at": row[1],
                "row_count": row[2],
                "description": row[3],
            }
            for row in result
        ]

    def execute_query(
        self,
        query: str,
        params: Optional[list] = None
    ) -> pl.DataFrame:
        """
        Execute arbitrary SQL query and return polars DataFrame.

        Args:
            query: SQL query to execute
            params: Optional query parameters

        Returns:
            Query results as polars DataFrame
        """
        if params:
            result = self.conn.execute(query, params)
        else:
            result = self.conn.execute(query)
        return result.pl()

    def close(self) -> None:
        """Close the DuckDB connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @classmethod
    def from_config(cls, config: "OrthoscopeConfig", read_only: bool = False) -> "IndexStore":
        """
        Create IndexStore from an OrthoscopeConfig.

        Args:
            config: OrthoscopeConfig instance
            read_only: Open the database without write access

        Returns:
            IndexStore instance
        """
        return cls(config.duckdb_path, read_only=read_only)
