"""
Data access layer for the MotherDuck gateway.
Owns the single DuckDB connection and the read-only query interface.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

import duckdb

from .config import Settings, settings as default_settings
from .errors import ServiceUnavailable

logger = logging.getLogger(__name__)

SYSTEM_SCHEMAS = ("information_schema", "pg_catalog")


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _quote_ident(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


class MotherDuckClient:
    """
    Wraps one long-lived DuckDB connection with a MotherDuck catalog attached.

    The connection lives for the lifetime of the process; each query runs
    on its own cursor so concurrent request handlers never share a pending
    result. When no token is configured (or the attach fails) the
    connection stays unset and every query raises ServiceUnavailable.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        database: str = "md:default",
        alias: str = "md_db",
        conn: Optional[duckdb.DuckDBPyConnection] = None,
        connect_fn: Callable[..., Any] = duckdb.connect,
    ):
        self.token = token
        self.database = database
        self.alias = alias
        self.conn = conn
        self.attached = False
        self._connect_fn = connect_fn

    @classmethod
    def from_settings(cls, cfg: Settings = None) -> "MotherDuckClient":
        cfg = cfg or default_settings
        return cls(
            token=cfg.MOTHERDUCK_TOKEN,
            database=cfg.MOTHERDUCK_DATABASE,
            alias=cfg.MOTHERDUCK_ALIAS,
        )

    @property
    def is_configured(self) -> bool:
        return self.conn is not None

    # ----------------------------------------------------------------
    # Connection Setup
    # ----------------------------------------------------------------

    def connect(self) -> bool:
        """
        Open an in-memory DuckDB engine and attach the MotherDuck catalog.

        Issues, in order: SET motherduck_token, ATTACH <database> AS <alias>,
        USE <alias>. Failures are logged and leave the connection unset.

        Returns:
            True if the catalog was attached, False otherwise
        """
        if not self.token:
            logger.warning(
                "MotherDuck token not set. Set MOTHERDUCK_TOKEN to enable MotherDuck endpoints."
            )
            return False

        conn = None
        try:
            conn = self._connect_fn(":memory:")
            conn.execute(f"SET motherduck_token={_quote_literal(self.token)}")
            conn.execute(f"ATTACH {_quote_literal(self.database)} AS {_quote_ident(self.alias)}")
            conn.execute(f"USE {_quote_ident(self.alias)}")
        except Exception as e:
            logger.error(f"Failed to initialize MotherDuck connection: {e}")
            if conn is not None:
                try:
                    conn.close()
                except Exception as close_err:
                    logger.debug(f"Ignoring error while closing failed connection: {close_err}")
            self.conn = None
            self.attached = False
            return False

        self.conn = conn
        self.attached = True
        logger.info(f"MotherDuck connection initialized ({self.database} AS {self.alias})")
        return True

    def require(self) -> duckdb.DuckDBPyConnection:
        """Return the live connection or raise ServiceUnavailable."""
        if self.conn is None:
            raise ServiceUnavailable()
        return self.conn

    def close(self):
        """Close database connection."""
        if self.conn is not None:
            self.conn.close()
            self.conn = None
            self.attached = False

    # ----------------------------------------------------------------
    # Queries
    # ----------------------------------------------------------------

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """
        Execute SQL verbatim and return rows as column->value dicts.

        Args:
            sql: SQL text, passed to the engine unchanged
            params: Optional positional parameters for ``?`` placeholders

        Returns:
            Rows in the order the engine produced them
        """
        conn = self.require()
        # One cursor per call; a DuckDB connection holds a single pending result.
        cur = conn.cursor()
        try:
            if self.attached:
                # USE is per-connection state, ATTACH is shared by the instance.
                cur.execute(f"USE {_quote_ident(self.alias)}")
            if params:
                cur.execute(sql, params)
            else:
                cur.execute(sql)
            if cur.description is None:
                return []
            cols = [d[0] for d in cur.description]
            return [dict(zip(cols, row)) for row in cur.fetchall()]
        finally:
            cur.close()

    def ping(self) -> List[Dict[str, Any]]:
        """Constant query confirming the connection is responsive."""
        return self.query("SELECT 1 AS ok")

    def list_tables(self, schema: Optional[str] = None, include_views: bool = False) -> List[Dict[str, Any]]:
        """
        List tables (and optionally views) from the engine's information schema.

        Args:
            schema: Restrict to a single schema name
            include_views: Include VIEW rows alongside BASE TABLE rows

        Returns:
            List of {table_catalog, table_schema, table_name, table_type}
        """
        types = ["BASE TABLE", "VIEW"] if include_views else ["BASE TABLE"]
        params: List[Any] = [*types, *SYSTEM_SCHEMAS]
        sql = f"""
            SELECT table_catalog, table_schema, table_name, table_type
            FROM information_schema.tables
            WHERE table_type IN ({", ".join("?" for _ in types)})
              AND table_schema NOT IN ({", ".join("?" for _ in SYSTEM_SCHEMAS)})
        """
        if schema:
            sql += "  AND table_schema = ?\n"
            params.append(schema)
        sql += "ORDER BY table_catalog, table_schema, table_name"
        return self.query(sql, params)

    # ----------------------------------------------------------------
    # Diagnostics
    # ----------------------------------------------------------------

    def _current_database(self):
        rows = self.query("SELECT current_database() AS current_database")
        return rows[0]["current_database"] if rows else None

    def _schemas(self):
        return self.query(
            """
            SELECT schema_name
            FROM information_schema.schemata
            WHERE catalog_name = current_database()
            ORDER BY schema_name
            """
        )

    def _table_count(self):
        rows = self.query(
            """
            SELECT COUNT(*) AS table_count
            FROM information_schema.tables
            WHERE table_catalog = current_database()
            """
        )
        return rows[0]["table_count"] if rows else 0

    def diagnostics(self) -> Dict[str, Any]:
        """
        Report what is attached and visible on the connection.

        Each probe runs independently; a failing probe leaves its field as
        None and records the error message under ``errors``.
        """
        self.require()
        probes = [
            ("database_list", lambda: self.query("PRAGMA database_list")),
            ("current_database", self._current_database),
            ("schemas", self._schemas),
            ("table_count", self._table_count),
        ]

        report: Dict[str, Any] = {"errors": {}}
        for field, probe in probes:
            try:
                report[field] = probe()
            except Exception as e:
                logger.warning(f"Diagnostics probe '{field}' failed: {e}")
                report[field] = None
                report["errors"][field] = str(e)
        return report
