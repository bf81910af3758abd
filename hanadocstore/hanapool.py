"""Access to SAP HANA JSON Document Store schemas and collections."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from contextlib import closing
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

_DUPLICATE_SCHEMA = "386: cannot use duplicate schema name"
_DUPLICATE_TABLE = "288: cannot use duplicate table name"
_INVALID_SCHEMA = "362: invalid schema name"

_TABLES_SQL = (
    'SELECT TABLE_NAME FROM "PUBLIC"."M_TABLES" '
    "WHERE SCHEMA_NAME = $1 AND TABLE_TYPE = 'COLLECTION';"
)
_SCHEMAS_SQL = (
    "SELECT SCHEMA_NAME FROM SCHEMAS "
    "WHERE SCHEMA_NAME NOT LIKE '%SYS%' AND SCHEMA_OWNER NOT LIKE '%SYS%'"
)
_DOCSTORE_SQL = (
    "SELECT object_count FROM m_feature_usage "
    "WHERE component_name = 'DOCSTORE' AND feature_name = 'COLLECTIONS'"
)


class NotExistError(LookupError):
    """Raised when a schema or collection does not exist."""

    def __init__(self, message: str = "schema or table does not exist") -> None:
        super().__init__(message)


class AlreadyExistError(Exception):
    """Raised when a schema or collection already exists."""

    def __init__(self, message: str = "schema or table already exist") -> None:
        super().__init__(message)


@dataclass
class TableStats:
    """Statistics for one table."""

    table: str = ""
    table_type: str = ""
    size_total: int = 0
    size_indexes: int = 0
    size_table: int = 0
    rows: int = 0


@dataclass
class DBStats:
    """Statistics for one database."""

    name: str = ""
    count_tables: int = 0
    count_rows: int = 0
    size_total: int = 0
    size_indexes: int = 0
    size_schema: int = 0
    count_indexes: int = 0


def _identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _names(rows: Sequence[Sequence[Any]], column: str) -> list[str]:
    names = []
    for row in rows:
        value = row[0]
        if value is None:
            raise ValueError(
                f'Scan error on column index 0, name "{column}": '
                "converting NULL to string is unsupported"
            )
        names.append(str(value))
    return names


class HanaPool:
    """A DB-API connection to SAP HANA used as a JSON document store."""

    def __init__(self, connection: Any) -> None:
        self._connection = connection

    def _query_all(self, sql: str, *params: Any) -> list[Sequence[Any]]:
        with closing(self._connection.cursor()) as cursor:
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)
            return list(cursor.fetchall())

    def _query_one(self, sql: str) -> Sequence[Any]:
        with closing(self._connection.cursor()) as cursor:
            cursor.execute(sql)
            row = cursor.fetchone()
        if row is None:
            raise LookupError("no rows in result set")
        return row

    def _exec(self, sql: str) -> None:
        with closing(self._connection.cursor()) as cursor:
            cursor.execute(sql)
        self._connection.commit()

    def tables(self, db: str) -> list[str]:
        """Return the names of the collections in schema ``db``."""
        return _names(self._query_all(_TABLES_SQL, db), "table_name")

    def schemas(self) -> list[str]:
        """Return the names of the non-system schemas."""
        return _names(self._query_all(_SCHEMAS_SQL), "schema_name")

    def create_schema(self, db: str) -> None:
        """Create a schema; raise AlreadyExistError if it exists."""
        try:
            self._exec(f"CREATE SCHEMA {_identifier(db)}")
        except Exception as exc:
            if _DUPLICATE_SCHEMA in str(exc):
                raise AlreadyExistError() from exc
            raise

    def create_collection(self, db: str, collection: str) -> None:
        """Create a collection; raise AlreadyExistError if it exists."""
        try:
            self._exec(f"CREATE COLLECTION {_identifier(db)}.{_identifier(collection)}")
        except Exception as exc:
            if _DUPLICATE_TABLE in str(exc):
                raise AlreadyExistError() from exc
            raise

    def create_namespace_if_not_exists(self, db: str, collection: str) -> None:
        """Create the schema and the collection unless they already exist."""
        try:
            self.create_schema(db)
        except AlreadyExistError:
            pass
        try:
            self.create_collection(db, collection)
        except AlreadyExistError:
            pass

    def drop_table(self, db: str, collection: str) -> None:
        """Drop a collection; raise NotExistError on any failure."""
        try:
            self._exec(f"DROP COLLECTION {_identifier(db)}.{_identifier(collection)}")
        except Exception as exc:
            raise NotExistError() from exc

    def drop_schema(self, db: str) -> None:
        """Drop a schema with everything in it; raise NotExistError if it is missing."""
        try:
            self._exec(f"DROP SCHEMA {_identifier(db)} CASCADE")
        except Exception as exc:
            if _INVALID_SCHEMA in str(exc):
                raise NotExistError() from exc
            raise

    def json_document_store_available(self) -> bool:
        """Tell whether the JSON Document Store is enabled in the instance."""
        count = self._query_one(_DOCSTORE_SQL)[0]
        if count is None:
            return False
        if isinstance(count, bool) or not isinstance(count, int):
            raise TypeError(f"unexpected object_count type {type(count).__name__}")
        if count >= 0:
            return True
        raise ValueError("No clear answer on whether DocStore is activated or not")

    def namespace_exists(self, db: str, collection: str) -> bool:
        """Tell whether both the schema and the collection exist."""
        return self.database_exists(db) and self.collections_exists(db, collection)

    def database_exists(self, db: str) -> bool:
        """Tell whether schema ``db`` exists."""
        sql = f'SELECT COUNT(*) FROM "PUBLIC"."SCHEMAS" WHERE SCHEMA_NAME = {_literal(db)}'
        return self._query_one(sql)[0] > 0

    def collections_exists(self, db: str, collection: str) -> bool:
        """Tell whether the collection exists in schema ``db``."""
        sql = (
            f'SELECT COUNT(*) FROM "PUBLIC"."M_TABLES" WHERE SCHEMA_NAME = {_literal(db)} '
            f"AND table_name = {_literal(collection)} AND TABLE_TYPE = 'COLLECTION'"
        )
        return self._query_one(sql)[0] > 0

    def close(self) -> None:
        """Close the underlying connection."""
        self._connection.close()

    def __enter__(self) -> HanaPool:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def create_pool(connect_string: str, connect: Callable[[str], Any]) -> HanaPool:
    """Open a connection with ``connect`` and wrap it in a HanaPool."""
    if not connect_string:
        raise ValueError("No connect string for SAP HANA Cloud instance given")
    logger.info("connecting to SAP HANA instance")
    return HanaPool(connect(connect_string))