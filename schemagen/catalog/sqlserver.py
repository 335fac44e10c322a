"""SQL Server catalog adapter built on pyodbc."""
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from schemagen.catalog.base import CatalogAdapter
from schemagen.core.errors import CatalogConnectionError, DryRunExecutionError
from schemagen.core.utils import qualified_name
from schemagen.models.attribute import NamedAttribute, format_bind_parameters
from schemagen.models.catalog import (
    CatalogColumn,
    CatalogFunction,
    CatalogParameter,
    CatalogProcedure,
    CatalogTable,
    CatalogTableType,
    ResultColumn,
)
from schemagen.models.dbtype import param_type_tag

logger = logging.getLogger(__name__)

FUNCTION_TYPE_CODES = ('FN', 'FS', 'IF', 'TF', 'FT')
PROCEDURE_TYPE_CODES = ('P',)

_SERVER_KEYS = {'server', 'address', 'addr', 'data source'}

TABLE_TYPES_QUERY = """
SELECT
    s.name,
    tt.name,
    c.name,
    TYPE_NAME(c.system_type_id),
    c.is_nullable,
    c.column_id
FROM sys.table_types AS tt
JOIN sys.schemas AS s ON s.schema_id = tt.schema_id
JOIN sys.columns AS c ON c.object_id = tt.type_table_object_id
ORDER BY s.name, tt.name, c.column_id
"""

TABLES_QUERY = """
SELECT
    s.name,
    t.name,
    c.name,
    TYPE_NAME(c.system_type_id),
    c.is_nullable,
    c.column_id
FROM sys.tables AS t
JOIN sys.schemas AS s ON s.schema_id = t.schema_id
JOIN sys.columns AS c ON c.object_id = t.object_id
ORDER BY s.name, t.name, c.column_id
"""

ROUTINES_QUERY = """
SELECT
    s.name,
    o.name,
    o.type,
    OBJECT_DEFINITION(o.object_id)
FROM sys.objects AS o
JOIN sys.schemas AS s ON s.schema_id = o.schema_id
WHERE o.type IN ({type_codes})
ORDER BY s.name, o.name
"""

# parameter_id 0 is the return value of a scalar function
PARAMETERS_QUERY = """
SELECT
    p.name,
    CASE WHEN t.is_table_type = 1 THEN t.name ELSE TYPE_NAME(p.system_type_id) END,
    t.is_table_type,
    SCHEMA_NAME(t.schema_id),
    p.parameter_id
FROM sys.parameters AS p
JOIN sys.types AS t ON t.user_type_id = p.user_type_id
WHERE p.object_id = OBJECT_ID(?)
ORDER BY p.parameter_id
"""

COLUMNS_QUERY = """
SELECT
    c.name,
    TYPE_NAME(c.system_type_id),
    c.is_nullable,
    c.column_id
FROM sys.columns AS c
WHERE c.object_id = OBJECT_ID(?)
ORDER BY c.column_id
"""

# sys.parameters.default_value is only populated for CLR routines, so T-SQL
# defaults are read from the routine definition.
_PARAMETER_DEFAULT = re.compile(
    r"(@\w+)\s+(?:AS\s+)?"
    r"(?:\[?\w+\]?\.)?\[?\w+\]?"
    r"(?:\s*\([^)]*\))?"
    r"(?:\s+VARYING)?"
    r"\s*=\s*"
    r"(N?'(?:[^']|'')*'|[-+\w.]+)",
    re.IGNORECASE,
)


def parameter_defaults(definition: Optional[str]) -> Dict[str, str]:
    """Extract declared parameter defaults from a routine definition.

    Returns:
        Mapping of lower-cased parameter name (with '@') to default literal
    """
    defaults: Dict[str, str] = {}
    if not definition:
        return defaults
    for match in _PARAMETER_DEFAULT.finditer(definition):
        defaults.setdefault(match.group(1).lower(), match.group(2))
    return defaults


def with_server(connection_string: str, server: Optional[str]) -> str:
    """Replace the server of an ODBC connection string with `server`."""
    if not server:
        return connection_string
    parts = [
        part for part in connection_string.split(';')
        if part.strip() and part.split('=', 1)[0].strip().lower() not in _SERVER_KEYS
    ]
    parts.append(f"SERVER={server}")
    return ';'.join(parts)


def _group_columns(rows) -> Dict[Tuple[str, str], List[CatalogColumn]]:
    """Group (schema, object, column...) rows by object, keeping row order."""
    grouped: Dict[Tuple[str, str], List[CatalogColumn]] = {}
    for row in rows:
        grouped.setdefault((row[0], row[1]), []).append(CatalogColumn(
            name=row[2],
            data_type=row[3],
            is_nullable=bool(row[4]),
            ordinal_position=row[5]
        ))
    return grouped


class SqlServerCatalog(CatalogAdapter):
    """SQL Server catalog adapter reading the sys.* catalog views."""

    def __init__(self):
        """Initialize SQL Server adapter."""
        self.conn = None
        self.driver = None

    def connect(self, config: Dict[str, Any]) -> None:
        """Establish the design-time connection.

        Raises:
            pyodbc.Error: If connection fails
        """
        import pyodbc  # pylint: disable=import-outside-toplevel,import-error

        connection_string = with_server(config['connection_string'], config.get('server'))
        # report uniqueidentifier columns as uuid.UUID in cursor.description
        pyodbc.native_uuid = True
        try:
            self.conn = pyodbc.connect(connection_string)
            self.driver = pyodbc
            logger.info("Successfully connected to SQL Server")
        except pyodbc.Error as e:  # pylint: disable=no-member
            logger.error("Failed to connect to SQL Server: %s", e)
            raise

    def _cursor(self):
        if not self.conn:
            raise CatalogConnectionError("Not connected to SQL Server. Call connect() first.")
        return self.conn.cursor()

    def _query(self, query: str, *params) -> list:
        cursor = self._cursor()
        try:
            cursor.execute(query, *params)
            return cursor.fetchall()
        finally:
            cursor.close()

    def server_version(self) -> str:
        rows = self._query("SELECT @@VERSION")
        return rows[0][0]

    def fetch_table_types(self) -> List[CatalogTableType]:
        grouped = _group_columns(self._query(TABLE_TYPES_QUERY))
        result = [
            CatalogTableType(schema_name=schema_name, name=name, columns=columns)
            for (schema_name, name), columns in grouped.items()
        ]
        logger.info("Fetched %d table types", len(result))
        return result

    def fetch_tables(self) -> List[CatalogTable]:
        grouped = _group_columns(self._query(TABLES_QUERY))
        result = [
            CatalogTable(schema_name=schema_name, name=name, columns=columns)
            for (schema_name, name), columns in grouped.items()
        ]
        logger.info("Fetched %d tables", len(result))
        return result

    def _fetch_routines(self, type_codes: Sequence[str]) -> list:
        codes = ', '.join(f"'{code}'" for code in type_codes)
        return self._query(ROUTINES_QUERY.format(type_codes=codes))

    def _fetch_parameters(self, object_name: str, definition: Optional[str]):
        """Fetch parameters of a routine, plus the scalar return type if any."""
        defaults = parameter_defaults(definition)
        parameters = []
        return_type = None
        for row in self._query(PARAMETERS_QUERY, object_name):
            name, data_type, is_table_type, type_schema, parameter_id = row
            if parameter_id == 0:
                return_type = data_type
                continue
            parameters.append(CatalogParameter(
                name=name,
                data_type=data_type,
                is_table_type=bool(is_table_type),
                type_schema=type_schema if is_table_type else None,
                default_value=defaults.get(name.lower()),
                ordinal_position=parameter_id
            ))
        return parameters, return_type

    def _fetch_columns(self, object_name: str) -> List[CatalogColumn]:
        return [
            CatalogColumn(
                name=row[0],
                data_type=row[1],
                is_nullable=bool(row[2]),
                ordinal_position=row[3]
            )
            for row in self._query(COLUMNS_QUERY, object_name)
        ]

    def fetch_functions(self) -> List[CatalogFunction]:
        result = []
        for schema_name, name, type_code, definition in self._fetch_routines(FUNCTION_TYPE_CODES):
            qualified = qualified_name(schema_name, name)
            function_type = type_code.strip()
            parameters, return_type = self._fetch_parameters(qualified, definition)
            columns = [] if return_type else self._fetch_columns(qualified)
            result.append(CatalogFunction(
                schema_name=schema_name,
                name=name,
                function_type=function_type,
                return_type=return_type,
                parameters=parameters,
                columns=columns
            ))
        logger.info("Fetched %d functions", len(result))
        return result

    def fetch_procedures(self) -> List[CatalogProcedure]:
        result = []
        for schema_name, name, _, definition in self._fetch_routines(PROCEDURE_TYPE_CODES):
            parameters, _ = self._fetch_parameters(qualified_name(schema_name, name), definition)
            result.append(CatalogProcedure(
                schema_name=schema_name,
                name=name,
                parameters=parameters
            ))
        logger.info("Fetched %d stored procedures", len(result))
        return result

    def _placeholder(self, parameter: NamedAttribute):
        if parameter.db_type.is_table_type:
            # an empty table-valued parameter: [type name, type schema]
            return [parameter.db_type.table_type_name, parameter.db_type.table_type_schema or 'dbo']
        return None

    def describe_result(
        self,
        qualified_name: str,
        parameters: Sequence[NamedAttribute]
    ) -> List[ResultColumn]:
        """Run the procedure under SET FMTONLY ON and read cursor.description.

        FMTONLY returns result metadata without executing the procedure body,
        so no rows are read and no side effects take place.
        """
        sql = f"SET NOCOUNT ON; SET FMTONLY ON; EXEC {qualified_name}"
        if parameters:
            sql += " " + format_bind_parameters(parameters)

        cursor = self._cursor()
        try:
            try:
                if parameters:
                    cursor.setinputsizes([
                        getattr(self.driver, param_type_tag(p.db_type)) for p in parameters
                    ])
                cursor.execute(sql, *[self._placeholder(p) for p in parameters])
                description = cursor.description or ()
            finally:
                cursor.close()
        except Exception as e:  # pylint: disable=broad-except
            self._reset_fmtonly_after_failure(qualified_name)
            raise DryRunExecutionError(f"Dry run of {qualified_name} failed: {e}") from e
        self._reset_fmtonly()

        logger.debug("Dry run of %s returned %d columns", qualified_name, len(description))
        return [
            ResultColumn(name=d[0], value_type=d[1], precision=d[4], nullable=bool(d[6]))
            for d in description
        ]

    def _reset_fmtonly(self) -> None:
        cursor = self.conn.cursor()
        try:
            cursor.execute("SET FMTONLY OFF")
        finally:
            cursor.close()

    def _reset_fmtonly_after_failure(self, qualified_name: str) -> None:
        # the dry run error is the one reported
        try:
            self._reset_fmtonly()
        except Exception as e:  # pylint: disable=broad-except
            logger.warning("Could not reset FMTONLY after dry run of %s: %s", qualified_name, e)

    def close(self) -> None:
        """Close SQL Server connection."""
        if self.conn:
            try:
                self.conn.close()
                logger.info("Closed SQL Server connection")
            except Exception as e:  # pylint: disable=broad-except
                logger.warning("Error closing connection: %s", e)
            finally:
                self.conn = None
