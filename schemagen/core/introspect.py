"""Schema introspection: derive the IR from a live database catalog."""
import logging
from typing import Any, Dict, List, Sequence, Union

from schemagen.catalog import get_catalog
from schemagen.catalog.base import CatalogAdapter
from schemagen.core.errors import UnknownFunctionShapeError
from schemagen.core.utils import qualified_name
from schemagen.models.attribute import NamedAttribute
from schemagen.models.catalog import (
    CatalogFunction,
    CatalogProcedure,
    CatalogTable,
    ResultColumn,
)
from schemagen.models.dbtype import from_native_type
from schemagen.models.ir import (
    Command,
    NoReturn,
    SchemaBundle,
    SingleReturn,
    TableReturn,
    TableTypeDef,
    group_by_schema,
    table_or_none,
)

logger = logging.getLogger(__name__)

# temporary, archival and system schemas
RESERVED_SCHEMAS = frozenset({'tmp', 'old', 'sys', 'INFORMATION_SCHEMA'})

# system functions like fn_diagramobjects
SYSTEM_FUNCTION_PREFIX = 'fn_'

# system stored procedures like sp_upgraddiagrams
SYSTEM_PROCEDURE_PREFIX = 'sp_'

# diagram support tables
EXCLUDED_TABLES = frozenset({'sysdiagrams'})

SCALAR_FUNCTION_TYPES = frozenset({'FN', 'FS'})
TABLE_FUNCTION_TYPES = frozenset({'IF', 'TF', 'FT'})


def is_relevant_schema(schema_name: str) -> bool:
    """Whether objects of this schema take part in generation."""
    return schema_name not in RESERVED_SCHEMAS


def function_returns(function: CatalogFunction) -> Union[SingleReturn, TableReturn]:
    """Return shape of a function, from its declared kind.

    Scalar results are always treated as nullable.

    Raises:
        UnknownFunctionShapeError: If the function kind is not recognized
    """
    if function.function_type in SCALAR_FUNCTION_TYPES:
        return SingleReturn(db_type=from_native_type(function.return_type or ''), nullable=True)
    if function.function_type in TABLE_FUNCTION_TYPES:
        return TableReturn(columns=tuple(
            NamedAttribute.from_column(c.name, c.data_type, c.is_nullable)
            for c in function.columns
        ))
    raise UnknownFunctionShapeError(
        f"Unknown function type {function.function_type!r} for "
        f"{qualified_name(function.schema_name, function.name)}"
    )


def function_command(function: CatalogFunction) -> Command:
    parameters = [NamedAttribute.from_parameter(p) for p in function.parameters]
    return Command.for_function(
        function.schema_name, function.name, parameters, function_returns(function)
    )


def result_attributes(result_columns: Sequence[ResultColumn]) -> List[NamedAttribute]:
    """Attributes of dry-run result columns.

    A joined select can report the same column name twice (a.Id, b.Id). Repeats
    get their position appended, then a counter if that is taken as well.
    """
    attrs: List[NamedAttribute] = []
    taken = set()
    for position, column in enumerate(result_columns):
        attr = NamedAttribute.from_result_column(column, position)
        suffix = position
        while attr.name in taken:
            attr = NamedAttribute(
                name=f"{column.name or 'Value'}{suffix}",
                db_type=attr.db_type,
                nullable=attr.nullable,
            )
            suffix += 1
        taken.add(attr.name)
        attrs.append(attr)
    return attrs


def procedure_command(catalog: CatalogAdapter, procedure: CatalogProcedure) -> Command:
    """Build a stored procedure command; its return shape comes from a dry run."""
    parameters = [NamedAttribute.from_parameter(p) for p in procedure.parameters]
    name = qualified_name(procedure.schema_name, procedure.name)
    result_columns = catalog.describe_result(name, parameters)
    columns = result_attributes(result_columns)
    returns = table_or_none(columns)
    logger.debug(
        "Stored procedure %s returns %s",
        name, 'nothing' if isinstance(returns, NoReturn) else f"{len(columns)} columns"
    )
    return Command.for_stored_procedure(procedure.schema_name, procedure.name, parameters, returns)


def table_getter(table: CatalogTable) -> Command:
    columns = [
        NamedAttribute.from_column(c.name, c.data_type, c.is_nullable)
        for c in table.columns
    ]
    return Command.for_table(table.schema_name, table.name, columns)


def introspect(catalog: CatalogAdapter) -> List[SchemaBundle]:
    """Derive one SchemaBundle per schema from a connected catalog.

    Objects are processed one at a time over the single catalog connection,
    including one dry run per stored procedure.

    Args:
        catalog: Connected catalog adapter

    Returns:
        SchemaBundles sorted by schema name

    Raises:
        GenerationError: On any unmapped type, invalid name, unknown function
            kind or failed dry run. No partial result is returned.
    """
    logger.info("Server version: %s", catalog.server_version())

    table_types = [
        TableTypeDef.from_catalog(t)
        for t in catalog.fetch_table_types()
        if is_relevant_schema(t.schema_name)
    ]

    functions = [
        function_command(f)
        for f in catalog.fetch_functions()
        if is_relevant_schema(f.schema_name) and not f.name.startswith(SYSTEM_FUNCTION_PREFIX)
    ]

    stored_procedures = [
        procedure_command(catalog, p)
        for p in catalog.fetch_procedures()
        if is_relevant_schema(p.schema_name) and not p.name.startswith(SYSTEM_PROCEDURE_PREFIX)
    ]

    table_getters = [
        table_getter(t)
        for t in catalog.fetch_tables()
        if is_relevant_schema(t.schema_name) and t.name not in EXCLUDED_TABLES
    ]

    logger.info(
        "Introspected %d table types, %d functions, %d stored procedures, %d tables",
        len(table_types), len(functions), len(stored_procedures), len(table_getters)
    )
    return group_by_schema(
        table_types=table_types,
        stored_procedures=stored_procedures,
        functions=functions,
        table_getters=table_getters,
    )


def introspect_database(config: Dict[str, Any], catalog_type: str = 'sqlserver') -> List[SchemaBundle]:
    """Connect to the design-time database, introspect it and disconnect.

    Args:
        config: Connection configuration (connection_string, optional server)
        catalog_type: Catalog adapter to use

    Returns:
        SchemaBundles sorted by schema name
    """
    catalog = get_catalog(catalog_type)
    catalog.connect(config)
    try:
        return introspect(catalog)
    finally:
        catalog.close()
