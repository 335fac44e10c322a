"""Database type system and its mapping onto Python and pyodbc."""
import datetime
import decimal
import uuid
from enum import Enum
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, model_validator

from schemagen.core.errors import UnsupportedTypeError


class DbTypeKind(str, Enum):
    """Closed set of database types. Types sharing a Python representation are merged."""

    BYTE = "BYTE"
    INT16 = "INT16"
    INT32 = "INT32"
    INT64 = "INT64"
    DATETIME = "DATETIME"
    GUID = "GUID"
    STRING = "STRING"
    BOOL = "BOOL"
    BYTE_ARRAY = "BYTE_ARRAY"
    DOUBLE = "DOUBLE"
    DECIMAL = "DECIMAL"
    USER_DEFINED_TABLE_TYPE = "USER_DEFINED_TABLE_TYPE"


class DbType(BaseModel):
    """A database type. Only table types carry a name and schema."""

    model_config = ConfigDict(frozen=True)

    kind: DbTypeKind
    table_type_name: Optional[str] = None
    table_type_schema: Optional[str] = None

    @model_validator(mode="after")
    def _check_table_type_name(self) -> "DbType":
        is_table_type = self.kind == DbTypeKind.USER_DEFINED_TABLE_TYPE
        if is_table_type != (self.table_type_name is not None):
            raise ValueError("table_type_name is required for, and only for, table types")
        return self

    @classmethod
    def table_type(cls, name: str, schema: Optional[str] = None) -> "DbType":
        """Create the DbType of a user-defined table type."""
        return cls(
            kind=DbTypeKind.USER_DEFINED_TABLE_TYPE,
            table_type_name=name,
            table_type_schema=schema,
        )

    @property
    def is_table_type(self) -> bool:
        return self.kind == DbTypeKind.USER_DEFINED_TABLE_TYPE

    def __str__(self) -> str:
        if self.is_table_type:
            return f"UserDefinedTableType({self.table_type_name})"
        return self.kind.value


BYTE = DbType(kind=DbTypeKind.BYTE)
INT16 = DbType(kind=DbTypeKind.INT16)
INT32 = DbType(kind=DbTypeKind.INT32)
INT64 = DbType(kind=DbTypeKind.INT64)
DATETIME = DbType(kind=DbTypeKind.DATETIME)
GUID = DbType(kind=DbTypeKind.GUID)
STRING = DbType(kind=DbTypeKind.STRING)
BOOL = DbType(kind=DbTypeKind.BOOL)
BYTE_ARRAY = DbType(kind=DbTypeKind.BYTE_ARRAY)
DOUBLE = DbType(kind=DbTypeKind.DOUBLE)
DECIMAL = DbType(kind=DbTypeKind.DECIMAL)

# SQL Server system type names, as returned by TYPE_NAME(system_type_id)
NATIVE_TYPES: Dict[str, DbType] = {
    'tinyint': BYTE,
    'smallint': INT16,
    'int': INT32,
    'bigint': INT64,
    'datetime': DATETIME,
    'datetime2': DATETIME,
    'uniqueidentifier': GUID,
    'nvarchar': STRING,
    'varchar': STRING,
    'nchar': STRING,
    'char': STRING,
    'bit': BOOL,
    'binary': BYTE_ARRAY,
    'varbinary': BYTE_ARRAY,
    'timestamp': BYTE_ARRAY,
    'float': DOUBLE,
    'decimal': DECIMAL,
    'numeric': DECIMAL,
}

# Column precision pyodbc reports for integer columns
_INT_WIDTHS: Dict[int, DbType] = {
    3: BYTE,
    5: INT16,
    10: INT32,
    19: INT64,
}

_RUNTIME_TYPES: Dict[type, DbType] = {
    datetime.datetime: DATETIME,
    uuid.UUID: GUID,
    str: STRING,
    bool: BOOL,
    bytes: BYTE_ARRAY,
    bytearray: BYTE_ARRAY,
    float: DOUBLE,
    decimal.Decimal: DECIMAL,
}

_STORAGE_TYPES: Dict[DbTypeKind, str] = {
    DbTypeKind.BYTE: "int",
    DbTypeKind.INT16: "int",
    DbTypeKind.INT32: "int",
    DbTypeKind.INT64: "int",
    DbTypeKind.DATETIME: "datetime.datetime",
    DbTypeKind.GUID: "uuid.UUID",
    DbTypeKind.STRING: "str",
    DbTypeKind.BOOL: "bool",
    DbTypeKind.BYTE_ARRAY: "bytes",
    DbTypeKind.DOUBLE: "float",
    DbTypeKind.DECIMAL: "decimal.Decimal",
    DbTypeKind.USER_DEFINED_TABLE_TYPE: "Tuple[{name}, ...]",
}

_READ_ACCESSORS: Dict[DbTypeKind, str] = {
    DbTypeKind.BYTE: "int({reader}[{index}])",
    DbTypeKind.INT16: "int({reader}[{index}])",
    DbTypeKind.INT32: "int({reader}[{index}])",
    DbTypeKind.INT64: "int({reader}[{index}])",
    DbTypeKind.DATETIME: "{reader}[{index}]",
    DbTypeKind.GUID: "uuid.UUID(str({reader}[{index}]))",
    DbTypeKind.STRING: "str({reader}[{index}])",
    DbTypeKind.BOOL: "bool({reader}[{index}])",
    DbTypeKind.BYTE_ARRAY: "bytes({reader}[{index}])",
    DbTypeKind.DOUBLE: "float({reader}[{index}])",
    DbTypeKind.DECIMAL: "decimal.Decimal({reader}[{index}])",
    DbTypeKind.USER_DEFINED_TABLE_TYPE: "{name}.from_rows({reader}[{index}])",
}

# generated modules import other schemas as `from . import <schema> as _schema_<schema>`
SCHEMA_ALIAS_PREFIX = "_schema_"

# pyodbc SQL type constants, by attribute name
_PARAM_TYPE_TAGS: Dict[DbTypeKind, str] = {
    DbTypeKind.BYTE: "SQL_TINYINT",
    DbTypeKind.INT16: "SQL_SMALLINT",
    DbTypeKind.INT32: "SQL_INTEGER",
    DbTypeKind.INT64: "SQL_BIGINT",
    DbTypeKind.DATETIME: "SQL_TYPE_TIMESTAMP",
    DbTypeKind.GUID: "SQL_GUID",
    DbTypeKind.STRING: "SQL_WVARCHAR",
    DbTypeKind.BOOL: "SQL_BIT",
    DbTypeKind.BYTE_ARRAY: "SQL_VARBINARY",
    DbTypeKind.DOUBLE: "SQL_DOUBLE",
    DbTypeKind.DECIMAL: "SQL_DECIMAL",
    DbTypeKind.USER_DEFINED_TABLE_TYPE: "SQL_SS_TABLE",
}


def from_native_type(
    native_type: str,
    is_table_type: bool = False,
    table_type_schema: Optional[str] = None
) -> DbType:
    """Map a SQL Server type name onto a DbType.

    Args:
        native_type: System type name (e.g. 'nvarchar'), or the table type
            name when is_table_type is set
        is_table_type: Whether native_type names a user-defined table type
        table_type_schema: Schema of the table type

    Returns:
        The matching DbType

    Raises:
        UnsupportedTypeError: If the type is outside the supported set
    """
    if is_table_type:
        return DbType.table_type(native_type, table_type_schema)
    try:
        return NATIVE_TYPES[native_type.lower()]
    except KeyError:
        raise UnsupportedTypeError(f"Unknown SQL type: {native_type}") from None


def from_runtime_value_type(value_type: Type[Any], precision: Optional[int] = None) -> DbType:
    """Map a Python type code reported by the driver onto a DbType.

    pyodbc reports every integer column as int, so the column precision
    decides the width.

    Raises:
        UnsupportedTypeError: If the type is outside the supported set
    """
    if value_type is int:
        return _INT_WIDTHS.get(precision, INT32)
    try:
        return _RUNTIME_TYPES[value_type]
    except (KeyError, TypeError):
        raise UnsupportedTypeError(f"Unknown Python type: {value_type!r}") from None


def schema_module_alias(schema_name: str) -> str:
    """Name a generated module binds another schema's module to."""
    return SCHEMA_ALIAS_PREFIX + schema_name


def table_type_ref(db_type: DbType, schema_name: Optional[str] = None) -> Optional[str]:
    """Expression naming the class of a table type from schema_name's module.

    Table types of other schemas are reached through that schema's module alias.
    """
    if not db_type.is_table_type:
        return None
    owner = db_type.table_type_schema
    if owner is None or schema_name is None or owner == schema_name:
        return db_type.table_type_name
    return f"{schema_module_alias(owner)}.{db_type.table_type_name}"


def storage_type(db_type: DbType, schema_name: Optional[str] = None) -> str:
    """Python type annotation used to store a value of db_type."""
    return _STORAGE_TYPES[db_type.kind].format(name=table_type_ref(db_type, schema_name))


def read_accessor(db_type: DbType, reader: str, index: int, schema_name: Optional[str] = None) -> str:
    """Expression reading column `index` of row `reader` as db_type."""
    return _READ_ACCESSORS[db_type.kind].format(
        name=table_type_ref(db_type, schema_name), reader=reader, index=index
    )


def param_type_tag(db_type: DbType) -> str:
    """Name of the pyodbc SQL type constant used to bind db_type."""
    return _PARAM_TYPE_TAGS[db_type.kind]
