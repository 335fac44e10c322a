"""Named, nullability-annotated attributes: parameters and columns."""
import keyword
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from schemagen.core.errors import InvalidNameError
from schemagen.models.catalog import CatalogParameter, ResultColumn
from schemagen.models.dbtype import (
    SCHEMA_ALIAS_PREFIX,
    DbType,
    from_native_type,
    from_runtime_value_type,
    storage_type,
)

BIND_PREFIX = "@"

# names the generated modules bind themselves: locals of execute(), module
# imports and builtins used in annotations, and the members of generated
# table type and command classes
RESERVED_NAMES = frozenset({
    "cls", "db", "cursor", "row", "rows", "value", "values",
    "datetime", "decimal", "uuid", "dataclass", "pyodbc",
    "List", "Optional", "Tuple", "NoRowReturnedError", "SqlConn",
    "bool", "bytes", "float", "int", "list", "str", "tuple",
    "TYPE_NAME", "SCHEMA_NAME", "from_rows", "from_cursor", "to_rows", "to_parameter", "execute",
})


def normalize_name(raw: str) -> str:
    """Turn a SQL parameter name into a camelCase name.

    Strips leading '@' characters and lower-cases the first character only,
    since tooling sometimes writes parameter names in PascalCase.

    Raises:
        InvalidNameError: If nothing is left, or the result is not an identifier
    """
    stripped = raw.lstrip(BIND_PREFIX)
    if not stripped:
        raise InvalidNameError(f"Invalid parameter name: {raw!r}")
    name = stripped[0].lower() + stripped[1:]
    if not name.isidentifier():
        raise InvalidNameError(f"Parameter name {raw!r} is not a valid identifier")
    return name


def python_name(name: str) -> str:
    """Escape Python keywords with a trailing underscore."""
    if not name:
        raise InvalidNameError("Empty name")
    if not name.isidentifier():
        raise InvalidNameError(f"Name {name!r} is not a valid identifier")
    if keyword.iskeyword(name):
        return name + "_"
    return name


class NamedAttribute(BaseModel):
    """A DbType annotated with a name and nullability.

    bind_name is the SQL-facing name prefixed with '@'. It is derived once,
    from the name before escaping, so '@from' stays '@from' while the Python
    name becomes 'from_'. Names the generated code uses itself are escaped the
    same way.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    db_type: DbType
    nullable: bool
    bind_name: str

    @model_validator(mode="before")
    @classmethod
    def _derive_bind_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and "bind_name" not in data:
            sql_name = data.get("name", "")
            name = python_name(sql_name)
            if name in RESERVED_NAMES or name.startswith(SCHEMA_ALIAS_PREFIX):
                name += "_"
            data = {**data, "name": name, "bind_name": BIND_PREFIX + sql_name}
        return data

    @classmethod
    def from_column(cls, name: str, native_type: str, nullable: bool) -> "NamedAttribute":
        """Build from a catalog column; nullability comes from the schema."""
        return cls(name=name, db_type=from_native_type(native_type), nullable=nullable)

    @classmethod
    def from_parameter(cls, parameter: CatalogParameter) -> "NamedAttribute":
        """Build from a routine parameter.

        A parameter is nullable iff its declared default is the literal NULL.
        """
        default = parameter.default_value
        nullable = default is not None and default.strip().lower() == "null"
        db_type = from_native_type(
            parameter.data_type,
            is_table_type=parameter.is_table_type,
            table_type_schema=parameter.type_schema,
        )
        return cls(name=normalize_name(parameter.name), db_type=db_type, nullable=nullable)

    @classmethod
    def from_result_column(cls, column: ResultColumn, position: int) -> "NamedAttribute":
        """Build from a dry-run result column; unnamed columns become 'Value'."""
        name = column.name
        if not name:
            name = "Value" if position == 0 else f"Value{position}"
        return cls(
            name=name,
            db_type=from_runtime_value_type(column.value_type, column.precision),
            nullable=column.nullable,
        )


def python_annotation(attr: NamedAttribute, schema_name: Optional[str] = None) -> str:
    """Type annotation for attr as written in schema_name's module, Optional when nullable."""
    annotation = storage_type(attr.db_type, schema_name)
    if attr.nullable:
        return f"Optional[{annotation}]"
    return annotation


def format_with_type(attr: NamedAttribute, schema_name: Optional[str] = None) -> str:
    """Format as a keyword parameter; nullable ones default to None."""
    annotation = python_annotation(attr, schema_name)
    if attr.nullable:
        return f"{attr.name}: {annotation} = None"
    return f"{attr.name}: {annotation}"


def format_parameters(
    attrs: Iterable[NamedAttribute],
    include_types: bool = True,
    leading_separator: bool = False,
    schema_name: Optional[str] = None
) -> str:
    """Comma-join parameter names, optionally typed.

    With leading_separator every entry is preceded by ', ', for appending to
    a fixed prefix such as 'cls, db: SqlConn'.
    """
    strs = [format_with_type(a, schema_name) if include_types else a.name for a in attrs]
    if leading_separator:
        return "".join(", " + s for s in strs)
    return ", ".join(strs)


def format_bind_parameters(attrs: Iterable[NamedAttribute]) -> str:
    """Named assignments for EXEC, e.g. '@teamId = ?, @name = ?'."""
    return ", ".join(f"{a.bind_name} = ?" for a in attrs)


def format_placeholders(attrs: Iterable[NamedAttribute]) -> str:
    """Positional driver placeholders, one per attribute."""
    return ", ".join("?" for _ in attrs)
