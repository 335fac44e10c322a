"""Intermediate representation of database objects, independent of any connection."""
from enum import Enum
from typing import Annotated, Dict, Iterable, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from schemagen.core.errors import (
    InvalidNameError,
    UnknownFunctionShapeError,
    UnsupportedCommandShapeError,
)
from schemagen.core.utils import qualified_name
from schemagen.models.attribute import NamedAttribute, python_name
from schemagen.models.catalog import CatalogTableType
from schemagen.models.dbtype import DbType


def _check_name(name: str) -> str:
    if python_name(name) != name:
        raise InvalidNameError(f"{name!r} is a Python keyword and cannot name a class")
    return name


ClassName = Annotated[str, AfterValidator(_check_name)]


def _unique_names(attrs: Tuple[NamedAttribute, ...]) -> Tuple[NamedAttribute, ...]:
    seen = set()
    for attr in attrs:
        if attr.name in seen:
            raise InvalidNameError(f"Duplicate attribute name {attr.name!r}")
        seen.add(attr.name)
    return attrs


Attributes = Annotated[Tuple[NamedAttribute, ...], AfterValidator(_unique_names)]


class NoReturn(BaseModel):
    """The command returns no rows."""

    model_config = ConfigDict(frozen=True)

    shape: Literal["none"] = "none"


class SingleReturn(BaseModel):
    """The command returns exactly one scalar value."""

    model_config = ConfigDict(frozen=True)

    shape: Literal["single"] = "single"
    db_type: DbType
    nullable: bool


class TableReturn(BaseModel):
    """The command returns zero or more rows of a fixed column list."""

    model_config = ConfigDict(frozen=True)

    shape: Literal["table"] = "table"
    columns: Annotated[
        Tuple[NamedAttribute, ...], Field(min_length=1), AfterValidator(_unique_names)
    ]


ReturnShape = Annotated[
    Union[NoReturn, SingleReturn, TableReturn],
    Field(discriminator="shape"),
]


def table_or_none(columns: Sequence[NamedAttribute]) -> Union[NoReturn, TableReturn]:
    """TableReturn for a non-empty column list, NoReturn otherwise."""
    if not columns:
        return NoReturn()
    return TableReturn(columns=tuple(columns))


class CommandKind(str, Enum):
    """How a command's name and parameters are embedded in query text."""

    STORED_PROCEDURE = "STORED_PROCEDURE"
    FUNCTION = "FUNCTION"
    TABLE_GETTER = "TABLE_GETTER"
    RAW_SQL = "RAW_SQL"


class TableTypeDef(BaseModel):
    """A user-defined table type, used as a parameter type and for row marshaling."""

    model_config = ConfigDict(frozen=True)

    schema_name: str
    name: ClassName
    columns: Attributes

    @classmethod
    def from_catalog(cls, table_type: CatalogTableType) -> "TableTypeDef":
        columns = tuple(
            NamedAttribute.from_column(c.name, c.data_type, c.is_nullable)
            for c in table_type.columns
        )
        return cls(schema_name=table_type.schema_name, name=table_type.name, columns=columns)


class Command(BaseModel):
    """A callable database object: procedure, function, table getter or raw SQL."""

    model_config = ConfigDict(frozen=True)

    schema_name: str
    name: ClassName
    qualified_name: str
    parameters: Attributes = ()
    returns: ReturnShape
    kind: CommandKind
    sql: Optional[str] = None

    @model_validator(mode="after")
    def _check_sql(self) -> "Command":
        if (self.kind == CommandKind.RAW_SQL) != (self.sql is not None):
            raise ValueError("sql is required for, and only for, raw SQL commands")
        return self

    @classmethod
    def for_function(
        cls,
        schema_name: str,
        name: str,
        parameters: Iterable[NamedAttribute],
        returns: Union[SingleReturn, TableReturn]
    ) -> "Command":
        if isinstance(returns, NoReturn):
            raise UnknownFunctionShapeError(
                f"Function {qualified_name(schema_name, name)} has no return type"
            )
        return cls(
            schema_name=schema_name,
            name=name,
            qualified_name=qualified_name(schema_name, name),
            parameters=tuple(parameters),
            returns=returns,
            kind=CommandKind.FUNCTION,
        )

    @classmethod
    def for_stored_procedure(
        cls,
        schema_name: str,
        name: str,
        parameters: Iterable[NamedAttribute],
        returns: Union[NoReturn, TableReturn]
    ) -> "Command":
        return cls(
            schema_name=schema_name,
            name=name,
            qualified_name=qualified_name(schema_name, name),
            parameters=tuple(parameters),
            returns=returns,
            kind=CommandKind.STORED_PROCEDURE,
        )

    @classmethod
    def for_table(cls, schema_name: str, name: str, columns: Sequence[NamedAttribute]) -> "Command":
        """A getter returning every row of a table."""
        return cls(
            schema_name=schema_name,
            name=name,
            qualified_name=qualified_name(schema_name, name),
            returns=TableReturn(columns=tuple(columns)),
            kind=CommandKind.TABLE_GETTER,
        )

    @classmethod
    def for_sql(cls, name: str, sql: str) -> "Command":
        """Type a free-form SQL command.

        Raises:
            UnsupportedCommandShapeError: Always. There is no parameter
                discovery for raw SQL yet.
        """
        raise UnsupportedCommandShapeError(
            f"Cannot derive parameters and result shape of raw SQL command {name!r}"
        )


def _sorted_by_name(entries):
    return tuple(sorted(entries, key=lambda e: e.name))


class SchemaBundle(BaseModel):
    """Everything generated for one database schema. Each category is sorted by name."""

    model_config = ConfigDict(frozen=True)

    schema_name: str
    table_types: Annotated[Tuple[TableTypeDef, ...], AfterValidator(_sorted_by_name)] = ()
    stored_procedures: Annotated[Tuple[Command, ...], AfterValidator(_sorted_by_name)] = ()
    functions: Annotated[Tuple[Command, ...], AfterValidator(_sorted_by_name)] = ()
    table_getters: Annotated[Tuple[Command, ...], AfterValidator(_sorted_by_name)] = ()


def group_by_schema(
    table_types: Iterable[TableTypeDef] = (),
    stored_procedures: Iterable[Command] = (),
    functions: Iterable[Command] = (),
    table_getters: Iterable[Command] = ()
) -> List[SchemaBundle]:
    """Group entities into one SchemaBundle per schema, sorted by schema name."""
    grouped: Dict[str, Dict[str, list]] = {}

    def add(category: str, entries):
        for entry in entries:
            bucket = grouped.setdefault(entry.schema_name, {
                'table_types': [],
                'stored_procedures': [],
                'functions': [],
                'table_getters': [],
            })
            bucket[category].append(entry)

    add('table_types', table_types)
    add('stored_procedures', stored_procedures)
    add('functions', functions)
    add('table_getters', table_getters)

    return [
        SchemaBundle(schema_name=schema_name, **grouped[schema_name])
        for schema_name in sorted(grouped)
    ]
