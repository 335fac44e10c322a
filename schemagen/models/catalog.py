"""Raw records returned by a catalog adapter, before mapping to the IR."""
from typing import Any, List, Optional, Type

from pydantic import BaseModel


class CatalogColumn(BaseModel):
    """A column of a table, table type, or table-valued function."""

    name: str
    data_type: str
    is_nullable: bool
    ordinal_position: int


class CatalogParameter(BaseModel):
    """A routine parameter as declared in the catalog."""

    name: str
    data_type: str  # system type name, or the table type name
    is_table_type: bool = False
    type_schema: Optional[str] = None
    default_value: Optional[str] = None  # literal text of the declared default
    ordinal_position: int


class CatalogTableType(BaseModel):
    """A user-defined table type."""

    schema_name: str
    name: str
    columns: List[CatalogColumn]


class CatalogFunction(BaseModel):
    """A user-defined function.

    function_type is the sys.objects type code: FN/FS scalar,
    IF inline table-valued, TF/FT multi-statement table-valued.
    """

    schema_name: str
    name: str
    function_type: str
    return_type: Optional[str] = None  # scalar functions only
    parameters: List[CatalogParameter] = []
    columns: List[CatalogColumn] = []  # table-valued functions only


class CatalogProcedure(BaseModel):
    """A stored procedure. Its result columns are not declared in the catalog."""

    schema_name: str
    name: str
    parameters: List[CatalogParameter] = []


class CatalogTable(BaseModel):
    """A base table."""

    schema_name: str
    name: str
    columns: List[CatalogColumn]


class ResultColumn(BaseModel):
    """A result column reported by a schema-only dry run (cursor.description)."""

    name: Optional[str] = None
    value_type: Type[Any]
    precision: Optional[int] = None
    nullable: bool
