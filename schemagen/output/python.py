"""Python source rendering for introspected schemas.

Every function here is pure: the same IR always renders to the same lines.
"""
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from schemagen.core.errors import UnknownFunctionShapeError
from schemagen.models.attribute import (
    NamedAttribute,
    format_bind_parameters,
    format_parameters,
    format_placeholders,
    python_annotation,
)
from schemagen.models.dbtype import (
    param_type_tag,
    read_accessor,
    schema_module_alias,
    storage_type,
    table_type_ref,
)
from schemagen.models.ir import (
    Command,
    CommandKind,
    NoReturn,
    SchemaBundle,
    SingleReturn,
    TableReturn,
    TableTypeDef,
)

INDENT = "    "

BANNER = "# This code is auto-generated"

IMPORTS = (
    "from __future__ import annotations",
    "",
    "import datetime",
    "import decimal",
    "import uuid",
    "from dataclasses import dataclass",
    "from typing import List, Optional, Tuple",
    "",
    "import pyodbc",
    "",
    "from schemagen.runtime import NoRowReturnedError, SqlConn",
)


def indent(lines: Iterable[str], level: int = 1) -> List[str]:
    """Indent non-empty lines by `level` steps."""
    prefix = INDENT * level
    return [prefix + line if line else line for line in lines]


def title(text: str) -> List[str]:
    line = "# " + "-" * len(text)
    return [line, "# " + text, line]


def read_value(
    attr: NamedAttribute, reader: str, index: int, schema_name: Optional[str] = None
) -> str:
    """Expression reading column `index` of `reader`, None-aware when nullable."""
    read = read_accessor(attr.db_type, reader, index, schema_name)
    if attr.nullable:
        return f"(None if {reader}[{index}] is None else {read})"
    return read


def read_row(
    columns: Sequence[NamedAttribute], reader: str, schema_name: Optional[str] = None
) -> str:
    """Constructor call building one row value from `reader`."""
    values = ", ".join(read_value(col, reader, i, schema_name) for i, col in enumerate(columns))
    return f"cls({values})"


def bind_value(attr: NamedAttribute, schema_name: Optional[str] = None) -> str:
    """Expression passed to the driver for a parameter, from schema_name's module."""
    if attr.db_type.is_table_type:
        value = f"{table_type_ref(attr.db_type, schema_name)}.to_parameter({attr.name})"
        if attr.nullable:
            return f"(None if {attr.name} is None else {value})"
        return value
    return attr.name


def _tuple_expr(items: Sequence[str]) -> str:
    if len(items) == 1:
        return f"({items[0]},)"
    return f"({', '.join(items)})"


def render_table_type(table_type: TableTypeDef) -> List[str]:
    """Frozen dataclass for a table type, with read and write marshaling."""
    name = table_type.name
    schema_name = table_type.schema_name
    fields = [f"value.{col.name}" for col in table_type.columns]
    lines = [
        "@dataclass(frozen=True)",
        f"class {name}:",
        f"    TYPE_NAME = {name!r}",
        f"    SCHEMA_NAME = {schema_name!r}",
        "",
    ]
    lines.extend(
        f"    {col.name}: {python_annotation(col, schema_name)}" for col in table_type.columns
    )
    lines.extend([
        "",
        "    @classmethod",
        f"    def from_rows(cls, rows) -> Tuple[{name}, ...]:",
        f"        return tuple({read_row(table_type.columns, 'row', schema_name)} for row in rows)",
        "",
        "    @classmethod",
        f"    async def from_cursor(cls, cursor) -> Tuple[{name}, ...]:",
        "        values = []",
        "        while True:",
        "            row = await cursor.fetchone()",
        "            if row is None:",
        "                break",
        f"            values.append({read_row(table_type.columns, 'row', schema_name)})",
        "        return tuple(values)",
        "",
        "    @staticmethod",
        f"    def to_rows(values: Tuple[{name}, ...]) -> List[tuple]:",
        f"        return [{_tuple_expr(fields)} for value in values]",
        "",
        "    @classmethod",
        f"    def to_parameter(cls, values: Tuple[{name}, ...]) -> list:",
        "        return [cls.TYPE_NAME, cls.SCHEMA_NAME, *cls.to_rows(values)]",
    ])
    return lines


def command_text(command: Command) -> str:
    """Query text executed for a command."""
    name = command.qualified_name
    if command.kind == CommandKind.STORED_PROCEDURE:
        if not command.parameters:
            return f"EXEC {name}"
        return f"EXEC {name} {format_bind_parameters(command.parameters)}"
    if command.kind == CommandKind.FUNCTION:
        placeholders = format_placeholders(command.parameters)
        if isinstance(command.returns, SingleReturn):
            return f"SELECT {name}({placeholders})"
        if isinstance(command.returns, TableReturn):
            return f"SELECT * FROM {name}({placeholders})"
        raise UnknownFunctionShapeError(f"Function {name} has no return type")
    if command.kind == CommandKind.TABLE_GETTER:
        return f"SELECT * FROM {name}"
    return command.sql


def return_annotation(command: Command) -> str:
    returns = command.returns
    if isinstance(returns, SingleReturn):
        annotation = storage_type(returns.db_type, command.schema_name)
        return f"Optional[{annotation}]" if returns.nullable else annotation
    if isinstance(returns, TableReturn):
        return f"Tuple[{command.name}, ...]"
    return "None"


def _read_result(command: Command) -> List[str]:
    returns = command.returns
    if isinstance(returns, NoReturn):
        return []
    if isinstance(returns, SingleReturn):
        value = NamedAttribute(name="Value", db_type=returns.db_type, nullable=returns.nullable)
        return [
            "row = await cursor.fetchone()",
            "if row is None:",
            f"    raise NoRowReturnedError({command.qualified_name + ' returned no row'!r})",
            f"return {read_value(value, 'row', 0, command.schema_name)}",
        ]
    return [
        "rows = await cursor.fetchall()",
        f"return tuple({read_row(returns.columns, 'row', command.schema_name)} for row in rows)",
    ]


def render_command(command: Command) -> List[str]:
    """Class exposing `execute` for a command; a dataclass of its row when tabular."""
    if isinstance(command.returns, TableReturn):
        lines = ["@dataclass(frozen=True)", f"class {command.name}:"]
        lines.extend(
            f"    {col.name}: {python_annotation(col, command.schema_name)}"
            for col in command.returns.columns
        )
        lines.append("")
    else:
        lines = [f"class {command.name}:"]

    signature = "cls, db: SqlConn"
    if command.parameters:
        signature += ", *" + format_parameters(
            command.parameters, leading_separator=True, schema_name=command.schema_name
        )
    lines.extend([
        "    @classmethod",
        f"    async def execute({signature}) -> {return_annotation(command)}:",
        f"        \"\"\"Execute {command.qualified_name or command.name}.\"\"\"",
        "        async with db.connection.cursor() as cursor:",
    ])

    arguments = "".join(", " + bind_value(p, command.schema_name) for p in command.parameters)
    body = [
        "if db.transaction is not None:",
        "    db.transaction.enlist(cursor)",
    ]
    if command.parameters:
        tags = ", ".join(f"pyodbc.{param_type_tag(p.db_type)}" for p in command.parameters)
        body.append(f"await cursor.setinputsizes([{tags}])")
    body.append(f"await cursor.execute({command_text(command)!r}{arguments})")
    body.extend(_read_result(command))
    lines.extend(indent(body, 3))
    return lines


def foreign_schemas(bundle: SchemaBundle) -> List[str]:
    """Schemas owning table types that this bundle's parameters refer to."""
    commands = bundle.stored_procedures + bundle.functions + bundle.table_getters
    return sorted({
        p.db_type.table_type_schema
        for command in commands
        for p in command.parameters
        if p.db_type.is_table_type
        and p.db_type.table_type_schema not in (None, bundle.schema_name)
    })


def schema_imports(bundle: SchemaBundle) -> List[str]:
    """Relative imports of the sibling modules foreign table types live in."""
    schemas = foreign_schemas(bundle)
    if not schemas:
        return []
    return [""] + [f"from . import {s} as {schema_module_alias(s)}" for s in schemas]


def _section(heading: str, blocks: Sequence[List[str]]) -> List[str]:
    if not blocks:
        return []
    lines = ["", ""] + title(heading)
    for block in blocks:
        lines.extend(["", ""])
        lines.extend(block)
    return lines


def render(bundle: SchemaBundle) -> Tuple[str, ...]:
    """Render the Python module for one schema.

    Sections come in a fixed order: table types, stored procedures,
    functions, then table getters nested in a TableGetters namespace.
    """
    lines = [BANNER, f'"""Bindings for the {bundle.schema_name} schema."""']
    lines.extend(IMPORTS)
    lines.extend(schema_imports(bundle))
    lines.extend(_section(
        "User-Defined Table Types", [render_table_type(t) for t in bundle.table_types]
    ))
    lines.extend(_section(
        "Stored Procedures", [render_command(c) for c in bundle.stored_procedures]
    ))
    lines.extend(_section(
        "User Defined Functions", [render_command(c) for c in bundle.functions]
    ))
    if bundle.table_getters:
        lines.extend(["", ""] + title("Table Getters"))
        lines.extend([
            "",
            "",
            "class TableGetters:",
            '    """Getters returning every row of a base table."""',
        ])
        for command in bundle.table_getters:
            lines.append("")
            lines.extend(indent(render_command(command)))
    return tuple(lines)


def render_all(bundles: Iterable[SchemaBundle]) -> Dict[str, str]:
    """Render a package: one module per schema, plus its __init__.py.

    Returns:
        Mapping of file name to file content
    """
    files = {"__init__.py": BANNER + "\n"}
    for bundle in sorted(bundles, key=lambda b: b.schema_name):
        files[f"{bundle.schema_name}.py"] = "\n".join(render(bundle)) + "\n"
    return files
