"""Common test fixtures."""
# pylint: disable=redefined-outer-name,too-many-arguments,too-many-positional-arguments
import sys
import types
from unittest.mock import MagicMock, patch

import pytest

from schemagen.catalog.base import CatalogAdapter
from schemagen.models.attribute import NamedAttribute
from schemagen.models.catalog import CatalogColumn, CatalogParameter
from schemagen.models.dbtype import INT32


@pytest.fixture
def column_factory():
    """Factory to create CatalogColumn instances for testing."""
    def _make_column(
        name="Id",
        data_type="int",
        is_nullable=False,
        ordinal_position=1
    ):
        return CatalogColumn(
            name=name,
            data_type=data_type,
            is_nullable=is_nullable,
            ordinal_position=ordinal_position
        )
    return _make_column


@pytest.fixture
def parameter_factory():
    """Factory to create CatalogParameter instances for testing."""
    def _make_parameter(
        name="@Id",
        data_type="int",
        is_table_type=False,
        type_schema=None,
        default_value=None,
        ordinal_position=1
    ):
        return CatalogParameter(
            name=name,
            data_type=data_type,
            is_table_type=is_table_type,
            type_schema=type_schema,
            default_value=default_value,
            ordinal_position=ordinal_position
        )
    return _make_parameter


@pytest.fixture
def attribute_factory():
    """Factory to create NamedAttribute instances for testing."""
    def _make_attribute(name="id", db_type=INT32, nullable=False):
        return NamedAttribute(name=name, db_type=db_type, nullable=nullable)
    return _make_attribute


class FakeCatalog(CatalogAdapter):
    """In-memory catalog. Dry-run results are keyed by qualified procedure name."""

    def __init__(self, table_types=None, functions=None, procedures=None,
                 tables=None, results=None):
        self.table_types = table_types or []
        self.functions = functions or []
        self.procedures = procedures or []
        self.tables = tables or []
        self.results = results or {}
        self.described = []
        self.connected_with = None
        self.closed = False

    def connect(self, config):
        self.connected_with = config

    def server_version(self):
        return "Microsoft SQL Server 2019"

    def fetch_table_types(self):
        return self.table_types

    def fetch_functions(self):
        return self.functions

    def fetch_procedures(self):
        return self.procedures

    def fetch_tables(self):
        return self.tables

    def describe_result(self, qualified_name, parameters):
        self.described.append((qualified_name, tuple(parameters)))
        return self.results.get(qualified_name, [])

    def close(self):
        self.closed = True


@pytest.fixture
def fake_catalog_factory():
    """Factory to create in-memory catalog adapters."""
    return FakeCatalog


class FakeCursor:
    """Async cursor recording what a generated command sends to the driver."""

    def __init__(self, connection, rows):
        self.connection = connection
        self.rows = list(rows)
        self.input_sizes = None
        self.executed = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def setinputsizes(self, sizes):
        self.input_sizes = sizes

    async def execute(self, sql, *params):
        self.executed.append((sql, params))

    async def fetchone(self):
        if not self.rows:
            return None
        return self.rows.pop(0)

    async def fetchall(self):
        rows, self.rows = self.rows, []
        return rows


class FakeConnection:
    """Async connection handing out FakeCursors over canned rows."""

    def __init__(self, rows=(), autocommit=True):
        self.rows = rows
        self.autocommit = autocommit
        self.cursors = []
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def cursor(self):
        cursor = FakeCursor(self, self.rows)
        self.cursors.append(cursor)
        return cursor

    async def commit(self):
        self.committed = True

    async def rollback(self):
        self.rolled_back = True

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_connection_factory():
    """Factory to create fake async connections."""
    return FakeConnection


@pytest.fixture
def load_generated():
    """Execute generated source as a module, with pyodbc replaced by a mock."""
    with patch.dict(sys.modules, {'pyodbc': MagicMock()}):
        def _load(source, module_name="generated_dbo"):
            module = types.ModuleType(module_name)
            sys.modules[module_name] = module
            exec(compile(source, f"<{module_name}>", "exec"), module.__dict__)  # pylint: disable=exec-used
            return module
        yield _load


@pytest.fixture
def load_generated_package():
    """Execute rendered files as a package of schema modules, with pyodbc replaced by a mock.

    Modules are executed in file name order, so a module may only import
    schemas that sort before it.
    """
    with patch.dict(sys.modules, {'pyodbc': MagicMock()}):
        def _load(files, package_name="generated"):
            package = types.ModuleType(package_name)
            package.__path__ = []
            sys.modules[package_name] = package
            for file_name in sorted(files):
                if file_name == "__init__.py":
                    continue
                schema_name = file_name[:-len(".py")]
                module_name = f"{package_name}.{schema_name}"
                module = types.ModuleType(module_name)
                module.__package__ = package_name
                sys.modules[module_name] = module
                exec(compile(files[file_name], f"<{module_name}>", "exec"), module.__dict__)  # pylint: disable=exec-used
                setattr(package, schema_name, module)
            return package
        yield _load
