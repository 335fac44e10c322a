"""Tests for the intermediate representation."""
import pytest
from pydantic import ValidationError

from schemagen.core.errors import (
    InvalidNameError,
    UnknownFunctionShapeError,
    UnsupportedCommandShapeError,
)
from schemagen.core.utils import qualified_name
from schemagen.models.dbtype import INT32, STRING
from schemagen.models.ir import (
    Command,
    CommandKind,
    NoReturn,
    SchemaBundle,
    SingleReturn,
    TableReturn,
    TableTypeDef,
    group_by_schema,
    table_or_none,
)
from schemagen.models.catalog import CatalogTableType


def test_qualified_name():
    """Test that object names are bracket-quoted."""
    assert qualified_name('dbo', 'GetUsers') == '[dbo].[GetUsers]'


def test_table_or_none(attribute_factory):
    """Test that an empty column list means no result."""
    assert table_or_none([]) == NoReturn()
    returns = table_or_none([attribute_factory()])
    assert isinstance(returns, TableReturn)
    assert len(returns.columns) == 1


def test_table_return_requires_columns():
    """Test that a table result has at least one column."""
    with pytest.raises(ValidationError):
        TableReturn(columns=())


def test_for_stored_procedure(attribute_factory):
    """Test building a stored procedure command."""
    command = Command.for_stored_procedure(
        'dbo', 'GetUsers', [attribute_factory(name='teamId')], NoReturn()
    )
    assert command.kind == CommandKind.STORED_PROCEDURE
    assert command.qualified_name == '[dbo].[GetUsers]'
    assert command.parameters[0].name == 'teamId'


def test_for_function_rejects_no_return():
    """Test that a function must return something."""
    with pytest.raises(UnknownFunctionShapeError):
        Command.for_function('dbo', 'Broken', [], NoReturn())


def test_for_function_single():
    """Test building a scalar function command."""
    command = Command.for_function('dbo', 'Add', [], SingleReturn(db_type=INT32, nullable=True))
    assert command.kind == CommandKind.FUNCTION
    assert command.returns.shape == 'single'


def test_for_table(attribute_factory):
    """Test that a table getter returns every column."""
    columns = [attribute_factory(name='Id'), attribute_factory(name='Name', db_type=STRING)]
    command = Command.for_table('dbo', 'Users', columns)
    assert command.kind == CommandKind.TABLE_GETTER
    assert [c.name for c in command.returns.columns] == ['Id', 'Name']


def test_for_sql_is_unsupported():
    """Test that free-form SQL cannot be typed."""
    with pytest.raises(UnsupportedCommandShapeError):
        Command.for_sql('Report', 'SELECT 1')


def test_unsupported_command_shape_is_not_implemented():
    """Test that the error can be caught as NotImplementedError."""
    with pytest.raises(NotImplementedError):
        Command.for_sql('Report', 'SELECT 1')


def test_raw_sql_requires_text():
    """Test that raw SQL commands carry their text, and only they do."""
    with pytest.raises(ValidationError):
        Command(
            schema_name='dbo', name='Report', qualified_name='Report',
            returns=NoReturn(), kind=CommandKind.RAW_SQL
        )
    with pytest.raises(ValidationError):
        Command(
            schema_name='dbo', name='Users', qualified_name='[dbo].[Users]', returns=NoReturn(),
            kind=CommandKind.TABLE_GETTER, sql='SELECT 1'
        )


def test_keyword_command_name_rejected():
    """Test that a command cannot be named after a Python keyword."""
    with pytest.raises(InvalidNameError):
        Command.for_stored_procedure('dbo', 'import', [], NoReturn())


def test_invalid_command_name_rejected():
    """Test that a command name must be an identifier."""
    with pytest.raises(InvalidNameError):
        Command.for_stored_procedure('dbo', 'Get Users', [], NoReturn())


def test_returns_from_dict():
    """Test that the return shape is chosen by its discriminator."""
    command = Command(
        schema_name='dbo', name='Count', qualified_name='[dbo].[Count]',
        returns={'shape': 'single', 'db_type': {'kind': 'INT32'}, 'nullable': False},
        kind=CommandKind.FUNCTION,
    )
    assert isinstance(command.returns, SingleReturn)
    assert command.returns.db_type == INT32


def test_table_type_from_catalog(column_factory):
    """Test mapping a catalog table type."""
    table_type = TableTypeDef.from_catalog(CatalogTableType(
        schema_name='dbo',
        name='IdList',
        columns=[column_factory(name='Id'), column_factory(name='Label', data_type='nvarchar', is_nullable=True)]
    ))
    assert table_type.name == 'IdList'
    assert [c.name for c in table_type.columns] == ['Id', 'Label']
    assert table_type.columns[1].nullable is True


def test_schema_bundle_sorts_categories():
    """Test that each bundle category is sorted by name."""
    commands = [
        Command.for_stored_procedure('dbo', name, [], NoReturn())
        for name in ['Zeta', 'Alpha', 'Mid']
    ]
    bundle = SchemaBundle(schema_name='dbo', stored_procedures=commands)
    assert [c.name for c in bundle.stored_procedures] == ['Alpha', 'Mid', 'Zeta']


def test_group_by_schema(attribute_factory):
    """Test grouping entities into per-schema bundles."""
    bundles = group_by_schema(
        stored_procedures=[
            Command.for_stored_procedure('sales', 'Close', [], NoReturn()),
            Command.for_stored_procedure('dbo', 'Open', [], NoReturn()),
        ],
        table_getters=[Command.for_table('sales', 'Orders', [attribute_factory(name='Id')])],
    )
    assert [b.schema_name for b in bundles] == ['dbo', 'sales']
    assert [c.name for c in bundles[1].stored_procedures] == ['Close']
    assert [c.name for c in bundles[1].table_getters] == ['Orders']
    assert bundles[0].table_getters == ()


def test_group_by_schema_empty():
    """Test that no entities means no bundles."""
    assert group_by_schema() == []


def test_command_requires_schema():
    """Test that every command belongs to a schema."""
    with pytest.raises(ValidationError):
        Command(
            name='Report', qualified_name='Report', returns=NoReturn(),
            kind=CommandKind.RAW_SQL, sql='SELECT 1'
        )


def test_group_by_schema_with_raw_sql():
    """Test that raw SQL commands are grouped with the schema they name."""
    report = Command(
        schema_name='sales', name='Report', qualified_name='Report', returns=NoReturn(),
        kind=CommandKind.RAW_SQL, sql='SELECT 1'
    )
    bundles = group_by_schema(
        stored_procedures=[Command.for_stored_procedure('dbo', 'Open', [], NoReturn())],
        functions=[report],
    )
    assert [b.schema_name for b in bundles] == ['dbo', 'sales']
    assert bundles[1].functions == (report,)


def test_table_return_rejects_duplicate_columns(attribute_factory):
    """Test that a row type cannot have two fields of the same name."""
    with pytest.raises(InvalidNameError, match="Duplicate attribute name 'Id'"):
        TableReturn(columns=(attribute_factory(name='Id'), attribute_factory(name='Id', db_type=STRING)))


def test_table_type_rejects_duplicate_columns(attribute_factory):
    """Test that escaping cannot make two table type columns collide."""
    with pytest.raises(InvalidNameError, match="Duplicate attribute name 'from_rows_'"):
        TableTypeDef(
            schema_name='dbo',
            name='Batch',
            columns=(attribute_factory(name='from_rows'), attribute_factory(name='from_rows_')),
        )


def test_command_rejects_duplicate_parameters(attribute_factory):
    """Test that two parameters cannot share a keyword argument name."""
    with pytest.raises(InvalidNameError, match="Duplicate attribute name 'uuid_'"):
        Command.for_stored_procedure(
            'dbo', 'FindByUuid',
            [attribute_factory(name='uuid'), attribute_factory(name='uuid_')],
            NoReturn(),
        )
