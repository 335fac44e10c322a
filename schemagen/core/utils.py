"""Core utility functions for schemagen."""
from sqlglot import exp


def qualified_name(schema: str, name: str) -> str:
    """Bracket-quote an object name as [schema].[name].

    Closing brackets inside either part are escaped by doubling.
    """
    return exp.table_(name, db=schema, quoted=True).sql(dialect="tsql")
