"""Abstract base class for schema catalog adapters."""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

from schemagen.models.attribute import NamedAttribute
from schemagen.models.catalog import (
    CatalogFunction,
    CatalogProcedure,
    CatalogTable,
    CatalogTableType,
    ResultColumn,
)


class CatalogAdapter(ABC):
    """Abstract base class for database-specific catalog adapters.

    An adapter enumerates every database object of a kind, unfiltered;
    the introspector decides which objects are relevant. Unlike a best-effort
    metadata reader, adapters propagate every failure: a partial catalog
    would produce a partial API.
    """

    @abstractmethod
    def connect(self, config: Dict[str, Any]) -> None:
        """Open the design-time connection.

        Args:
            config: Connection configuration with keys:
                - connection_string: Driver connection string
                - server: Optional server address overriding the connection string
        """

    @abstractmethod
    def server_version(self) -> str:
        """Return the server version string."""

    @abstractmethod
    def fetch_table_types(self) -> List[CatalogTableType]:
        """Fetch all user-defined table types with their columns."""

    @abstractmethod
    def fetch_functions(self) -> List[CatalogFunction]:
        """Fetch all user-defined functions with parameters and declared returns."""

    @abstractmethod
    def fetch_procedures(self) -> List[CatalogProcedure]:
        """Fetch all stored procedures with their parameters."""

    @abstractmethod
    def fetch_tables(self) -> List[CatalogTable]:
        """Fetch all base tables with their columns."""

    @abstractmethod
    def describe_result(
        self,
        qualified_name: str,
        parameters: Sequence[NamedAttribute]
    ) -> List[ResultColumn]:
        """Discover a stored procedure's result columns with a schema-only dry run.

        Args:
            qualified_name: Bracket-quoted procedure name
            parameters: Procedure parameters, bound as typed placeholders

        Returns:
            Columns of the first result set; empty if there is none

        Raises:
            DryRunExecutionError: If the probe fails
        """

    @abstractmethod
    def close(self) -> None:
        """Close the connection.

        Should be idempotent (safe to call multiple times).
        """
