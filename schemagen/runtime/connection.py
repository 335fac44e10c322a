"""Connection capability consumed by generated bindings."""
import logging
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


class NoRowReturnedError(LookupError):
    """Raised when a single-value command returns no row."""


class TransactionClosedError(RuntimeError):
    """Raised when a command is enlisted in a committed or rolled back transaction."""


class SqlTransaction:
    """A transaction on an aioodbc connection opened with autocommit off.

    ODBC scopes transactions to the connection, so enlisting a cursor only
    checks that it belongs to that connection and the transaction is still open.
    """

    def __init__(self, connection: Any):
        self.connection = connection
        self.closed = False

    def enlist(self, cursor: Any) -> None:
        """Attach a cursor about to execute a command to this transaction.

        Raises:
            TransactionClosedError: If the transaction already ended
            ValueError: If the cursor belongs to another connection
        """
        if self.closed:
            raise TransactionClosedError("Transaction has already been committed or rolled back")
        if cursor.connection is not self.connection:
            raise ValueError("Cursor does not belong to the transaction's connection")

    async def commit(self) -> None:
        await self.connection.commit()
        self.closed = True

    async def rollback(self) -> None:
        await self.connection.rollback()
        self.closed = True


@dataclass(frozen=True)
class SqlConn:
    """A live connection with an optional ambient transaction."""

    connection: Any
    transaction: Optional[SqlTransaction] = None

    @classmethod
    def plain(cls, connection: Any) -> "SqlConn":
        """Wrap a connection; each command runs on its own."""
        return cls(connection=connection)

    @classmethod
    def with_transaction(cls, connection: Any) -> "SqlConn":
        """Wrap a connection whose commands all join one transaction."""
        if connection.autocommit:
            raise ValueError("A transaction requires a connection with autocommit disabled")
        return cls(connection=connection, transaction=SqlTransaction(connection))

    async def close(self) -> None:
        """Close the connection, rolling back an open transaction first."""
        if self.transaction is not None and not self.transaction.closed:
            logger.warning("Rolling back uncommitted transaction on close")
            await self.transaction.rollback()
        await self.connection.close()


async def connect(dsn: str, transactional: bool = False) -> SqlConn:
    """Open an aioodbc connection and wrap it.

    Args:
        dsn: ODBC connection string
        transactional: Open with autocommit off and an ambient transaction

    Returns:
        SqlConn ready to pass to generated commands
    """
    import aioodbc  # pylint: disable=import-outside-toplevel,import-error

    connection = await aioodbc.connect(dsn=dsn, autocommit=not transactional)
    if transactional:
        return SqlConn.with_transaction(connection)
    return SqlConn.plain(connection)
