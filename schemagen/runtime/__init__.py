"""Runtime support imported by generated bindings."""
from schemagen.runtime.connection import (
    NoRowReturnedError,
    SqlConn,
    SqlTransaction,
    TransactionClosedError,
    connect,
)

__all__ = [
    'NoRowReturnedError',
    'SqlConn',
    'SqlTransaction',
    'TransactionClosedError',
    'connect',
]
