"""Errors raised while introspecting a database and generating bindings.

Every error here is fatal: a generation run either completes and emits a full
artifact, or aborts with one of these.
"""


class GenerationError(Exception):
    """Base class for errors that abort a generation run."""


class UnsupportedTypeError(GenerationError):
    """Raised when a native or runtime type has no DbType mapping."""


class InvalidNameError(GenerationError):
    """Raised when an identifier normalizes to an empty or invalid name."""


class UnknownFunctionShapeError(GenerationError):
    """Raised when a function's declared return kind is not recognized."""


class DryRunExecutionError(GenerationError):
    """Raised when the schema-only probe of a stored procedure fails."""


class UnsupportedCommandShapeError(GenerationError, NotImplementedError):
    """Raised for command shapes with no result-discovery mechanism yet."""


class CatalogConnectionError(GenerationError):
    """Raised when the catalog is queried without an open connection."""
