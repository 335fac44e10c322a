"""Catalog adapter registry and factory."""
import logging
from typing import Dict, Type

from schemagen.catalog.base import CatalogAdapter
from schemagen.catalog.sqlserver import SqlServerCatalog

logger = logging.getLogger(__name__)


class UnsupportedCatalogError(ValueError):
    """Raised when an unsupported catalog type is requested."""


# Registry of available catalog adapters
CATALOG_ADAPTERS: Dict[str, Type[CatalogAdapter]] = {
    'sqlserver': SqlServerCatalog,
}


def get_catalog(catalog_type: str) -> CatalogAdapter:
    """Get a catalog adapter instance by type.

    Args:
        catalog_type: Type of database catalog (sqlserver)

    Returns:
        CatalogAdapter instance for the specified database

    Raises:
        UnsupportedCatalogError: If catalog type is not recognized
    """
    catalog_type_lower = catalog_type.lower()

    if catalog_type_lower not in CATALOG_ADAPTERS:
        raise UnsupportedCatalogError(
            f"Unsupported catalog: '{catalog_type}'. "
            f"Supported types: {', '.join(CATALOG_ADAPTERS.keys())}"
        )

    logger.debug("Creating adapter for catalog type: %s", catalog_type_lower)
    return CATALOG_ADAPTERS[catalog_type_lower]()


def list_supported_catalogs() -> list[str]:
    """Get list of supported catalog types."""
    return list(CATALOG_ADAPTERS.keys())
