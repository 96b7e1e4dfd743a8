"""Column catalog: typed view of a parsed booking export."""

from .models import ColumnDef, ColumnCatalog, CatalogParseError
from .parser import CatalogParser, suggest_mappings

__all__ = [
    "ColumnDef",
    "ColumnCatalog",
    "CatalogParseError",
    "CatalogParser",
    "suggest_mappings",
]
