"""Data models for parsed source files."""

from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class CatalogParseError(Exception):
    """Raised when a source file cannot be turned into a column catalog."""

    pass


class ColumnDef(BaseModel):
    """A single source column, identified by its position and header text."""

    model_config = ConfigDict(frozen=True)

    index: int  # 0-based position in every row
    name: str
    sample_value: Optional[str] = None  # First data row value, for display

    @property
    def key(self) -> str:
        """Case-insensitive lookup key for this column."""
        return self.name.strip().lower()


class ColumnCatalog(BaseModel):
    """Ordered columns and raw string rows of one parsed file."""

    columns: list[ColumnDef] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)
    source_name: Optional[str] = None  # Original filename, when known

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def find_column(self, name: str) -> Optional[ColumnDef]:
        """Find a column by name, ignoring case and surrounding whitespace."""
        key = name.strip().lower()
        for column in self.columns:
            if column.key == key:
                return column
        return None

    def has_column(self, name: str) -> bool:
        return self.find_column(name) is not None

    def cell(self, row: list[str], name: str) -> Optional[str]:
        """Return the raw cell for a named column, or None if unknown."""
        column = self.find_column(name)
        if column is None:
            return None
        return row[column.index] if column.index < len(row) else ""

    @classmethod
    def from_rows(
        cls,
        header: list[str],
        rows: list[list[str]],
        source_name: Optional[str] = None,
    ) -> "ColumnCatalog":
        """Build a catalog from a header row and data rows."""
        first_row = rows[0] if rows else []
        columns = [
            ColumnDef(
                index=index,
                name=name.strip(),
                sample_value=(first_row[index].strip() if index < len(first_row) else ""),
            )
            for index, name in enumerate(header)
        ]
        width = len(columns)
        normalized = [
            list(row[:width]) + [""] * max(0, width - len(row)) for row in rows
        ]
        return cls(columns=columns, rows=normalized, source_name=source_name)
