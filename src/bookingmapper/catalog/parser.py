"""Parsing of booking export files into a column catalog."""

import csv
import io
import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from openpyxl import load_workbook

from ..config import settings
from .models import CatalogParseError, ColumnCatalog, ColumnDef

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".csv", ".xlsx")

# Header keywords used to propose an initial mapping, in priority order.
# A later rule wins when several match the same header.
SUGGESTION_RULES: list[tuple[str, list[str]]] = [
    ("reservation_code", ["reservation id", "confirmation", "booking id", "reference"]),
    ("guest_name", ["guest", "name", "customer"]),
    ("check_in_date", ["check-in", "checkin", "arrival", "start date"]),
    ("num_nights", ["nights", "duration", "stay"]),
    ("platform", ["channel", "platform", "source"]),
    ("listing_name", ["listing", "property", "accommodation"]),
    ("total_price", ["total price", "totalprice", "amount", "revenue"]),
    ("accommodation_fee", ["accommodation", "base rate", "room"]),
    ("cleaning_fee", ["cleaning", "totalcleaning"]),
    ("lodging_tax", ["lodging", "lodgingtx", "tax"]),
    ("sales_tax", ["salestax", "sales tax"]),
    ("payment_fees", ["payment", "paymentfees", "processing"]),
    ("channel_fee", ["channel fee", "commission", "hostsidechannelfee"]),
]


def _normalize_header(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", text.lower())


def suggest_mappings(columns: list[ColumnDef]) -> dict[str, str]:
    """
    Suggest base mappings from header names.

    Args:
        columns: Columns of the parsed file

    Returns:
        Dict of booking field -> column name
    """
    suggestions: dict[str, str] = {}
    for column in columns:
        header = _normalize_header(column.name)
        if not header:
            continue
        for field_name, patterns in SUGGESTION_RULES:
            for pattern in patterns:
                normalized = _normalize_header(pattern)
                if normalized in header or header in normalized:
                    suggestions[field_name] = column.name
    return suggestions


class CatalogParser:
    """Parses CSV and Excel booking exports."""

    def __init__(
        self,
        max_rows: Optional[int] = None,
        max_file_size: Optional[int] = None,
    ):
        self.max_rows = max_rows or settings.max_rows_per_import
        self.max_file_size = max_file_size or settings.max_file_size_bytes

    def parse_file(self, path: Path) -> ColumnCatalog:
        """Parse a file from disk."""
        path = Path(path)
        return self.parse_bytes(path.read_bytes(), path.name)

    def parse_bytes(self, data: bytes, filename: str) -> ColumnCatalog:
        """
        Parse uploaded file content, dispatching on the file extension.

        Raises:
            CatalogParseError: If the file is too large, of an unsupported
                type, or contains no header row.
        """
        if len(data) > self.max_file_size:
            raise CatalogParseError(
                f"File '{filename}' is {len(data)} bytes, exceeding limit of {self.max_file_size}"
            )

        extension = Path(filename).suffix.lower()
        if extension == ".csv":
            try:
                text = data.decode("utf-8-sig")
            except UnicodeDecodeError:
                text = data.decode("latin-1")
            catalog = self.parse_text(text)
        elif extension == ".xlsx":
            catalog = self._parse_xlsx(data)
        else:
            raise CatalogParseError(
                f"Unsupported file type '{extension}' (expected one of {', '.join(SUPPORTED_EXTENSIONS)})"
            )

        catalog.source_name = filename
        logger.info(
            f"Parsed {filename}: {len(catalog.columns)} columns, {catalog.total_rows} rows"
        )
        return catalog

    def parse_text(self, text: str) -> ColumnCatalog:
        """Parse CSV text. Blank lines are skipped."""
        reader = csv.reader(io.StringIO(text))
        records = [record for record in reader if any(cell.strip() for cell in record)]
        return self._build_catalog(records)

    def _parse_xlsx(self, data: bytes) -> ColumnCatalog:
        try:
            workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        except Exception as e:
            raise CatalogParseError(f"Could not read Excel workbook: {e}") from e

        try:
            sheet = workbook.worksheets[0]
            records = []
            for values in sheet.iter_rows(values_only=True):
                record = [self._cell_to_text(value) for value in values]
                if any(cell.strip() for cell in record):
                    records.append(record)
        finally:
            workbook.close()
        return self._build_catalog(records)

    @staticmethod
    def _cell_to_text(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    def _build_catalog(self, records: list[list[str]]) -> ColumnCatalog:
        if not records:
            raise CatalogParseError("File is empty")

        header, rows = records[0], records[1:]
        if not any(name.strip() for name in header):
            raise CatalogParseError("Header row is empty")
        if len(rows) > self.max_rows:
            raise CatalogParseError(
                f"File has {len(rows)} rows, exceeding limit of {self.max_rows}"
            )
        return ColumnCatalog.from_rows(header, rows)
