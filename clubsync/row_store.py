from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable

import gspread
import requests
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1

from .config import Settings
from .errors import RowStoreError, SchemaError


logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

ATHLETES_TABLE = "Athletes"
STATS_TABLE = "Stats"
LEADERBOARD_TABLE = "Leaderboard"
CONFIG_TABLE = "Config"
SCORES_TABLE = "Scores"

ATHLETE_COLUMNS = ("athlete_id", "name", "refresh_token")
STATS_COLUMNS = (
    "athlete_id",
    "name",
    "type",
    "distance_meters",
    "moving_time",
    "elevation_gain",
    "date",
)
SCORES_COLUMNS = ("athlete_id", "name", "total_points", "total_distance")


def _cell_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return value


class SheetRow:
    def __init__(self, table: RowTable, row_number: int, values: list[Any]):
        self.table = table
        self.row_number = row_number
        width = len(table.header)
        padded = list(values[:width]) if width else list(values)
        padded.extend([""] * (width - len(padded)))
        self._values = padded

    def get(self, field: str, default: str = "") -> str:
        index = self.table.column_index(field)
        if index is None or index >= len(self._values):
            return default
        value = self._values[index]
        if value is None:
            return default
        text = str(value).strip()
        return text if text else default

    def set(self, field: str, value: Any) -> None:
        index = self.table.column_index(field)
        if index is None:
            raise SchemaError(f"Table '{self.table.title}' has no column '{field}'.")
        self._values[index] = _cell_value(value)

    def save(self) -> None:
        self.table.save_row(self)

    def values(self) -> list[Any]:
        return list(self._values)


class RowTable:
    """One worksheet viewed as a header row followed by data rows."""

    def __init__(self, worksheet: Any):
        self.worksheet = worksheet
        self.title = str(worksheet.title)
        self._header: list[str] | None = None

    def _load_values(self) -> list[list[Any]]:
        values = self.worksheet.get_all_values()
        self._header = [str(cell).strip() for cell in values[0]] if values else []
        return values

    @property
    def header(self) -> list[str]:
        if self._header is None:
            self._load_values()
        return list(self._header or [])

    def column_index(self, field: str, *, case_insensitive: bool = False) -> int | None:
        header = self._header if self._header is not None else self.header
        if case_insensitive:
            wanted = field.strip().lower()
            for index, name in enumerate(header):
                if name.lower() == wanted:
                    return index
            return None
        try:
            return header.index(field)
        except ValueError:
            return None

    def require_columns(self, columns: Iterable[str]) -> None:
        header = self.header
        missing = [column for column in columns if column not in header]
        if missing:
            raise SchemaError(
                f"Table '{self.title}' is missing required columns: {', '.join(missing)}"
            )

    def get_values(self) -> list[list[Any]]:
        return self._load_values()

    def get_rows(self) -> list[SheetRow]:
        values = self._load_values()
        rows: list[SheetRow] = []
        for offset, raw in enumerate(values[1:]):
            if not any(str(cell).strip() for cell in raw):
                continue
            rows.append(SheetRow(self, offset + 2, list(raw)))
        return rows

    def find_row(self, key_field: str, key: str) -> SheetRow | None:
        wanted = str(key).strip()
        for row in self.get_rows():
            if row.get(key_field) == wanted:
                return row
        return None

    def _row_values(self, fields: dict[str, Any]) -> list[Any]:
        header = self.header
        unknown = sorted(set(fields) - set(header))
        if unknown:
            logger.debug("Ignoring fields not present in %s: %s", self.title, ", ".join(unknown))
        return [_cell_value(fields.get(column)) for column in header]

    def add_row(self, fields: dict[str, Any]) -> None:
        self.add_rows([fields])

    def add_rows(self, rows: list[dict[str, Any]]) -> int:
        if not rows:
            return 0
        values = [self._row_values(fields) for fields in rows]
        self.worksheet.append_rows(values, value_input_option="RAW", table_range="A1")
        return len(values)

    def clear_rows(self) -> None:
        row_count = int(self.worksheet.row_count)
        if row_count < 2:
            return
        last_col = max(int(self.worksheet.col_count), len(self.header), 1)
        self.worksheet.batch_clear([f"A2:{rowcol_to_a1(row_count, last_col)}"])

    def save_row(self, row: SheetRow) -> None:
        width = max(len(self.header), 1)
        end = rowcol_to_a1(row.row_number, width)
        self.worksheet.update(
            range_name=f"A{row.row_number}:{end}",
            values=[row.values()],
            value_input_option="RAW",
        )

    def update_cells(self, a1_range: str, values: list[list[Any]]) -> None:
        cleaned = [[_cell_value(value) for value in row] for row in values]
        self.worksheet.update(range_name=a1_range, values=cleaned, value_input_option="RAW")


class RowStore:
    def __init__(self, spreadsheet: Any):
        self.spreadsheet = spreadsheet
        self._tables: dict[str, RowTable] | None = None

    def load_schema(self) -> list[str]:
        self._tables = {str(ws.title): RowTable(ws) for ws in self.spreadsheet.worksheets()}
        return list(self._tables)

    def table(self, title: str) -> RowTable | None:
        if self._tables is None:
            self.load_schema()
        return (self._tables or {}).get(title)

    def require_table(self, title: str, columns: Iterable[str] = ()) -> RowTable:
        table = self.table(title)
        if table is None:
            raise SchemaError(f"Required table '{title}' not found in spreadsheet.")
        table.require_columns(columns)
        return table

    def get_rows(self, title: str) -> list[SheetRow]:
        return self.require_table(title).get_rows()

    def add_row(self, title: str, fields: dict[str, Any]) -> None:
        self.require_table(title).add_row(fields)

    def add_rows(self, title: str, rows: list[dict[str, Any]]) -> int:
        return self.require_table(title).add_rows(rows)

    def clear_rows(self, title: str) -> None:
        self.require_table(title).clear_rows()


def _credentials(settings: Settings) -> Credentials:
    if settings.google_service_account_file is not None:
        return Credentials.from_service_account_file(
            str(settings.google_service_account_file),
            scopes=SCOPES,
        )
    return Credentials.from_service_account_info(
        {
            "type": "service_account",
            "client_email": settings.google_service_account_email,
            "private_key": settings.google_private_key,
            "token_uri": GOOGLE_TOKEN_URI,
        },
        scopes=SCOPES,
    )


def open_row_store(settings: Settings) -> RowStore:
    try:
        client = gspread.authorize(_credentials(settings))
        spreadsheet = client.open_by_key(settings.sheet_id)
        store = RowStore(spreadsheet)
        tables = store.load_schema()
    except (gspread.exceptions.GSpreadException, GoogleAuthError, requests.RequestException, ValueError, OSError) as exc:
        raise RowStoreError(f"Failed to open spreadsheet {settings.sheet_id}: {exc}") from exc
    logger.info("Opened spreadsheet with tables: %s", ", ".join(tables))
    return store
