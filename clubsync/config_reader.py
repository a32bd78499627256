from __future__ import annotations

import logging
from datetime import datetime, time, tzinfo
from typing import Any

import gspread
import requests
from dateutil import parser as date_parser

from .models import ConfigWindow
from .row_store import CONFIG_TABLE, RowStore


logger = logging.getLogger(__name__)

START_KEY = "START_DATE"
END_KEY = "END_DATE"


def _cell(row: list[Any], index: int | None) -> str:
    if index is None or index >= len(row):
        return ""
    return str(row[index] or "").strip()


def parse_window_date(raw: str, local_tz: tzinfo, *, end_of_day: bool = False) -> datetime:
    parsed = date_parser.parse(raw.strip())
    if end_of_day and ":" not in raw:
        parsed = datetime.combine(parsed.date(), time(23, 59, 59), tzinfo=parsed.tzinfo)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=local_tz)
    return parsed.astimezone(local_tz)


def default_window(start_raw: str, end_raw: str, local_tz: tzinfo) -> ConfigWindow:
    return ConfigWindow(
        start=parse_window_date(start_raw, local_tz),
        end=parse_window_date(end_raw, local_tz, end_of_day=True),
        source="default",
    )


def _header_index(header: list[str], name: str) -> int | None:
    wanted = name.lower()
    for index, column in enumerate(header):
        if column.strip().lower() == wanted:
            return index
    return None


def _vertical_pairs(values: list[list[Any]]) -> dict[str, str]:
    header = [str(cell).strip() for cell in values[0]]
    key_index = _header_index(header, "key")
    value_index = _header_index(header, "value")
    rows = values[1:]
    if key_index is None or value_index is None:
        # No Key/Value header: the first row may itself be a pair.
        key_index, value_index = 0, 1
        rows = values

    pairs: dict[str, str] = {}
    for row in rows:
        key = _cell(row, key_index).upper()
        value = _cell(row, value_index)
        if key in {START_KEY, END_KEY} and value and value.upper() not in {START_KEY, END_KEY}:
            pairs[key] = value
    return pairs


def _horizontal_pairs(values: list[list[Any]]) -> dict[str, str]:
    if len(values) < 2:
        return {}
    header = [str(cell).strip() for cell in values[0]]
    pairs: dict[str, str] = {}
    for key in (START_KEY, END_KEY):
        value = _cell(values[1], _header_index(header, key))
        if value:
            pairs[key] = value
    return pairs


def _apply_overrides(
    defaults: ConfigWindow,
    pairs: dict[str, str],
    local_tz: tzinfo,
    source: str,
) -> ConfigWindow:
    start, end = defaults.start, defaults.end
    if START_KEY in pairs:
        try:
            start = parse_window_date(pairs[START_KEY], local_tz)
            logger.info("Updated START_DATE to %s", start.isoformat())
        except (ValueError, OverflowError) as exc:
            logger.warning("Ignoring unparseable START_DATE %r: %s", pairs[START_KEY], exc)
    if END_KEY in pairs:
        try:
            end = parse_window_date(pairs[END_KEY], local_tz, end_of_day=True)
            logger.info("Updated END_DATE to %s", end.isoformat())
        except (ValueError, OverflowError) as exc:
            logger.warning("Ignoring unparseable END_DATE %r: %s", pairs[END_KEY], exc)
    if start > end:
        logger.warning(
            "Config window start %s is after end %s; using defaults.",
            start.isoformat(),
            end.isoformat(),
        )
        return defaults
    return ConfigWindow(start=start, end=end, source=source)


def read_config_window(store: RowStore, defaults: ConfigWindow, local_tz: tzinfo) -> ConfigWindow:
    table = store.table(CONFIG_TABLE)
    if table is None:
        logger.info("No Config sheet found, using default dates.")
        return defaults

    try:
        values = table.get_values()
    except (gspread.exceptions.GSpreadException, requests.RequestException) as exc:
        logger.warning("Error reading Config sheet, using defaults: %s", exc)
        return defaults
    if not values:
        logger.info("Config sheet is empty, using default dates.")
        return defaults

    pairs = _vertical_pairs(values)
    if pairs:
        return _apply_overrides(defaults, pairs, local_tz, "vertical")
    pairs = _horizontal_pairs(values)
    if pairs:
        return _apply_overrides(defaults, pairs, local_tz, "horizontal")
    logger.info("Config sheet has no START_DATE/END_DATE, using default dates.")
    return defaults
