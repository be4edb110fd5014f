"""
Hafalan Report Data Loader - Google Sheets Edition

Fetches the published spreadsheet exports (teachers, students, principals,
scores) and the bundled curriculum list, and turns each into a list of
uniformly-shaped records: one dict per row, keyed by the header columns.

CSV structure (as exported by Google Sheets "Publish to web"):
- Row 0: Column headers (e.g. Name, NISN, Class)
- Rows 1+: Data rows; fields containing commas are wrapped in double quotes

Every call re-fetches. Nothing is cached.
"""

import json
import logging
import re
import sys
from pathlib import Path
from typing import Dict, List, Any, Optional, Iterable

import pandas as pd
import requests

from config import (
    CSV_URLS,
    CURRICULUM_ITEMS,
    HAFALAN_DATA_FILE,
    REQUEST_TIMEOUT,
    TABLES,
    TABLE_LABELS,
)

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class SheetFetchError(RuntimeError):
    """A table source could not be reached or answered with a non-success status."""

    def __init__(self, table: str, message: str):
        super().__init__(message)
        self.table = table


# ==================== CSV PARSING ====================

def split_csv_line(line: str) -> List[str]:
    """
    Split one data line into trimmed field values.

    A double quote toggles the "inside quotes" state and is never kept.
    A comma outside quotes ends the current field.

    NOTE: Doubled quotes ("") are NOT an escaped quote here. They close and
    reopen the quoted section, so the value loses both characters.
    """
    values = []
    current = ''
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == ',' and not in_quotes:
            values.append(current.strip())
            current = ''
        else:
            current += char

    values.append(current.strip())
    return values


def parse_csv(csv_text: str) -> List[Record]:
    """
    Parse delimited text into records keyed by the (trimmed) header columns.

    Rows whose field count differs from the header count are dropped
    silently. Input with fewer than two lines yields an empty list.

    Example:
        >>> parse_csv('Name,Score\\n"Doe, Jane",BSH')
        [{'Name': 'Doe, Jane', 'Score': 'BSH'}]
    """
    lines = re.split(r'\r?\n', csv_text.strip())
    if len(lines) < 2:
        return []

    headers = [h.strip() for h in lines[0].split(',')]

    records = []
    for line in lines[1:]:
        # Skip empty lines
        if not line:
            continue

        values = split_csv_line(line)
        if len(values) == len(headers):
            records.append(dict(zip(headers, values)))

    return records


# ==================== TABLE LOADING ====================

def load_hafalan_items(json_path: Optional[str] = None) -> List[Record]:
    """Load the bundled curriculum list (no network call)."""
    path = Path(json_path) if json_path else Path(__file__).parent / HAFALAN_DATA_FILE
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def fetch_table(table_id: str, url: Optional[str] = None) -> List[Record]:
    """
    Fetch one named table and return its records in row order.

    This is the single entry point the portal screens use for reading.

    Args:
        table_id: One of config.TABLES
        url: Override for the published CSV URL

    Raises:
        ValueError: Unknown table id
        SheetFetchError: Source unreachable or non-success status
    """
    if table_id not in TABLES:
        raise ValueError(f"Unknown table: {table_id!r}")

    if table_id == CURRICULUM_ITEMS:
        return load_hafalan_items()

    label = TABLE_LABELS[table_id]
    source_url = url or CSV_URLS[table_id]

    try:
        response = requests.get(source_url, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        logger.error("Failed to fetch %s data: %s", label, e)
        raise SheetFetchError(table_id, f"Error fetching {label} CSV data: {e}") from e

    if not 200 <= response.status_code < 300:
        message = f"Error fetching {label} CSV data: {response.status_code} {response.reason}"
        logger.error("Failed to fetch %s data: %s", label, message)
        raise SheetFetchError(table_id, message)

    # Sheets exports are UTF-8; strip a BOM so it cannot leak into the first header
    csv_text = response.content.decode('utf-8-sig')
    return parse_csv(csv_text)


def fetch_tables(table_ids: Iterable[str]) -> Dict[str, List[Record]]:
    """
    Fetch several tables for one screen.

    All tables must load; the first failure is raised and no partial
    result is returned.
    """
    return {table_id: fetch_table(table_id) for table_id in table_ids}


def records_to_frame(records: List[Record], columns: Dict[str, str]) -> pd.DataFrame:
    """
    Build a display DataFrame from records.

    Args:
        records: Parsed records
        columns: Mapping of record field -> display header, in display order
    """
    rows = [{header: record.get(field, '') for field, header in columns.items()}
            for record in records]
    return pd.DataFrame(rows, columns=list(columns.values()))


# ==================== LOOKUPS ====================

def find_user(records: List[Record], login_field: str, pin: str) -> Optional[Record]:
    """Return the first record whose login field matches the entered PIN."""
    entered = pin.strip()
    for record in records:
        if str(record.get(login_field, '')).strip() == entered:
            return record
    return None


def hafalan_items_for(items: List[Record],
                      category: str,
                      semester: Optional[int] = None) -> List[Record]:
    """
    Curriculum items selectable for a category (and semester, when given).

    Items without a Semester belong to every semester of their category.
    """
    selected = []
    for item in items:
        if item.get('Category') != category:
            continue
        item_semester = item.get('Semester')
        if semester is not None and item_semester is not None and item_semester != semester:
            continue
        selected.append(item)
    return selected


# CLI entry point
if __name__ == "__main__":
    requested = sys.argv[1:] or list(TABLES)

    print("=" * 60)
    print("Hafalan Report Data Loader")
    print("=" * 60)

    failed = False
    for table_id in requested:
        try:
            records = fetch_table(table_id)
        except (SheetFetchError, ValueError) as e:
            print(f"  Warning: Failed to load {table_id}: {e}")
            failed = True
            continue

        columns = list(records[0].keys()) if records else []
        print(f"  Loaded: {table_id} ({len(records)} rows) columns={columns}")

    sys.exit(1 if failed else 0)
