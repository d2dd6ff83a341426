"""CSV decoding and parsing with a header-row assumption"""
import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from src.crm_tool.services.import_errors import CSVParseError

logger = logging.getLogger(__name__)

ENCODINGS = ["utf-8-sig", "cp1252"]


@dataclass
class ParsedCSV:
    headers: List[str]
    rows: List[Dict[str, str]] = field(default_factory=list)


def decode_csv_content(content: bytes) -> str:
    for encoding in ENCODINGS:
        try:
            return content.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue
    raise CSVParseError("Unable to decode CSV file. Supported encodings: UTF-8, Windows-1252")


def _is_blank(cells: List[str]) -> bool:
    return all(not cell.strip() for cell in cells)


def parse_csv(text: str) -> ParsedCSV:
    """Parse CSV text whose first row holds the column names.

    Empty lines are skipped. A row shorter than the header keeps only the
    columns it has, so missing trailing cells are absent keys rather than
    empty strings. Cells beyond the last header are dropped.
    """
    reader = csv.reader(io.StringIO(text, newline=""), strict=True)

    try:
        header_row = next((r for r in reader if r and not _is_blank(r)), None)
        if header_row is None:
            raise CSVParseError("CSV file is empty or has no header row")

        columns = [(idx, name.strip()) for idx, name in enumerate(header_row) if name.strip()]
        headers = [name for _, name in columns]

        seen = set()
        duplicates = []
        for name in headers:
            if name in seen and name not in duplicates:
                duplicates.append(name)
            seen.add(name)
        if duplicates:
            raise CSVParseError(f"Duplicate column names: {', '.join(duplicates)}")

        rows = []
        dropped_cells = 0
        for cells in reader:
            if not cells or _is_blank(cells):
                continue
            if len(cells) > len(header_row):
                dropped_cells += len(cells) - len(header_row)
            rows.append({
                name: cells[idx]
                for idx, name in columns
                if idx < len(cells)
            })
    except csv.Error as e:
        raise CSVParseError(f"Malformed CSV (line {reader.line_num}): {e}") from e

    if dropped_cells:
        logger.warning(f"Dropped {dropped_cells} cells beyond the header columns")

    return ParsedCSV(headers=headers, rows=rows)


def load_csv(content: bytes) -> ParsedCSV:
    return parse_csv(decode_csv_content(content))
