"""Apply a field mapping to raw CSV rows"""
from typing import Dict, Iterable, List, Optional


def transform_row(
    row: Dict[str, str],
    mapping: Dict[str, Optional[str]]
) -> Dict[str, str]:
    """Reshape one raw row into target-field keys.

    Skipped fields are left out entirely, never set to None, so the entity's
    own defaults apply. A mapped column missing from a short row is left out
    the same way. Values stay as raw strings.
    """
    transformed = {}
    for field_key, header in mapping.items():
        if header and header in row:
            transformed[field_key] = row[header]
    return transformed


def transform_rows(
    rows: Iterable[Dict[str, str]],
    mapping: Dict[str, Optional[str]]
) -> List[Dict[str, str]]:
    return [transform_row(row, mapping) for row in rows]
