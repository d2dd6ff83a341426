"""Initial column-to-field mapping suggestions"""
from typing import Dict, List, Optional, Sequence

from src.crm_tool.schemas.csv_import import FieldSpec


def header_matches(header: str, field_key: str) -> bool:
    """A header matches when it equals the field key or contains it, ignoring case."""
    header_l = header.lower()
    key_l = field_key.lower()
    return header_l == key_l or key_l in header_l


def suggest_mapping(
    headers: Sequence[str],
    fields: Sequence[FieldSpec]
) -> Dict[str, Optional[str]]:
    """Best-guess mapping of each field to the first matching header, or None."""
    mapping: Dict[str, Optional[str]] = {}
    for field in fields:
        mapping[field.key] = next(
            (header for header in headers if header_matches(header, field.key)),
            None
        )
    return mapping


def missing_required_fields(
    mapping: Dict[str, Optional[str]],
    fields: Sequence[FieldSpec]
) -> List[str]:
    """Keys of required fields that have no column assigned."""
    return [
        field.key for field in fields
        if field.required and not mapping.get(field.key)
    ]
