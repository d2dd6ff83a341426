"""Tests for initial column-to-field mapping suggestions."""
from src.crm_tool.schemas.csv_import import FieldSpec
from src.crm_tool.services.entities import CONTACT_FIELDS, DEAL_FIELDS
from src.crm_tool.services.field_mapper import (
    header_matches,
    missing_required_fields,
    suggest_mapping,
)


def test_exact_match_is_case_insensitive():
    assert header_matches("EMAIL", "email")
    assert header_matches("firstname", "firstName")


def test_header_containing_field_key_matches():
    assert header_matches("Work Email", "email")
    assert header_matches("contactId (legacy)", "contactId")


def test_field_key_containing_header_does_not_match():
    # "first" is inside "firstname" but the key must be inside the header
    assert not header_matches("First", "firstName")
    assert not header_matches("First Name", "firstName")


def test_short_headers_only_map_exact_keys():
    fields = [
        FieldSpec(key="email", label="Email"),
        FieldSpec(key="firstName", label="First Name"),
        FieldSpec(key="lastName", label="Last Name"),
    ]

    mapping = suggest_mapping(["Email", "First", "Last"], fields)

    assert mapping == {"email": "Email", "firstName": None, "lastName": None}


def test_first_matching_header_wins():
    fields = [FieldSpec(key="email", label="Email")]

    mapping = suggest_mapping(["Secondary Email", "Email", "email"], fields)

    assert mapping["email"] == "Secondary Email"


def test_every_field_gets_an_entry():
    mapping = suggest_mapping([], CONTACT_FIELDS)

    assert list(mapping) == [f.key for f in CONTACT_FIELDS]
    assert all(header is None for header in mapping.values())


def test_unmatched_fields_stay_unmapped():
    headers = ["Deal Title", "Contact", "Pipeline Stage", "Value"]

    mapping = suggest_mapping(headers, DEAL_FIELDS)

    assert mapping["stage"] == "Pipeline Stage"
    assert mapping["title"] == "Deal Title"
    assert mapping["contactId"] is None
    assert mapping["amount"] is None
    for field_key, header in mapping.items():
        if header is None:
            assert not any(field_key.lower() in h.lower() for h in headers)


def test_camel_case_headers_map_directly():
    headers = ["firstName", "lastName", "email", "phone", "company", "status", "source", "notes"]

    mapping = suggest_mapping(headers, CONTACT_FIELDS)

    assert mapping == {h: h for h in headers}


def test_missing_required_fields_lists_only_required_skips():
    mapping = {"firstName": "First", "lastName": None, "email": None}

    assert missing_required_fields(mapping, CONTACT_FIELDS) == ["lastName"]
