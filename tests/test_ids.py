import pytest

from clinic.core.ids import (
    extract_prefix, extract_sequence, format_id, get_entity_type, has_prefix,
    invoice_number_for, is_valid_id, make_id, parse_id
)

def test_make_id():
    assert make_id(75, 1) == 75000001
    assert make_id(88, 123456) == 88123456

def test_prefix_and_sequence():
    assert extract_prefix(95000012) == 95
    assert extract_sequence(95000012) == 12
    assert extract_prefix(7) == 0
    assert extract_sequence(7) == 0
    assert has_prefix(55000001, 55)
    assert not has_prefix(55000001, 33)

def test_entity_type():
    assert get_entity_type(75000001) == "doctor"
    assert get_entity_type(33000004) == "medical_record"
    assert get_entity_type(12000001) is None
    assert is_valid_id(88000001)
    assert not is_valid_id(12000001)

def test_format_and_parse():
    assert format_id(75000001) == "75-0000-01"
    assert parse_id("75-0000-01") == 75000001
    with pytest.raises(ValueError):
        parse_id("--")

def test_invoice_number():
    assert invoice_number_for(88000042, 2026) == "INV-2026-00042"
