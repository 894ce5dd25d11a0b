import re

import pytest

from app.utils.ids import generate_audit_id
from app.utils.validators import (
    is_valid_entity_id,
    is_valid_phone,
    is_valid_pincode,
    normalize_phone,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("098765 43210", "+919876543210"),
        ("9876543210", "+919876543210"),
        ("919876543210", "+919876543210"),
        ("+91 98765-43210", "+919876543210"),
        ("+1 415 555 0100", "+14155550100"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_is_valid_phone():
    assert is_valid_phone("98765 43210")
    assert not is_valid_phone("12345")


@pytest.mark.parametrize("pincode, ok", [("600002", True), ("060002", False),
                                         ("60002", False), ("6000021", False), (None, False)])
def test_pincode(pincode, ok):
    assert is_valid_pincode(pincode) is ok


def test_entity_id():
    assert is_valid_entity_id("PR20240101001")
    assert is_valid_entity_id("ORD-abc_123")
    assert not is_valid_entity_id("ORD 1")
    assert not is_valid_entity_id("x" * 51)
    assert not is_valid_entity_id("")


def test_audit_ids_are_unique():
    ids = {generate_audit_id("ORD") for _ in range(50)}

    assert len(ids) == 50
    assert all(re.match(r"^ORD-[A-Za-z0-9_-]+$", i) for i in ids)
