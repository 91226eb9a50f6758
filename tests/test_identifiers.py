import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from device_inventory.core.exceptions import DuplicateIdentifierError, ValidationError
from device_inventory.core.serials import normalize_serial, split_scanned_payload
from device_inventory.services.identifiers import (
    generate_identifiers,
    identifier_prefix,
    next_sequence_start,
    sequence_number,
    type_prefix,
    validate_identifiers,
)
from device_inventory.services.order_ids import SequenceAllocator, UuidAllocator


def test_generate_identifiers_for_inward_tablet_order():
    assert generate_identifiers("Inward", "Tablet", "TB301FU", 3) == [
        "NEW-TABTB-0001",
        "NEW-TABTB-0002",
        "NEW-TABTB-0003",
    ]


@pytest.mark.parametrize(
    "order_type, expected",
    [
        ("New", "NEW"),
        ("inward", "NEW"),
        ("Refurbish", "REF"),
        ("Replace", "RPL"),
        ("Outward", "OUT"),
        ("Something else", "ORD"),
        (None, "ORD"),
    ],
)
def test_type_prefix(order_type, expected):
    assert type_prefix(order_type) == expected


def test_identifier_prefix_uses_product_and_model_initials():
    assert identifier_prefix("Replace", "TV", 'Hyundai TV - 43"') == "RPL-TVHY-"


def test_generate_identifiers_continues_from_start():
    assert generate_identifiers("New", "Tablet", "TB301FU", 2, start=4) == ["NEW-TABTB-0004", "NEW-TABTB-0005"]


def test_generate_identifiers_widens_past_four_digits():
    assert generate_identifiers("New", "Tablet", "TB301FU", 1, start=10000) == ["NEW-TABTB-10000"]


def test_generate_identifiers_rejects_non_positive_quantity():
    with pytest.raises(ValidationError):
        generate_identifiers("New", "Tablet", "TB301FU", 0)


def test_next_sequence_start_ignores_foreign_identifiers():
    existing = ["NEW-TABTB-0001", "NEW-TABTB-0007", "NEW-TABTB-manual", "REF-TABTB-0099", "custom"]
    assert sequence_number("NEW-TABTB-0007", "NEW-TABTB-") == 7
    assert next_sequence_start("NEW-TABTB-", existing) == 8
    assert next_sequence_start("OUT-TVHY-", existing) == 1


def test_validate_identifiers_trims_values():
    assert validate_identifiers(["  SN-1 ", "SN  2"], quantity=2) == ["SN-1", "SN 2"]


def test_validate_identifiers_count_mismatch():
    with pytest.raises(ValidationError) as excinfo:
        validate_identifiers(["A", "B"], quantity=3)
    assert excinfo.value.details == {"expected": 3, "received": 2}


def test_validate_identifiers_rejects_blank_values():
    with pytest.raises(ValidationError) as excinfo:
        validate_identifiers(["A", "   "])
    assert excinfo.value.details["rejected"] == [{"index": 1, "value": "", "reason": "blank"}]


def test_validate_identifiers_reports_every_duplicate():
    with pytest.raises(DuplicateIdentifierError) as excinfo:
        validate_identifiers(["A", "B", "A", "C"], existing={"C"})
    reasons = [(r.index, r.value, r.reason) for r in excinfo.value.rejections]
    assert reasons == [(2, "A", "duplicate_in_order"), (3, "C", "already_exists")]


def test_validate_identifiers_is_case_sensitive():
    assert validate_identifiers(["abc", "ABC"], existing={"Abc"}) == ["abc", "ABC"]


def test_split_scanned_payload():
    assert split_scanned_payload("SN1\r\nSN2, SN3;;\tSN4\n") == ["SN1", "SN2", "SN3", "SN4"]
    assert split_scanned_payload(None) == []
    assert normalize_serial("  X   Y ") == "X Y"


def test_sequence_allocator_is_independent_per_instance():
    first = SequenceAllocator(prefix="ORD")
    second = SequenceAllocator(prefix="ORD", start=10)
    assert [first.allocate(), first.allocate()] == ["ORD-000001", "ORD-000002"]
    assert second.allocate() == "ORD-000010"


def test_uuid_allocator_returns_unique_ids():
    allocator = UuidAllocator()
    assert allocator.allocate() != allocator.allocate()
