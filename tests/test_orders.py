import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from device_inventory.db.session import Base
from device_inventory.core.exceptions import DuplicateIdentifierError, PersistenceError, ValidationError
from device_inventory.crud import orders as order_store
from device_inventory.crud.devices import build_event_bus, devices_for_order, get_device
from device_inventory.crud.orders import (
    create_order,
    get_order,
    list_orders,
    orders_by_warehouse,
    restore_order,
    search_orders,
    soft_delete_order,
    unique_warehouses,
    update_order,
)
from device_inventory.services.events import OrderEventType
from device_inventory.services.order_ids import SequenceAllocator

# Ensure models are registered so metadata tables are created
from device_inventory.models import device as device_model  # noqa: F401
from device_inventory.models import order as order_model  # noqa: F401


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def _payload(**overrides):
    data = {
        "order_type": "Inward",
        "product": "Tablet",
        "model": "TB301FU",
        "quantity": 3,
        "warehouse": "Trichy",
        "sales_order": "SO-100",
        "deal_id": "D-1",
        "nucleus_id": "N-1",
        "school_name": "Springfield Elementary",
        "sd_card_size": "64GB",
        "profile_id": "P-9",
        "location": "Rack 4",
    }
    data.update(overrides)
    return data


def test_create_order_expands_into_devices(db_session):
    order = create_order(db_session, _payload(), allocator=SequenceAllocator())

    assert order.id == "ORD-000001"
    assert order.serial_numbers == ["NEW-TABTB-0001", "NEW-TABTB-0002", "NEW-TABTB-0003"]
    assert order.generated_serials == 1
    assert order.is_deleted == 0

    devices = devices_for_order(db_session, order.id)
    assert [d.serial_number for d in devices] == order.serial_numbers
    for device in devices:
        assert device.order_id == order.id
        assert device.warehouse == "Trichy"
        assert device.product == "Tablet"
        assert device.model == "TB301FU"
        assert device.school_name == "Springfield Elementary"
        assert device.sd_card_size == "64GB"
        assert device.status == "Available"
        assert device.created_at == order.created_at


def test_generated_identifiers_continue_across_orders(db_session):
    allocator = SequenceAllocator()
    first = create_order(db_session, _payload(), allocator=allocator)
    second = create_order(db_session, _payload(quantity=2, model="TB-8505F"), allocator=allocator)

    assert first.serial_numbers[-1] == "NEW-TABTB-0003"
    assert second.serial_numbers == ["NEW-TABTB-0004", "NEW-TABTB-0005"]
    assert len(set(first.serial_numbers) | set(second.serial_numbers)) == 5


def test_create_order_skips_ids_already_taken(db_session):
    create_order(db_session, _payload(quantity=1))
    again = create_order(db_session, _payload(quantity=1))
    assert again.id == "ORD-000002"


def test_supplied_serials_are_used_verbatim(db_session):
    order = create_order(
        db_session,
        _payload(quantity=3, serial_numbers=[" SN-1 ", "SN-2"], scanned_payload="SN-3\n"),
    )
    assert order.serial_numbers == ["SN-1", "SN-2", "SN-3"]
    assert order.generated_serials == 0
    assert get_device(db_session, "SN-3").order_id == order.id


def test_supplied_serial_collision_is_rejected(db_session):
    create_order(db_session, _payload(quantity=1, serial_numbers=["SN-1"]))

    with pytest.raises(DuplicateIdentifierError) as excinfo:
        create_order(db_session, _payload(quantity=2, serial_numbers=["SN-2", "SN-1"]))

    assert [(r.index, r.value, r.reason) for r in excinfo.value.rejections] == [(1, "SN-1", "already_exists")]
    assert len(list_orders(db_session)) == 1
    assert get_device(db_session, "SN-2") is None


def test_supplied_serial_count_must_match_quantity(db_session):
    with pytest.raises(ValidationError):
        create_order(db_session, _payload(quantity=2, serial_numbers=["SN-1"]))


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"quantity": 0}, "quantity"),
        ({"quantity": "abc"}, "quantity"),
        ({"warehouse": "Atlantis"}, "warehouse"),
        ({"product": "Phone"}, "product"),
        ({"model": 'Hyundai TV - 43"'}, "model"),
        ({"order_type": ""}, "order_type"),
    ],
)
def test_create_order_validation(db_session, overrides, field):
    with pytest.raises(ValidationError) as excinfo:
        create_order(db_session, _payload(**overrides))
    assert field in excinfo.value.details["fields"]
    assert list_orders(db_session, view="all") == []


def test_values_are_stored_in_catalog_spelling(db_session):
    order = create_order(db_session, _payload(order_type="outward", product="tablet", model="tb301fu", warehouse="trichy"))
    assert (order.order_type, order.product, order.model, order.warehouse) == ("Outward", "Tablet", "TB301FU", "Trichy")
    assert order.serial_numbers[0] == "OUT-TABTB-0001"
    assert devices_for_order(db_session, order.id)[0].status == "Assigned"


def test_tv_orders_drop_tablet_only_fields(db_session):
    order = create_order(db_session, _payload(product="TV", model='Xentec TV - 39"', quantity=1))
    assert order.sd_card_size is None
    assert order.profile_id is None
    device = devices_for_order(db_session, order.id)[0]
    assert device.sd_card_size is None
    assert device.profile_id is None


def test_soft_delete_and_restore_round_trip(db_session):
    order = create_order(db_session, _payload())
    before = [(d.serial_number, d.status, d.warehouse) for d in devices_for_order(db_session, order.id)]

    assert soft_delete_order(db_session, order.id) is True
    db_session.expire_all()
    assert get_order(db_session, order.id).is_deleted == 1
    assert all(d.is_deleted == 1 for d in devices_for_order(db_session, order.id))
    assert list_orders(db_session) == []
    assert [o.id for o in list_orders(db_session, view="deleted")] == [order.id]

    assert restore_order(db_session, order.id) is True
    db_session.expire_all()
    restored = get_order(db_session, order.id)
    assert restored.is_deleted == 0
    assert restored.deleted_at is None
    after = [(d.serial_number, d.status, d.warehouse) for d in devices_for_order(db_session, order.id)]
    assert after == before
    assert all(d.is_deleted == 0 for d in devices_for_order(db_session, order.id))


def test_missing_order_operations(db_session):
    assert get_order(db_session, "ORD-999999") is None
    assert soft_delete_order(db_session, "ORD-999999") is False
    assert restore_order(db_session, "ORD-999999") is False
    assert update_order(db_session, "ORD-999999", {"location": "x"}) is None


def test_update_copies_fields_onto_devices(db_session):
    order = create_order(db_session, _payload())
    updated = update_order(db_session, order.id, {"warehouse": "Jaipur", "school_name": "Shelbyville High"})

    assert updated.warehouse == "Jaipur"
    assert updated.serial_numbers == order.serial_numbers
    db_session.expire_all()
    for device in devices_for_order(db_session, order.id):
        assert device.warehouse == "Jaipur"
        assert device.school_name == "Shelbyville High"


def test_quantity_change_regenerates_devices(db_session):
    order = create_order(db_session, _payload(quantity=2))
    updated = update_order(db_session, order.id, {"quantity": 4})

    assert updated.quantity == 4
    assert len(updated.serial_numbers) == 4
    assert len(set(updated.serial_numbers)) == 4
    assert sorted(d.serial_number for d in devices_for_order(db_session, order.id)) == sorted(updated.serial_numbers)


def test_update_with_supplied_serials_replaces_devices(db_session):
    order = create_order(db_session, _payload(quantity=2))
    updated = update_order(db_session, order.id, {"serial_numbers": ["X-1", "X-2"]})

    assert updated.serial_numbers == ["X-1", "X-2"]
    assert updated.generated_serials == 0
    assert get_device(db_session, "NEW-TABTB-0001") is None
    assert get_device(db_session, "X-2").order_id == order.id


def test_search_orders_matches_ids_and_serials(db_session):
    first = create_order(db_session, _payload(sales_order="SO-ALPHA"))
    second = create_order(db_session, _payload(quantity=1, serial_numbers=["custom-serial"], school_name="Other"))

    assert [o.id for o in search_orders(db_session, "so-alpha")] == [first.id]
    assert [o.id for o in search_orders(db_session, "CUSTOM")] == [second.id]
    assert {o.id for o in search_orders(db_session, "  ")} == {first.id, second.id}
    assert search_orders(db_session, "nothing-matches") == []


def test_orders_by_warehouse(db_session):
    create_order(db_session, _payload(warehouse="Indore"))
    create_order(db_session, _payload(warehouse="Jaipur"))
    assert [o.warehouse for o in orders_by_warehouse(db_session, "Indore")] == ["Indore"]


def test_unique_warehouses_modes(db_session):
    create_order(db_session, _payload(warehouse="Kolkata"))
    create_order(db_session, _payload(warehouse="Bangalore"))

    catalog = unique_warehouses(db_session, mode="catalog")
    assert catalog == sorted(catalog)
    assert len(catalog) == 9
    assert unique_warehouses(db_session, mode="data") == ["Bangalore", "Kolkata"]
    with pytest.raises(ValidationError):
        unique_warehouses(db_session, mode="bogus")


def test_default_allocator_continues_after_highest_stored_id(db_session):
    create_order(db_session, _payload(quantity=1), allocator=SequenceAllocator(start=41))
    create_order(db_session, _payload(quantity=1), allocator=SequenceAllocator(start=9))

    assert create_order(db_session, _payload(quantity=1)).id == "ORD-000042"


def test_failed_cascade_is_not_committed_by_a_later_write(db_session):
    order = create_order(db_session, _payload())

    def broken_handler(db, event):
        raise RuntimeError("handler failed")

    bus = build_event_bus()
    bus.register_handler(OrderEventType.SOFT_DELETED, broken_handler)
    with pytest.raises(RuntimeError):
        soft_delete_order(db_session, order.id, bus=bus)

    create_order(db_session, _payload(quantity=1))
    db_session.expire_all()

    assert get_order(db_session, order.id).is_deleted == 0
    assert get_order(db_session, order.id).deleted_at is None
    assert all(d.is_deleted == 0 for d in devices_for_order(db_session, order.id))


def test_serial_collision_at_insert_rolls_back_order(db_session, monkeypatch):
    first = create_order(db_session, _payload(quantity=1, serial_numbers=["CLASH-1"]))
    # Let the serial through validation so the unique index has to catch it.
    monkeypatch.setattr(order_store, "existing_serials", lambda *args, **kwargs: set())

    with pytest.raises(PersistenceError) as excinfo:
        create_order(db_session, _payload(quantity=1, serial_numbers=["CLASH-1"]))

    assert excinfo.value.conflict is True
    assert isinstance(excinfo.value.__cause__, IntegrityError)
    assert [o.id for o in list_orders(db_session, view="all")] == [first.id]
    assert get_device(db_session, "CLASH-1").order_id == first.id


def test_database_failure_after_order_insert_rolls_back_both(db_session, monkeypatch):
    def failing_devices(db, order):
        raise OperationalError("INSERT INTO devices", {}, Exception("disk I/O error"))

    monkeypatch.setattr(order_store, "create_devices_for_order", failing_devices)

    with pytest.raises(PersistenceError) as excinfo:
        create_order(db_session, _payload())

    assert excinfo.value.conflict is False
    assert isinstance(excinfo.value.__cause__, OperationalError)
    assert list_orders(db_session, view="all") == []
    assert get_device(db_session, "NEW-TABTB-0001") is None
