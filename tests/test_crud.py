import logging

import pytest
from sqlalchemy.exc import IntegrityError

from stock_service import crud, schemas
from stock_service.crud import UpdateOutcome


def make_items(*records):
    return [schemas.StockItemCreate(**record) for record in records]


def patch(**fields):
    return schemas.StockItemUpdate(**fields)


def test_batch_upsert_empty_is_noop(db_session, rows):
    crud.batch_upsert(db_session, [])

    assert rows() == {}


def test_batch_upsert_then_get_items_round_trip(db_session):
    items = make_items(
        {"sku": "A", "store": "S1", "quantity": 3},
        {"sku": "B", "store": "S1", "quantity": 0, "description": "empty shelf"},
        {"sku": "A", "store": "S2", "quantity": 8},
    )

    crud.batch_upsert(db_session, items)

    stored = {
        (item.store, item.sku): (item.quantity, item.description)
        for item in crud.get_items(db_session)
    }
    assert stored == {
        ("S1", "A"): (3, None),
        ("S1", "B"): (0, "empty shelf"),
        ("S2", "A"): (8, None),
    }


def test_get_items_empty(db_session):
    assert crud.get_items(db_session) == []


def test_batch_upsert_overwrites_existing_key(db_session, rows):
    crud.batch_upsert(db_session, make_items({"sku": "A", "store": "S", "quantity": 5}))
    crud.batch_upsert(db_session, make_items({"sku": "A", "store": "S", "quantity": 9, "description": "x"}))

    assert rows() == {("S", "A"): {"quantity": 9, "description": "x"}}


def test_batch_upsert_without_description_clears_it(db_session, rows):
    crud.batch_upsert(db_session, make_items({"sku": "A", "store": "S", "quantity": 5, "description": "old"}))
    crud.batch_upsert(db_session, make_items({"sku": "A", "store": "S", "quantity": 6}))

    assert rows() == {("S", "A"): {"quantity": 6, "description": None}}


def test_batch_upsert_is_idempotent(db_session, rows):
    items = make_items(
        {"sku": "A", "store": "S", "quantity": 1},
        {"sku": "B", "store": "S", "quantity": 2, "description": "two"},
    )

    crud.batch_upsert(db_session, items)
    once = rows()
    crud.batch_upsert(db_session, items)

    assert rows() == once


def test_batch_upsert_duplicate_keys_last_wins(db_session, rows):
    crud.batch_upsert(db_session, make_items(
        {"sku": "A", "store": "S", "quantity": 1},
        {"sku": "A", "store": "S", "quantity": 4, "description": "later"},
    ))

    assert rows() == {("S", "A"): {"quantity": 4, "description": "later"}}


def test_batch_upsert_spans_several_statements(db_session, monkeypatch):
    monkeypatch.setattr(crud, "UPSERT_CHUNK_SIZE", 2)
    items = make_items(*({"sku": f"SKU-{n}", "store": "S", "quantity": n} for n in range(5)))

    crud.batch_upsert(db_session, items)

    assert len(crud.get_items(db_session)) == 5


def test_batch_upsert_failure_applies_nothing(db_session, rows, monkeypatch):
    crud.batch_upsert(db_session, make_items({"sku": "A", "store": "S", "quantity": 1}))
    monkeypatch.setattr(crud, "UPSERT_CHUNK_SIZE", 1)
    # bypasses schema validation to hit the database check constraint on the second chunk
    bad = schemas.StockItemCreate.model_construct(sku="B", store="S", quantity=-1, description=None)
    good = schemas.StockItemCreate(sku="A", store="S", quantity=50)

    with pytest.raises(IntegrityError):
        crud.batch_upsert(db_session, [good, bad])

    assert rows() == {("S", "A"): {"quantity": 1, "description": None}}


def test_get_item(db_session):
    crud.batch_upsert(db_session, make_items({"sku": "A", "store": "S", "quantity": 1}))

    assert crud.get_item(db_session, "S", "A").quantity == 1
    assert crud.get_item(db_session, "S", "missing") is None


def test_update_item_quantity_only_keeps_description(db_session, rows):
    crud.batch_upsert(db_session, make_items({"sku": "A", "store": "S", "quantity": 1, "description": "keep"}))

    outcome = crud.update_item(db_session, "S", "A", patch(quantity=7))

    assert outcome is UpdateOutcome.UPDATED
    assert rows() == {("S", "A"): {"quantity": 7, "description": "keep"}}


def test_update_item_null_description_clears_it_and_keeps_quantity(db_session, rows):
    crud.batch_upsert(db_session, make_items({"sku": "A", "store": "S", "quantity": 3, "description": "gone"}))

    outcome = crud.update_item(db_session, "S", "A", patch(description=None))

    assert outcome is UpdateOutcome.UPDATED
    assert rows() == {("S", "A"): {"quantity": 3, "description": None}}


def test_update_item_both_fields(db_session, rows):
    crud.batch_upsert(db_session, make_items({"sku": "A", "store": "S", "quantity": 3}))

    crud.update_item(db_session, "S", "A", patch(quantity=0, description="sold out"))

    assert rows() == {("S", "A"): {"quantity": 0, "description": "sold out"}}


def test_update_item_empty_patch_touches_nothing(db_session, rows):
    crud.batch_upsert(db_session, make_items({"sku": "A", "store": "S", "quantity": 3, "description": "d"}))

    outcome = crud.update_item(db_session, "S", "A", patch())

    assert outcome is UpdateOutcome.NO_FIELDS_PROVIDED
    assert rows() == {("S", "A"): {"quantity": 3, "description": "d"}}


def test_update_item_empty_patch_on_missing_key_reports_no_fields(db_session):
    assert crud.update_item(db_session, "S", "missing", patch()) is UpdateOutcome.NO_FIELDS_PROVIDED


def test_update_item_missing_key(db_session, rows):
    crud.batch_upsert(db_session, make_items({"sku": "A", "store": "S", "quantity": 3}))

    outcome = crud.update_item(db_session, "OTHER", "A", patch(quantity=1))

    assert outcome is UpdateOutcome.NOT_FOUND
    assert rows() == {("S", "A"): {"quantity": 3, "description": None}}


def test_delete_item(db_session, rows):
    crud.batch_upsert(db_session, make_items(
        {"sku": "A", "store": "S", "quantity": 3},
        {"sku": "B", "store": "S", "quantity": 4},
    ))

    assert crud.delete_item(db_session, "S", "A") is True
    assert rows() == {("S", "B"): {"quantity": 4, "description": None}}


def test_delete_item_missing_key(db_session, rows):
    crud.batch_upsert(db_session, make_items({"sku": "A", "store": "S", "quantity": 3}))

    assert crud.delete_item(db_session, "S", "B") is False
    assert rows() == {("S", "A"): {"quantity": 3, "description": None}}


def test_upsert_chunk_fits_sqlite_parameter_limit():
    # four bound columns per row, 999 parameters in older SQLite builds
    assert crud.UPSERT_CHUNK_SIZE * 4 <= 999


def test_batch_upsert_unsupported_dialect(db_session, rows, monkeypatch):
    monkeypatch.setattr(crud, "_INSERT_BY_DIALECT", {})

    with pytest.raises(RuntimeError, match="sqlite"):
        crud.batch_upsert(db_session, make_items({"sku": "A", "store": "S", "quantity": 1}))

    assert rows() == {}


def test_reads_log_at_debug(db_session, caplog):
    crud.batch_upsert(db_session, make_items({"sku": "A", "store": "S", "quantity": 1}))

    with caplog.at_level(logging.DEBUG, logger="stock_service.crud"):
        crud.get_items(db_session)
        crud.get_item(db_session, "S", "missing")

    messages = [record.getMessage() for record in caplog.records if record.levelno == logging.DEBUG]
    assert "Fetched 1 stock items" in messages
    assert "No stock item for store 'S', SKU 'missing'" in messages
