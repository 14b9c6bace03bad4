"""Movement history queries: filters, inclusive date bounds, ordering and paging."""

from datetime import datetime

import pytest

from chemflo.models import StockMovement
from chemflo.services.movement_service import MovementStore
from chemflo.time_utils import parse_iso_datetime
from conftest import create_chemical


@pytest.fixture
def history(db_session, acids):
    """Two products with movements at fixed timestamps."""
    nitric = create_chemical("Nitric Acid", "7697-37-2", category=acids)
    acetic = create_chemical("Acetic Acid", "64-19-7", category=acids)

    rows = [
        (nitric.id, "IN", 100, datetime(2024, 1, 1, 10, 0)),
        (nitric.id, "OUT", 20, datetime(2024, 1, 15, 0, 0)),
        (acetic.id, "IN", 40, datetime(2024, 1, 15, 12, 30)),
        (nitric.id, "OUT", 5, datetime(2024, 2, 1, 9, 0)),
    ]
    for product_id, movement_type, quantity, created_at in rows:
        db_session.add(StockMovement(
            product_id=product_id,
            type=movement_type,
            quantity=quantity,
            created_at=created_at,
        ))
    db_session.commit()
    return nitric, acetic


def test_query_returns_newest_first(db_session, history):
    rows, total = MovementStore(db_session).query()

    assert total == 4
    assert [r.created_at for r in rows] == sorted((r.created_at for r in rows), reverse=True)
    assert rows[0].quantity == 5


def test_query_filters_by_product_and_type(db_session, history):
    nitric, _ = history
    store = MovementStore(db_session)

    rows, total = store.query(product_id=nitric.id, movement_type="OUT")

    assert total == 2
    assert {r.quantity for r in rows} == {20, 5}


def test_date_bounds_are_inclusive(db_session, history):
    store = MovementStore(db_session)

    rows, total = store.query(
        start_date=parse_iso_datetime("2024-01-01T10:00:00Z"),
        end_date=parse_iso_datetime("2024-01-15"),
    )

    # A date-only end bound means midnight: 2024-01-15 00:00 is in, 12:30 is out.
    assert total == 2
    assert {r.quantity for r in rows} == {100, 20}


def test_open_ended_date_range(db_session, history):
    store = MovementStore(db_session)

    _, after_total = store.query(start_date=datetime(2024, 1, 15))
    _, before_total = store.query(end_date=datetime(2024, 1, 14))

    assert after_total == 3
    assert before_total == 1


def test_pagination_slices_after_filtering(db_session, history):
    store = MovementStore(db_session)

    page1, total = store.query(page=1, limit=3)
    page2, _ = store.query(page=2, limit=3)

    assert total == 4
    assert len(page1) == 3
    assert len(page2) == 1
    assert {r.id for r in page1}.isdisjoint({r.id for r in page2})


def test_query_preloads_product_and_category(db_session, history):
    rows, _ = MovementStore(db_session).query(limit=1)

    data = rows[0].to_dict(include_product=True)

    assert data["product"]["name"] == "Nitric Acid"
    assert data["product"]["category"]["name"] == "Acids"
    assert data["createdAt"] == "2024-02-01T09:00:00Z"
