import threading
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from swrfph.app.core.errors import InsufficientStockError, NotFoundError, ValidationError
from swrfph.app.db.models.models_v1 import Medicine, Notification, Order, OrderItem
from swrfph.app.db.models.core_types import NotificationType, OrderStatus
from swrfph.services import orders


def _stock(session_factory, medicine_id):
    with session_factory() as s:
        return s.get(Medicine, medicine_id).quantity


def _count(session_factory, model):
    with session_factory() as s:
        return s.execute(select(func.count()).select_from(model)).scalar_one()


def test_place_order_decrements_stock_and_prices_from_catalog(db_session, session_factory, provider, make_medicine):
    """
    GIVEN two medicines in stock
    WHEN a provider orders both
    THEN the order is PENDING, priced from the current catalog,
    and each stock goes down by the ordered quantity.
    """
    para = make_medicine("Paracetamol", price="2.50", quantity=10)
    amox = make_medicine("Amoxicillin", price="8.75", quantity=5)

    order = orders.place_order(db_session, user_id=provider.id, items=[(para.id, 4), (amox.id, 2)])

    assert order.status == OrderStatus.pending
    assert order.user_id == provider.id
    assert Decimal(order.total_price) == Decimal("27.50")
    assert {i.medicine_id: (i.quantity, Decimal(i.price)) for i in order.items} == {
        para.id: (4, Decimal("2.50")),
        amox.id: (2, Decimal("8.75")),
    }
    assert _stock(session_factory, para.id) == 6
    assert _stock(session_factory, amox.id) == 3


def test_duplicate_lines_are_merged(db_session, session_factory, provider, make_medicine):
    para = make_medicine("Paracetamol", price="1.00", quantity=10)

    order = orders.place_order(db_session, user_id=provider.id, items=[(para.id, 3), (para.id, 4)])

    assert len(order.items) == 1
    assert order.items[0].quantity == 7
    assert _stock(session_factory, para.id) == 3


def test_ordering_exactly_the_available_stock_leaves_zero(db_session, session_factory, provider, make_medicine):
    para = make_medicine("Paracetamol", quantity=5)

    orders.place_order(db_session, user_id=provider.id, items=[(para.id, 5)])

    assert _stock(session_factory, para.id) == 0


def test_insufficient_stock_rolls_back_everything(db_session, session_factory, provider, make_medicine):
    """
    GIVEN one medicine with enough stock and one without
    WHEN both are ordered together
    THEN nothing is written: no order, no items, no stock change.
    """
    para = make_medicine("Paracetamol", quantity=10)
    insulin = make_medicine("Insulin", quantity=1)

    with pytest.raises(InsufficientStockError) as excinfo:
        orders.place_order(db_session, user_id=provider.id, items=[(para.id, 2), (insulin.id, 3)])

    assert excinfo.value.available == 1
    assert excinfo.value.requested == 3
    assert "Insufficient stock for Insulin" in excinfo.value.message
    assert _count(session_factory, Order) == 0
    assert _count(session_factory, OrderItem) == 0
    assert _stock(session_factory, para.id) == 10
    assert _stock(session_factory, insulin.id) == 1


def test_unknown_medicine_is_not_found(db_session, session_factory, provider, make_medicine):
    para = make_medicine("Paracetamol", quantity=10)

    with pytest.raises(NotFoundError) as excinfo:
        orders.place_order(db_session, user_id=provider.id, items=[(para.id, 1), ("does-not-exist", 1)])

    assert excinfo.value.ids == ["does-not-exist"]
    assert _count(session_factory, Order) == 0
    assert _stock(session_factory, para.id) == 10


@pytest.mark.parametrize(
    "items",
    [
        [],
        [("", 1)],
    ],
)
def test_empty_or_blank_items_are_rejected(db_session, provider, items):
    with pytest.raises(ValidationError):
        orders.place_order(db_session, user_id=provider.id, items=items)


@pytest.mark.parametrize("quantity", [0, -3])
def test_non_positive_quantity_is_rejected(db_session, provider, make_medicine, quantity):
    para = make_medicine("Paracetamol", quantity=10)

    with pytest.raises(ValidationError):
        orders.place_order(db_session, user_id=provider.id, items=[(para.id, quantity)])


def test_unknown_user_is_not_found(db_session, make_medicine):
    para = make_medicine("Paracetamol", quantity=10)

    with pytest.raises(NotFoundError):
        orders.place_order(db_session, user_id="ghost", items=[(para.id, 1)])


def test_price_change_after_placement_keeps_captured_price(db_session, provider, make_medicine):
    para = make_medicine("Paracetamol", price="2.00", quantity=10)
    order = orders.place_order(db_session, user_id=provider.id, items=[(para.id, 2)])

    para.price = Decimal("9.99")
    db_session.commit()

    reloaded = orders.load_order(db_session, order.id)
    assert Decimal(reloaded.items[0].price) == Decimal("2.00")
    assert Decimal(reloaded.total_price) == Decimal("4.00")


def test_concurrent_orders_for_last_units_only_one_wins(session_factory, provider, make_medicine):
    """
    GIVEN 5 units left
    WHEN two providers order 5 units at the same time
    THEN exactly one order succeeds and stock ends at 0, never negative.
    """
    para = make_medicine("Paracetamol", quantity=5)
    medicine_id, user_id = para.id, provider.id

    barrier = threading.Barrier(2)
    results: list[object] = []
    lock = threading.Lock()

    def worker():
        db = session_factory()
        try:
            barrier.wait()
            try:
                order = orders.place_order(db, user_id=user_id, items=[(medicine_id, 5)])
                outcome: object = order.id
            except InsufficientStockError as exc:
                outcome = exc
            with lock:
                results.append(outcome)
        finally:
            db.close()

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    successes = [r for r in results if isinstance(r, str)]
    failures = [r for r in results if isinstance(r, InsufficientStockError)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert _stock(session_factory, medicine_id) == 0
    assert _count(session_factory, Order) == 1


def test_notify_order_placed_creates_order_and_low_stock_notifications(
    db_session, session_factory, provider, make_medicine
):
    para = make_medicine("Paracetamol", quantity=12)
    amox = make_medicine("Amoxicillin", quantity=500)
    order = orders.place_order(db_session, user_id=provider.id, items=[(para.id, 10), (amox.id, 1)])

    orders.notify_order_placed(session_factory, order.id, low_stock_threshold=50)

    rows = db_session.execute(select(Notification)).scalars().all()
    by_type = {}
    for n in rows:
        by_type.setdefault(n.type, []).append(n)
    assert len(by_type[NotificationType.order]) == 1
    assert by_type[NotificationType.order][0].user_id == provider.id
    # only Paracetamol fell under the threshold
    assert len(by_type[NotificationType.stock_alert]) == 1
    assert "Paracetamol" in by_type[NotificationType.stock_alert][0].details
    assert by_type[NotificationType.stock_alert][0].user_id is None


def test_notify_order_placed_swallows_missing_order(session_factory):
    orders.notify_order_placed(session_factory, "missing-order", low_stock_threshold=50)

    assert _count(session_factory, Notification) == 0


def test_update_status_notifies_owner_and_allows_any_transition(db_session, provider, make_medicine):
    para = make_medicine("Paracetamol", quantity=10)
    order = orders.place_order(db_session, user_id=provider.id, items=[(para.id, 1)])

    orders.update_order_status(db_session, order.id, OrderStatus.delivered)
    updated = orders.update_order_status(db_session, order.id, OrderStatus.pending)

    assert updated.status == OrderStatus.pending
    notes = db_session.execute(
        select(Notification).where(Notification.user_id == provider.id)
    ).scalars().all()
    assert len(notes) == 2


def test_order_stats_counts_by_status_and_delivered_revenue(db_session, provider, admin, make_medicine):
    para = make_medicine("Paracetamol", price="5.00", quantity=100)
    first = orders.place_order(db_session, user_id=provider.id, items=[(para.id, 2)])
    orders.place_order(db_session, user_id=provider.id, items=[(para.id, 1)])
    orders.update_order_status(db_session, first.id, OrderStatus.delivered)

    stats = orders.order_stats(db_session, user_id=provider.id)

    assert stats["total_orders"] == 2
    assert stats["pending_orders"] == 1
    assert stats["delivered_orders"] == 1
    assert stats["total_revenue"] == 10.0
    assert orders.order_stats(db_session, user_id=admin.id)["total_orders"] == 0


def test_get_order_is_scoped_to_owner(db_session, provider, make_user, make_medicine):
    other = make_user("other@test.local")
    para = make_medicine("Paracetamol", quantity=10)
    order = orders.place_order(db_session, user_id=provider.id, items=[(para.id, 1)])

    assert orders.get_order(db_session, order.id, user_id=provider.id).id == order.id
    with pytest.raises(NotFoundError):
        orders.get_order(db_session, order.id, user_id=other.id)


def test_past_orders_lists_only_finished(db_session, provider, make_medicine):
    para = make_medicine("Paracetamol", quantity=10)
    done = orders.place_order(db_session, user_id=provider.id, items=[(para.id, 1)])
    orders.place_order(db_session, user_id=provider.id, items=[(para.id, 1)])
    orders.update_order_status(db_session, done.id, OrderStatus.cancelled)

    page = orders.list_past_orders(db_session, user_id=provider.id)

    assert [o.id for o in page["data"]] == [done.id]
    assert page["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}
