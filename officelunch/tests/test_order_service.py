"""
下单流程测试
"""

from decimal import Decimal

import duckdb
import pytest

from ..core.exceptions import (
    IneligibleItemsError,
    ItemUnavailableError,
    MultiRestaurantCartError,
    PaymentNotConfirmedError,
    PersistenceError,
    ProfileIncompleteError,
    SelectionIncompleteError,
    StateConflictError,
    TotalsMismatchError,
)
from ..models.order import OrderTotals
from ..schemas.checkout import CartItemRequest
from ..schemas.location import BuildingUpdateRequest
from ..schemas.lunchbox import LunchboxUpdateRequest
from ..schemas.order import OrderCreateRequest
from ..services.cart_service import CartStore, cart_service
from ..services.location_service import location_service
from ..services.lunchbox_service import lunchbox_service
from ..services.order_service import order_service


def count(db, table, where="", params=None):
    query = f"SELECT COUNT(*) AS n FROM {table}"
    if where:
        query += f" WHERE {where}"
    return db.fetch_one(query, params)["n"]


class TestCreateOrder:
    """订单创建测试"""

    def test_create_order_success(self, test_db, seed, place_order):
        """测试成功创建订单"""
        order = place_order()

        assert order.order_number >= 1001
        assert order.status == "pending"
        assert order.customer_id == seed.customer.id
        assert order.restaurant_id == seed.restaurant_x.id
        assert order.subtotal == Decimal("25.50")
        assert order.delivery_fee == Decimal("2.99")
        assert order.service_fee == Decimal("1.50")
        assert order.tax == Decimal("2.55")
        assert order.total == Decimal("32.54")
        assert order.delivery_location == "科技园"
        assert order.delivery_building_id == seed.building_a.id
        assert order.delivery_day == "monday"

        assert count(test_db, "orders") == 1
        assert count(test_db, "order_items", "order_id = ?", [order.id]) == 2
        quantities = {item.lunchbox_id: item.quantity for item in order.items}
        assert quantities == {seed.lunchbox_a.id: 2, seed.lunchbox_b.id: 1}

        # 所有明细都属于订单所在餐厅
        lunchboxes = lunchbox_service.get_many(quantities)
        assert {lb.restaurant_id for lb in lunchboxes.values()} == {order.restaurant_id}

    def test_order_numbers_are_monotonic(self, seed, place_order):
        first = place_order()
        second = place_order(customer=seed.other_customer)
        assert second.order_number == first.order_number + 1

    def test_audit_log_written(self, test_db, seed, place_order):
        order = place_order()
        assert count(test_db, "logs", "action = 'order_create' AND user_id = ?", [seed.customer.id]) == 1
        assert order.id

    def test_cart_cleared_after_order(self, seed, order_request):
        store = CartStore(enforce_single_restaurant=False)
        session = store.session("session-1", seed.customer.id)
        cart_service.add_item(session.cart, seed.lunchbox_a.id)

        order_service.create_order(
            seed.customer, order_request(), cart_store=store, cart_session_id="session-1"
        )
        assert "session-1" not in store
        assert store.session("session-1", seed.customer.id).cart.is_empty

    def test_prices_snapshot_on_items(self, seed, place_order):
        order = place_order()
        lunchbox_service.update_lunchbox(
            seed.owner_x, seed.lunchbox_a.id, LunchboxUpdateRequest(price=Decimal("12.00"))
        )
        reloaded = order_service.get_order(seed.customer, order.id)
        prices = {item.lunchbox_id: item.price for item in reloaded.items}
        assert prices[seed.lunchbox_a.id] == Decimal("10.00")
        assert reloaded.total == Decimal("32.54")


class TestCreateOrderPreconditions:
    """下单前置条件测试，失败时不留下任何数据"""

    @pytest.mark.parametrize("full_name,phone", [("", "13800000009"), ("赵六", ""), ("  ", "138"), ("赵六", "   ")])
    def test_profile_incomplete(self, test_db, seed, order_request, full_name, phone):
        seed.customer.full_name = full_name
        seed.customer.phone_number = phone
        with pytest.raises(ProfileIncompleteError):
            order_service.create_order(seed.customer, order_request())
        assert count(test_db, "orders") == 0

    def test_profile_incomplete_customer_fixture(self, test_db, seed, order_request):
        with pytest.raises(ProfileIncompleteError) as exc_info:
            order_service.create_order(
                seed.incomplete_customer, order_request(customer=seed.incomplete_customer)
            )
        assert exc_info.value.details["missing_fields"] == ["phone_number"]

    def test_multi_restaurant_cart(self, test_db, seed, order_request):
        request = order_request(items=[
            CartItemRequest(lunchbox_id=seed.lunchbox_a.id),
            CartItemRequest(lunchbox_id=seed.lunchbox_c.id),
        ])
        with pytest.raises(MultiRestaurantCartError):
            order_service.create_order(seed.customer, request)
        assert count(test_db, "orders") == 0

    def test_items_from_other_restaurant_than_requested(self, test_db, seed, order_request):
        request = order_request(restaurant_id=seed.restaurant_y.id)
        with pytest.raises(MultiRestaurantCartError):
            order_service.create_order(seed.customer, request)

    def test_ineligible_building(self, test_db, seed, order_request):
        request = order_request(building_id=seed.building_b.id)
        with pytest.raises(IneligibleItemsError) as exc_info:
            order_service.create_order(seed.customer, request)
        ids = [item["lunchbox_id"] for item in exc_info.value.details["ineligible_items"]]
        assert ids == [seed.lunchbox_b.id]
        assert count(test_db, "orders") == 0

    def test_ineligible_day(self, seed, order_request):
        with pytest.raises(IneligibleItemsError):
            order_service.create_order(seed.customer, order_request(day="tuesday"))

    def test_selection_incomplete(self, seed, order_request):
        with pytest.raises(SelectionIncompleteError):
            order_service.create_order(seed.customer, order_request(day=None))

    def test_unavailable_item(self, seed):
        request = OrderCreateRequest(
            restaurant_id=seed.restaurant_x.id,
            items=[CartItemRequest(lunchbox_id=seed.lunchbox_d.id)],
            delivery_building_id=seed.building_a.id,
            delivery_day="monday",
            payment_intent_id="pi_any",
        )
        with pytest.raises(ItemUnavailableError):
            order_service.create_order(seed.customer, request)

    def test_payment_not_confirmed(self, test_db, seed, order_request):
        with pytest.raises(PaymentNotConfirmedError):
            order_service.create_order(seed.customer, order_request(confirm=False))
        assert count(test_db, "orders") == 0

    def test_payment_missing(self, seed, order_request):
        with pytest.raises(PaymentNotConfirmedError):
            order_service.create_order(seed.customer, order_request(payment_intent_id=None))

    def test_payment_for_different_amount(self, seed, order_request, pay):
        request = order_request(payment_intent_id=pay(Decimal("30.00"), seed.customer.id))
        with pytest.raises(PaymentNotConfirmedError):
            order_service.create_order(seed.customer, request)

    def test_client_totals_mismatch(self, seed, order_request):
        stale = OrderTotals(
            subtotal=Decimal("25.50"), delivery_fee=Decimal("2.99"),
            service_fee=Decimal("1.50"), tax=Decimal("2.55"), total=Decimal("30.00"),
        )
        with pytest.raises(TotalsMismatchError):
            order_service.create_order(seed.customer, order_request(totals=stale))

    def test_client_totals_match(self, seed, order_request):
        current = OrderTotals(
            subtotal=Decimal("25.50"), delivery_fee=Decimal("2.99"),
            service_fee=Decimal("1.50"), tax=Decimal("2.55"), total=Decimal("32.54"),
        )
        order = order_service.create_order(seed.customer, order_request(totals=current))
        assert order.total == Decimal("32.54")

    def test_price_change_after_payment_is_detected(self, test_db, seed, order_request):
        """支付后菜单价格变化，服务端重新计价与授权金额不符"""
        request = order_request()
        lunchbox_service.update_lunchbox(
            seed.owner_x, seed.lunchbox_a.id, LunchboxUpdateRequest(price=Decimal("11.00"))
        )
        with pytest.raises(PaymentNotConfirmedError):
            order_service.create_order(seed.customer, request)
        assert count(test_db, "orders") == 0

    def test_item_delisted_after_cart(self, seed, order_request):
        request = order_request()
        lunchbox_service.update_lunchbox(
            seed.owner_x, seed.lunchbox_b.id, LunchboxUpdateRequest(is_available=False)
        )
        with pytest.raises(ItemUnavailableError):
            order_service.create_order(seed.customer, request)

    def test_inactive_building_rejected(self, seed, order_request):
        request = order_request()
        location_service.update_building(
            seed.admin, seed.building_a.id, BuildingUpdateRequest(is_active=False)
        )
        with pytest.raises(StateConflictError) as exc_info:
            order_service.create_order(seed.customer, request)
        assert exc_info.value.error_code == "BUILDING_OUT_OF_RANGE"


class TestCreateOrderIdempotency:
    """同一支付意向重复提交测试"""

    def test_resubmission_returns_existing_order(self, test_db, seed, order_request):
        request = order_request()
        first = order_service.create_order(seed.customer, request)
        second = order_service.create_order(seed.customer, request)

        assert second.id == first.id
        assert second.order_number == first.order_number
        assert count(test_db, "orders") == 1

    def test_other_customer_cannot_reuse_payment(self, test_db, seed, order_request):
        request = order_request()
        order_service.create_order(seed.customer, request)
        with pytest.raises(PaymentNotConfirmedError):
            order_service.create_order(seed.other_customer, request)
        assert count(test_db, "orders") == 1

    def test_other_customer_cannot_use_unspent_payment(self, test_db, seed, order_request):
        """他人已确认但尚未下单的支付不能被冒用"""
        request = order_request(customer=seed.customer)
        with pytest.raises(PaymentNotConfirmedError):
            order_service.create_order(seed.other_customer, request)
        assert count(test_db, "orders") == 0

        # 付款人本人仍可正常下单
        order = order_service.create_order(seed.customer, request)
        assert order.customer_id == seed.customer.id


class TestCreateOrderAtomicity:
    """订单与明细原子写入测试"""

    def test_item_insert_failure_rolls_back_order(self, test_db, seed, order_request, monkeypatch):
        request = order_request()

        def boom(conn, order_id, lines):
            raise RuntimeError("disk full")

        monkeypatch.setattr(order_service, "_insert_items", boom)

        with pytest.raises(PersistenceError):
            order_service.create_order(seed.customer, request)

        assert count(test_db, "orders") == 0
        assert count(test_db, "order_items") == 0
        assert count(test_db, "logs", "action = 'order_create'") == 0

    def test_partial_item_failure_rolls_back(self, test_db, seed, order_request, monkeypatch):
        request = order_request()
        original = order_service._insert_items

        def first_line_only(conn, order_id, lines):
            original(conn, order_id, lines[:1])
            raise RuntimeError("constraint violated")

        monkeypatch.setattr(order_service, "_insert_items", first_line_only)

        with pytest.raises(PersistenceError):
            order_service.create_order(seed.customer, request)
        assert count(test_db, "orders") == 0
        assert count(test_db, "order_items") == 0

    def test_transient_failure_retried_as_one_unit(self, test_db, seed, order_request, monkeypatch):
        request = order_request()
        original = order_service._insert_items
        attempts = []

        def flaky(conn, order_id, lines):
            attempts.append(order_id)
            if len(attempts) == 1:
                raise duckdb.IOException("connection reset by peer")
            original(conn, order_id, lines)

        monkeypatch.setattr(order_service, "_insert_items", flaky)

        order = order_service.create_order(seed.customer, request)
        assert len(attempts) == 2
        assert count(test_db, "orders") == 1
        assert count(test_db, "order_items") == 2
        assert len(order.items) == 2
