"""Tests for order lookups, listings and statistics."""

from datetime import UTC, datetime, timedelta

import pytest
from ordering.errors import NotFound
from ordering.order.queries import get_order, list_orders, order_number_taken, order_stats
from ordering.order.workflow import OrderWorkflow


class TestLookups:
    def test_get_order(self, make_product, place_order):
        order = place_order("user-1", (make_product(), 1))
        assert get_order(order.id).order_number == order.order_number

    def test_get_unknown_order(self):
        with pytest.raises(NotFound):
            get_order("missing")

    def test_order_number_taken(self, make_product, place_order):
        order = place_order("user-1", (make_product(), 1))
        assert order_number_taken(order.order_number) is True
        assert order_number_taken("ORD00000000ZZZZ") is False


class TestListOrders:
    def test_lists_only_the_users_orders(self, make_product, place_order):
        product = make_product(total_stock=50)
        place_order("user-1", (product, 1))
        place_order("user-1", (product, 1))
        place_order("user-2", (product, 1))

        page = list_orders(user_id="user-1")

        assert page.total == 2
        assert {str(o.user_id) for o in page.orders} == {"user-1"}

    def test_all_users(self, make_product, place_order):
        product = make_product(total_stock=50)
        place_order("user-1", (product, 1))
        place_order("user-2", (product, 1))
        assert list_orders().total == 2

    def test_pagination(self, make_product, place_order):
        product = make_product(total_stock=50)
        for _ in range(5):
            place_order("user-1", (product, 1))

        first = list_orders(user_id="user-1", page=1, limit=2)
        last = list_orders(user_id="user-1", page=3, limit=2)

        assert first.total == 5
        assert first.pages == 3
        assert len(first.orders) == 2
        assert len(last.orders) == 1

    def test_status_filter(self, make_product, place_order):
        product = make_product(total_stock=50)
        keep = place_order("user-1", (product, 1))
        cancelled = place_order("user-1", (product, 1))
        OrderWorkflow().cancel(cancelled.id)

        page = list_orders(user_id="user-1", status="pending")

        assert page.total == 1
        assert page.orders[0].id == keep.id

    def test_date_filter(self, make_product, place_order):
        place_order("user-1", (make_product(), 1))
        now = datetime.now(UTC)

        assert list_orders(user_id="user-1", date_from=now - timedelta(hours=1)).total == 1
        assert list_orders(user_id="user-1", date_from=now + timedelta(hours=1)).total == 0
        assert list_orders(user_id="user-1", date_to=now - timedelta(hours=1)).total == 0


class TestOrderStats:
    def test_empty(self):
        stats = order_stats()
        assert stats["total_orders"] == 0
        assert stats["total_revenue"] == 0.0
        assert stats["average_order_value"] == 0.0

    def test_revenue_excludes_cancelled_orders(self, make_product, place_order):
        product = make_product(price=20.0, total_stock=50)
        first = place_order("user-1", (product, 1))
        second = place_order("user-1", (product, 2))
        cancelled = place_order("user-1", (product, 1))
        OrderWorkflow().cancel(cancelled.id)

        stats = order_stats(user_id="user-1")

        assert stats["total_orders"] == 3
        assert stats["pending_orders"] == 2
        assert stats["cancelled_orders"] == 1
        assert stats["total_revenue"] == round(first.total + second.total, 2)
        assert stats["average_order_value"] == round((first.total + second.total) / 2, 2)
        assert stats["by_status"]["cancelled"] == 1

    def test_completed_counts_delivered_orders(self, make_product, place_order):
        order = place_order("user-1", (make_product(), 1))
        workflow = OrderWorkflow()
        for status in ("confirmed", "processing", "shipped", "delivered"):
            workflow.change_status(order.id, status)

        assert order_stats()["completed_orders"] == 1
