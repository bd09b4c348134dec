"""Read side for orders: lookups, filtered listings and statistics."""

from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.errors import NotFound
from ordering.order.order import Order, OrderStatus
from ordering.order.totals import money

_BATCH = 500

_REVENUE_EXCLUDED = {OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value}


@dataclass
class OrderPage:
    orders: list
    total: int
    page: int
    limit: int

    @property
    def pages(self):
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


def get_order(order_id):
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        raise NotFound("Order", order_id)


def order_number_taken(order_number):
    repo = current_domain.repository_for(Order)
    return repo._dao.query.filter(order_number=order_number).all().total > 0


def _filtered(user_id=None, status=None, date_from=None, date_to=None):
    query = current_domain.repository_for(Order)._dao.query
    criteria = {}
    if user_id is not None:
        criteria["user_id"] = str(user_id)
    if status:
        criteria["status"] = status
    if date_from is not None:
        criteria["placed_at__gte"] = date_from
    if date_to is not None:
        criteria["placed_at__lte"] = date_to
    return query.filter(**criteria) if criteria else query


def list_orders(user_id=None, status=None, date_from=None, date_to=None, page=1, limit=10):
    """Newest first. ``user_id=None`` lists every user's orders."""
    repo = current_domain.repository_for(Order)
    result = (
        _filtered(user_id, status, date_from, date_to)
        .order_by("-placed_at")
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    orders = [repo.get(record.id) for record in result.items]
    return OrderPage(orders=orders, total=result.total, page=page, limit=limit)


def order_stats(user_id=None):
    """Counts and revenue; cancelled and refunded orders earn nothing."""
    query = _filtered(user_id)

    count = 0
    revenue = 0.0
    by_status = {status.value: 0 for status in OrderStatus}
    offset = 0
    while True:
        batch = query.limit(_BATCH).offset(offset).all().items
        for record in batch:
            count += 1
            by_status[record.status] += 1
            if record.status not in _REVENUE_EXCLUDED:
                revenue += record.total or 0.0
        if len(batch) < _BATCH:
            break
        offset += _BATCH

    earning = count - sum(by_status[s] for s in _REVENUE_EXCLUDED)
    return {
        "total_orders": count,
        "total_revenue": money(revenue),
        "average_order_value": money(revenue / earning) if earning else 0.0,
        "pending_orders": by_status[OrderStatus.PENDING.value],
        "completed_orders": by_status[OrderStatus.DELIVERED.value],
        "cancelled_orders": by_status[OrderStatus.CANCELLED.value],
        "by_status": by_status,
    }
