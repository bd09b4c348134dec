"""Order workflow: status transitions together with their stock side effects.

    → cancelled   release every reserved line (restore any committed one)
    → shipped     settle every reserved line: the hold becomes a deduction
    → returned    restore every committed line

Stock moves happen line by line through the ledger. If one line fails, the
lines already moved are moved back and the error is raised; the order keeps
its status. The same undo runs when the order itself cannot be saved.
"""

from uuid import uuid4

import structlog
from protean.exceptions import ExpectedVersionError, ValidationError
from protean.utils.globals import current_domain

from ordering.errors import ConcurrencyConflict, InvalidTransition
from ordering.order.order import (
    InventoryStatus,
    LineInventoryStatus,
    Order,
    OrderStatus,
)
from ordering.order.queries import get_order
from ordering.stock.ledger import InventoryLedger

logger = structlog.get_logger(__name__)


class OrderWorkflow:
    def __init__(self, ledger=None, payments=None):
        self.ledger = ledger or InventoryLedger()
        self.payments = payments

    # -------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------
    def change_status(self, order_id, new_status, note=None, actor=None):
        order = get_order(order_id)
        self._transition(order, new_status, note, actor)
        return order

    def cancel(self, order_id, reason=None, actor=None, as_staff=False):
        """Cancel an order.

        Owners may cancel while the order is pending or confirmed; staff may
        cancel from any status the transition table allows.
        """
        order = get_order(order_id)
        if not as_staff and not order.can_be_cancelled:
            raise InvalidTransition(order.status, OrderStatus.CANCELLED.value)

        self._transition(order, OrderStatus.CANCELLED.value, reason or "Order cancelled", actor)
        return order

    def add_tracking(self, order_id, carrier, tracking_number, tracking_url=None, estimated_delivery=None, actor=None):
        """Store tracking; an order still in processing ships with it."""
        order = get_order(order_id)
        order.add_tracking(carrier, tracking_number, tracking_url, estimated_delivery)

        if OrderStatus(order.status) == OrderStatus.PROCESSING:
            self._transition(order, OrderStatus.SHIPPED.value, f"Shipped via {carrier}", actor)
        else:
            self._save(order, undo=None)
        return order

    def refund(self, order_id, amount, reason=None, actor=None):
        order = get_order(order_id)

        refund_id = None
        if self.payments is not None and order.payment and order.payment.transaction_id:
            refund_id = self.payments.refund(order.payment.transaction_id, amount)
        order.process_refund(amount, reason=reason, refund_id=refund_id or f"re_{uuid4().hex[:24]}", actor=actor)

        self._save(order, undo=None)
        logger.info("order_refunded", order_id=str(order.id), amount=amount)
        return order

    # -------------------------------------------------------------------
    # Transition with stock side effects
    # -------------------------------------------------------------------
    def _transition(self, order, new_status, note, actor):
        if not order.can_transition_to(new_status):
            raise InvalidTransition(order.status, new_status)

        target = OrderStatus(new_status)
        undo = None
        if target == OrderStatus.CANCELLED:
            undo = self._release_lines(order)
        elif target == OrderStatus.SHIPPED:
            undo = self._settle_lines(order)
        elif target == OrderStatus.RETURNED:
            undo = self._restore_lines(order)

        previous = order.transition(new_status, note=note, actor=actor)
        self._save(order, undo)

        logger.info(
            "order_status_changed",
            order_id=str(order.id),
            order_number=order.order_number,
            previous_status=previous,
            status=order.status,
            inventory_status=order.inventory_status,
        )

    def _release_lines(self, order):
        committed = order.lines_in(LineInventoryStatus.COMMITTED.value)
        reserved = order.lines_in(LineInventoryStatus.RESERVED.value)

        restored = self._move(order, committed, self.ledger.restore, self.ledger.commit)
        try:
            released = self._move(order, reserved, self.ledger.release, self.ledger.reserve)
        except ValidationError:
            self._revert(order, restored, self.ledger.commit)
            raise

        order.mark_inventory(LineInventoryStatus.RESTORED.value, restored)
        order.mark_inventory(LineInventoryStatus.RELEASED.value, released)
        order.inventory_status = (
            InventoryStatus.RESTORED.value if restored and not released else InventoryStatus.RELEASED.value
        )

        def undo():
            self._revert(order, released, self.ledger.reserve)
            self._revert(order, restored, self.ledger.commit)

        return undo

    def _settle_lines(self, order):
        reserved = order.lines_in(LineInventoryStatus.RESERVED.value)
        settled = self._move(order, reserved, self.ledger.settle, self._unsettle)
        order.mark_inventory(LineInventoryStatus.COMMITTED.value, settled)

        def undo():
            self._revert(order, settled, self._unsettle)

        return undo

    def _restore_lines(self, order):
        committed = order.lines_in(LineInventoryStatus.COMMITTED.value)
        restored = self._move(order, committed, self.ledger.restore, self.ledger.commit)
        order.mark_inventory(LineInventoryStatus.RESTORED.value, restored)

        def undo():
            self._revert(order, restored, self.ledger.commit)

        return undo

    def _unsettle(self, product_id, quantity):
        self.ledger.restore(product_id, quantity)
        self.ledger.reserve(product_id, quantity)

    def _move(self, order, lines, step, undo_step):
        """Apply ``step`` to every line, or to none of them."""
        done = []
        try:
            for item in lines:
                step(item.product_id, item.quantity)
                done.append(item)
        except Exception as exc:
            logger.warning(
                "order_stock_move_failed",
                order_id=str(order.id),
                product_id=str(item.product_id),
                error=str(exc),
            )
            self._revert(order, done, undo_step)
            raise
        return done

    def _revert(self, order, lines, undo_step):
        for item in lines:
            try:
                undo_step(item.product_id, item.quantity)
            except Exception as exc:
                logger.error(
                    "order_stock_revert_failed",
                    order_id=str(order.id),
                    product_id=str(item.product_id),
                    quantity=item.quantity,
                    error=str(exc),
                )

    def _save(self, order, undo):
        try:
            current_domain.repository_for(Order).add(order)
        except ExpectedVersionError:
            if undo is not None:
                undo()
            raise ConcurrencyConflict("Order", order.id)
