"""Inventory ledger: the four stock primitives used by carts, checkout and orders.

Every call is a single-product read-check-write. The write goes through the
Product repository, whose version check rejects the save when another writer
persisted the product in between; the call is then retried on a fresh read.
"""

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.config import setting
from ordering.errors import ConcurrencyConflict, NotFound
from ordering.stock.product import Product

logger = structlog.get_logger(__name__)


class InventoryLedger:
    def __init__(self, max_attempts=None):
        self.max_attempts = max_attempts or setting("ledger_max_attempts")

    def product(self, product_id):
        try:
            return current_domain.repository_for(Product).get(product_id)
        except ObjectNotFoundError:
            raise NotFound("Product", product_id)

    def reserve(self, product_id, quantity):
        return self._write(product_id, "reserve", quantity, lambda product: product.reserve(quantity))

    def release(self, product_id, quantity):
        return self._write(product_id, "release", quantity, lambda product: product.release(quantity))

    def commit(self, product_id, quantity):
        return self._write(product_id, "commit", quantity, lambda product: product.commit(quantity))

    def restore(self, product_id, quantity):
        return self._write(product_id, "restore", quantity, lambda product: product.restore(quantity))

    def settle(self, product_id, quantity):
        """Turn a hold into a permanent deduction (shipment) in one write."""

        def _settle(product):
            product.release(quantity)
            product.commit(quantity)

        return self._write(product_id, "settle", quantity, _settle)

    def _write(self, product_id, operation, quantity, mutate):
        repo = current_domain.repository_for(Product)

        for attempt in range(1, self.max_attempts + 1):
            product = self.product(product_id)
            mutate(product)
            try:
                repo.add(product)
            except ExpectedVersionError:
                logger.warning(
                    "stock_write_conflict",
                    product_id=str(product_id),
                    operation=operation,
                    attempt=attempt,
                )
                continue

            logger.info(
                "stock_updated",
                product_id=str(product_id),
                operation=operation,
                quantity=quantity,
                total_stock=product.total_stock,
                sold_count=product.sold_count,
            )
            return product

        logger.error(
            "stock_write_abandoned",
            product_id=str(product_id),
            operation=operation,
            attempts=self.max_attempts,
        )
        raise ConcurrencyConflict("Product", product_id)
