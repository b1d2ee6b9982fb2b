"""Catalog store port and its repository-backed adapter.

The order service only ever touches stock through this interface.
"Decrement if available" is a single conditional write in the storage
itself, so two placements racing for the last units cannot both see the old
quantity, whether they run in one process or in several.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from contextlib import AbstractContextManager

import structlog
from protean.utils.globals import current_domain

from ordering.catalogue.product import Product

logger = structlog.get_logger(__name__)


class CatalogStore(ABC):
    """Product lookup and stock reservation as seen by the order service."""

    @abstractmethod
    def find_by_id(self, product_id) -> Product | None: ...

    @abstractmethod
    def decrement_stock_if_available(self, product_id, quantity: int) -> bool:
        """Remove `quantity` units when at least that many remain. Returns False otherwise."""
        ...

    @abstractmethod
    def increment_stock(self, product_id, quantity: int) -> None: ...

    @abstractmethod
    def hold(self, product_ids: Iterable) -> AbstractContextManager:
        """Keep other writers off the given products for the duration of a block."""
        ...


class RepositoryCatalogStore(CatalogStore):
    @property
    def _repository(self):
        return current_domain.repository_for(Product)

    def hold(self, product_ids):
        return self._repository.stock_locks().hold(str(product_id) for product_id in product_ids)

    def find_by_id(self, product_id):
        return self._repository.find_by_id(product_id)

    def decrement_stock_if_available(self, product_id, quantity):
        with self.hold([product_id]):
            if self._repository.decrement_stock_if_available(product_id, quantity):
                return True

        product = self.find_by_id(product_id)
        logger.info(
            "Stock reservation rejected",
            product_id=str(product_id),
            requested=quantity,
            available=product.stock_quantity if product else None,
        )
        return False

    def increment_stock(self, product_id, quantity):
        with self.hold([product_id]):
            released = self._repository.increment_stock(product_id, quantity)
        if not released:
            # Products are never deleted while orders reference them; a
            # missing one means the catalogue was reset underneath us.
            logger.warning("Stock release skipped for unknown product", product_id=str(product_id))
