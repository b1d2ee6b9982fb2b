from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain, current_uow
from sqlalchemy import update

from ordering.catalogue.product import Product
from ordering.domain import ordering
from ordering.utils.db import RDBMS_PROVIDERS
from ordering.utils.locks import KeyedLocks, storage_locks


@ordering.repository(part_of=Product)
class ProductRepository:
    def find_by_id(self, product_id):
        try:
            return self.get(str(product_id))
        except ObjectNotFoundError:
            return None

    def find_by_slug(self, slug):
        results = self._dao.query.filter(slug=slug).all().items
        return results[0] if results else None

    def next_available_slug(self, base_slug: str) -> str:
        """Return `base_slug`, or the first `base_slug-N` not yet taken."""
        slug, counter = base_slug, 1
        while self.find_by_slug(slug) is not None:
            slug = f"{base_slug}-{counter}"
            counter += 1
        return slug

    # -------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------
    def stock_locks(self) -> KeyedLocks:
        """Per-product locks of the provider this repository writes to."""
        return storage_locks(self._provider, "stock")

    @property
    def _is_relational(self) -> bool:
        return self._provider.conn_info["provider"] in RDBMS_PROVIDERS

    def decrement_stock_if_available(self, product_id, quantity: int) -> bool:
        """Take `quantity` units in one conditional write. False when fewer remain or the product is unknown.

        Relational providers run ``UPDATE ... WHERE stock_quantity >= quantity``
        and let the database serialize competing writers across processes.
        The memory provider lives in a single process; callers hold
        `stock_locks()` for the product around the read and the write.
        """
        if self._is_relational:
            return self._update_stock_in_place(product_id, -quantity)

        product = self.find_by_id(product_id)
        if product is None or product.stock_quantity < quantity:
            return False
        product.reserve_stock(quantity)
        self.add(product)
        return True

    def increment_stock(self, product_id, quantity: int) -> bool:
        """Put `quantity` units back. False when the product is unknown."""
        if self._is_relational:
            return self._update_stock_in_place(product_id, quantity)

        product = self.find_by_id(product_id)
        if product is None:
            return False
        product.release_stock(quantity)
        self.add(product)
        return True

    def _update_stock_in_place(self, product_id, delta: int) -> bool:
        dao = self._dao
        model = dao.database_model_cls
        statement = (
            update(model)
            .where(model.id == str(product_id))
            .values(
                stock_quantity=model.stock_quantity + delta,
                _version=model._version + 1,
                updated_at=datetime.now(UTC),
            )
        )
        if delta < 0:
            statement = statement.where(model.stock_quantity >= -delta)

        session = dao._get_session()
        result = session.execute(statement)
        if not current_uow:
            session.commit()
            session.close()
        return result.rowcount == 1


def resolve_product(reference):
    """Look a product up by id first, then by slug. Returns None when neither matches."""
    repo = current_domain.repository_for(Product)
    return repo.find_by_id(reference) or repo.find_by_slug(reference)
