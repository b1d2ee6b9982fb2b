from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_uow
from sqlalchemy import update

from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus
from ordering.utils.db import RDBMS_PROVIDERS
from ordering.utils.locks import KeyedLocks, storage_locks

# Upper bound for unpaginated reads; the query builder applies a small default otherwise.
_MAX_ROWS = 10_000


def _aware(value):
    return value if value.tzinfo else value.replace(tzinfo=UTC)


@ordering.repository(part_of=Order)
class OrderRepository:
    def find_by_id(self, order_id):
        try:
            return self.get(str(order_id))
        except ObjectNotFoundError:
            return None

    def find_by_customer(self, customer_id):
        """The customer's orders, newest first."""
        return (
            self._dao.query.filter(customer_id=str(customer_id)).order_by("-created_at").limit(_MAX_ROWS).all().items
        )

    def page(self, page: int, limit: int):
        """One page of all orders, newest first. Returns (orders, total)."""
        result = self._dao.query.order_by("-created_at").offset((page - 1) * limit).limit(limit).all()
        return result.items, result.total

    def find_for_distributor(self, distributor_id):
        """Orders containing at least one line supplied by `distributor_id`, newest first."""
        orders = self._dao.query.order_by("-created_at").limit(_MAX_ROWS).all().items
        return [order for order in orders if order.items_for_distributor(distributor_id)]

    def find_billable_between(self, start=None, end=None):
        """Non-cancelled orders placed within [start, end]."""
        orders = self._dao.query.limit(_MAX_ROWS).all().items
        return [
            order
            for order in orders
            if order.status != OrderStatus.CANCELLED.value
            and (start is None or _aware(order.created_at) >= _aware(start))
            and (end is None or _aware(order.created_at) <= _aware(end))
        ]

    def order_locks(self) -> KeyedLocks:
        """Per-order locks of the provider this repository writes to."""
        return storage_locks(self._provider, "orders")

    def claim_status(self, order_id, expected: str, new: str) -> bool:
        """Move the stored order from `expected` to `new` status, only if nobody moved it first.

        On relational providers this is a conditional ``UPDATE`` inside the
        caller's unit of work, so a second writer in another process blocks on
        the row and then finds the status changed. On the memory provider the
        caller holds `order_locks()` and the stored status is re-read.
        """
        if self._provider.conn_info["provider"] not in RDBMS_PROVIDERS:
            stored = self.find_by_id(order_id)
            return stored is not None and stored.status == expected

        dao = self._dao
        model = dao.database_model_cls
        session = dao._get_session()
        result = session.execute(
            update(model)
            .where(model.id == str(order_id), model.status == expected)
            .values(status=new, updated_at=datetime.now(UTC))
        )
        if not current_uow:
            session.commit()
            session.close()
        return result.rowcount == 1
