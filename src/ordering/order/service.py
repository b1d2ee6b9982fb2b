"""Order service: placement, cancellation, status updates, tax recalculation and payments.

Collaborators (catalog store, tax and shipping policies, payment gateway) and
the business settings are injected at construction. Every mutating operation
holds the order's lock, plus the locks of the products whose stock it moves,
for the whole unit of work. The locks belong to the persistence provider, so
every service instance in the process shares them. Stock changes and the
claim on a cancellation are conditional writes in the storage, which keeps
them exact across processes on a relational database too.
"""

from collections.abc import Iterable
from dataclasses import dataclass

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.access import Requester
from ordering.catalogue.store import CatalogStore, RepositoryCatalogStore
from ordering.errors import (
    ForbiddenError,
    IllegalTransitionError,
    InsufficientStockError,
    NotAuthorizedError,
    NotFoundError,
    PaymentError,
)
from ordering.order.order import (
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PickupLocation,
    ShippingAddress,
    TaxRecalculation,
    parse_status,
)
from ordering.order.statistics import TaxRateSummary, summarize_by_tax_rate
from ordering.payments import get_gateway
from ordering.payments.port import PaymentGateway, PaymentOutcome, PaymentStatus, RefundOutcome
from ordering.pricing.resolver import OrderType, resolve_unit_price
from ordering.pricing.shipping import ConfiguredShippingPolicy, ShipmentMethod, ShippingPolicy
from ordering.pricing.tax import ConfiguredTaxPolicy, TaxPolicy, validate_tax_rate
from ordering.settings import OrderingSettings

logger = structlog.get_logger(__name__)

_ADDRESS_FIELDS = ("street", "city", "state", "postal_code", "country")
_PICKUP_FIELDS = ("name", "address")

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class DistributorOrderView:
    """An order as a distributor sees it: only their lines and what those add up to."""

    order: Order
    items: list[OrderItem]
    distributor_subtotal: float


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------
def _validate_lines(items) -> list[tuple[str, int]]:
    if not items:
        raise ValidationError({"items": ["No hay productos en la orden"]})

    lines = []
    for position, item in enumerate(items, start=1):
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        if not product_id:
            raise ValidationError({"items": [f"Falta el producto en la línea {position}"]})
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError({"quantity": [f"La cantidad mínima es 1 (línea {position})"]})
        lines.append((str(product_id), quantity))
    return lines


def _missing(payload, required: Iterable[str]) -> list[str]:
    payload = payload or {}
    return [name for name in required if not payload.get(name)]


def _validate_fulfillment(shipment_method, shipping_address, pickup_location):
    """Return the (ShippingAddress, PickupLocation) pair matching the shipment method."""
    if shipment_method == ShipmentMethod.DELIVERY.value:
        missing = _missing(shipping_address, _ADDRESS_FIELDS)
        if missing:
            message = "La dirección de envío es requerida para envíos a domicilio"
            if shipping_address:
                message = f"{message} (faltan: {', '.join(missing)})"
            raise ValidationError({"shipping_address": [message]})
        return ShippingAddress(**{name: shipping_address[name] for name in _ADDRESS_FIELDS}), None

    if shipment_method == ShipmentMethod.PICKUP.value:
        missing = _missing(pickup_location, _PICKUP_FIELDS)
        if missing:
            message = "La ubicación de retiro es requerida para retiro en tienda"
            if pickup_location:
                message = f"{message} (faltan: {', '.join(missing)})"
            raise ValidationError({"pickup_location": [message]})
        return None, PickupLocation(
            name=pickup_location["name"],
            address=pickup_location["address"],
            scheduled_date=pickup_location.get("scheduled_date"),
            notes=pickup_location.get("notes"),
        )

    raise ValidationError({"shipment_method": ["Método de envío inválido"]})


def _validate_choice(value, enum_cls, field: str, message: str):
    if value not in {member.value for member in enum_cls}:
        raise ValidationError({field: [message]})


def _quantities_by_product(lines: Iterable[tuple[str, int]]) -> dict[str, int]:
    """Total quantity per product, in first-seen order."""
    totals: dict[str, int] = {}
    for product_id, quantity in lines:
        totals[str(product_id)] = totals.get(str(product_id), 0) + quantity
    return totals


def _require_admin(requester: Requester):
    if not requester.is_admin:
        raise ForbiddenError(f"El rol {requester.role} no está autorizado para acceder a esta ruta")


class OrderService:
    def __init__(
        self,
        settings: OrderingSettings,
        catalog: CatalogStore | None = None,
        tax_policy: TaxPolicy | None = None,
        shipping_policy: ShippingPolicy | None = None,
        gateway: PaymentGateway | None = None,
    ):
        self.settings = settings
        self.catalog = catalog or RepositoryCatalogStore()
        self.tax_policy = tax_policy or ConfiguredTaxPolicy(settings.tax_rate)
        self.shipping_policy = shipping_policy or ConfiguredShippingPolicy(
            settings.free_shipping_threshold, settings.shipping_fee
        )
        self._gateway = gateway

    @property
    def gateway(self) -> PaymentGateway:
        return self._gateway or get_gateway()

    @property
    def _orders(self):
        return current_domain.repository_for(Order)

    def _load(self, order_id) -> Order:
        order = self._orders.find_by_id(order_id)
        if order is None:
            raise NotFoundError("Orden no encontrada")
        return order

    # -------------------------------------------------------------------
    # Placement
    # -------------------------------------------------------------------
    def place_order(
        self,
        requester: Requester,
        items,
        shipment_method,
        shipping_address=None,
        pickup_location=None,
        payment_method=PaymentMethod.WEBPAY.value,
        order_type=OrderType.B2C.value,
    ) -> Order:
        """Validate, price and reserve stock for a new order, then persist it as pending.

        Args:
            items: sequence of dicts with ``product_id`` and ``quantity``.
                   Any prices sent by the client are ignored.
            shipping_address: dict with street, city, state, postal_code and
                   country; required for delivery.
            pickup_location: dict with name, address and optional
                   scheduled_date and notes; required for pickup.

        Either the order is persisted with every line's stock reserved, or no
        stock changes at all.
        """
        lines = _validate_lines(items)
        address, location = _validate_fulfillment(shipment_method, shipping_address, pickup_location)
        _validate_choice(payment_method, PaymentMethod, "payment_method", "Método de pago inválido")
        _validate_choice(order_type, OrderType, "order_type", "Tipo de orden inválido")

        quantities = _quantities_by_product(lines)
        with self.catalog.hold(quantities):
            priced_lines = self._price_lines(lines, quantities, order_type)

            with UnitOfWork():
                reserved: list[tuple[str, int]] = []
                try:
                    for product_id, quantity in quantities.items():
                        if not self.catalog.decrement_stock_if_available(product_id, quantity):
                            product = self.catalog.find_by_id(product_id)
                            raise InsufficientStockError(
                                product.name if product else product_id,
                                product.stock_quantity if product else 0,
                                product_id=product_id,
                            )
                        reserved.append((product_id, quantity))

                    order = self._build_order(
                        requester, priced_lines, shipment_method, address, location, payment_method, order_type
                    )
                    self._orders.add(order)
                except Exception:
                    self._release(reserved)
                    raise

        logger.info(
            "Order placed",
            order_id=str(order.id),
            customer_id=requester.user_id,
            items_price=order.pricing.items_price,
            total_price=order.pricing.total_price,
        )
        return order

    def _price_lines(self, lines, quantities, order_type) -> list[dict]:
        """Look every product up, snapshot its unit price and check stock for the whole order."""
        products = {}
        for product_id in quantities:
            product = self.catalog.find_by_id(product_id)
            if product is None:
                raise NotFoundError(f"Producto no encontrado con ID: {product_id}")
            products[product_id] = product

        for product_id, quantity in quantities.items():
            product = products[product_id]
            if product.stock_quantity < quantity:
                logger.info(
                    "Order rejected for insufficient stock",
                    product_id=product_id,
                    requested=quantity,
                    available=product.stock_quantity,
                )
                raise InsufficientStockError(product.name, product.stock_quantity, product_id=product_id)

        return [
            {
                "product_id": product_id,
                "distributor_id": products[product_id].distributor_id,
                "name": products[product_id].name,
                "quantity": quantity,
                "unit_price": resolve_unit_price(products[product_id], order_type),
            }
            for product_id, quantity in lines
        ]

    def _build_order(self, requester, priced_lines, shipment_method, address, location, payment_method, order_type):
        items_price = sum(line["unit_price"] * line["quantity"] for line in priced_lines)
        tax_rate = self.tax_policy.get_current_rate()
        tax_price = self.tax_policy.calculate(items_price, tax_rate)
        shipping_price = self.shipping_policy.shipping_price(shipment_method, items_price)

        return Order.place(
            customer_id=requester.user_id,
            lines=priced_lines,
            shipment_method=shipment_method,
            tax_rate=tax_rate,
            tax_price=tax_price,
            shipping_price=shipping_price,
            payment_method=payment_method,
            order_type=order_type,
            shipping_address=address,
            pickup_location=location,
            currency=self.settings.currency,
        )

    def _release(self, quantities: Iterable[tuple[str, int]]):
        for product_id, quantity in quantities:
            self.catalog.increment_stock(product_id, quantity)
            logger.warning("Stock reservation compensated", product_id=product_id, quantity=quantity)

    # -------------------------------------------------------------------
    # Cancellation and status
    # -------------------------------------------------------------------
    def cancel_order(self, order_id, requester: Requester) -> Order:
        with self._orders.order_locks().hold([order_id]):
            order = self._load(order_id)
            if not requester.can_cancel(order):
                raise NotAuthorizedError("No está autorizado para cancelar esta orden")
            return self._cancel(order, requester)

    def _cancel(self, order: Order, requester: Requester) -> Order:
        quantities = _quantities_by_product((item.product_id, item.quantity) for item in order.items)
        with self.catalog.hold(quantities):
            with UnitOfWork():
                previous = order.status
                order.cancel(cancelled_by=requester.user_id)
                if not self._orders.claim_status(order.id, previous, order.status):
                    raise IllegalTransitionError("La orden fue modificada por otra operación; intente nuevamente")
                for product_id, quantity in quantities.items():
                    self.catalog.increment_stock(product_id, quantity)
                self._orders.add(order)

        logger.info("Order cancelled", order_id=str(order.id), cancelled_by=requester.user_id)
        return order

    def update_status(self, order_id, requester: Requester, status=None, is_paid=None) -> Order:
        """Admin-only status change. `is_paid=True` may ride along with or without a new status."""
        if not requester.is_admin:
            raise NotAuthorizedError("No está autorizado para actualizar el estado de la orden")
        if status is None and not is_paid:
            raise ValidationError({"status": ["Debe indicar un estado o marcar la orden como pagada"]})
        target = parse_status(status) if status is not None else None

        with self._orders.order_locks().hold([order_id]):
            order = self._load(order_id)
            previous = order.status
            if is_paid and OrderStatus.CANCELLED in (target, OrderStatus(previous)):
                raise IllegalTransitionError("No se puede marcar como pagada una orden cancelada")

            if target == OrderStatus.CANCELLED:
                order = self._cancel(order, requester)
            elif target is not None and target.value != previous:
                order.transition_to(target)

            if is_paid:
                order.mark_paid()
            self._orders.add(order)

        logger.info(
            "Order status updated",
            order_id=str(order.id),
            previous_status=previous,
            new_status=order.status,
            is_paid=order.is_paid,
        )
        return order

    # -------------------------------------------------------------------
    # Tax
    # -------------------------------------------------------------------
    def recalculate_tax(self, order_id, new_rate, requester: Requester) -> tuple[Order, TaxRecalculation]:
        if not requester.is_admin:
            raise NotAuthorizedError("No está autorizado para recalcular el IVA de esta orden")
        rate = validate_tax_rate(new_rate)

        with self._orders.order_locks().hold([order_id]):
            order = self._load(order_id)
            new_tax_price = self.tax_policy.calculate(order.pricing.items_price, rate)
            summary = order.recalculate_tax(rate, new_tax_price, actor_id=requester.user_id)
            self._orders.add(order)

        logger.info(
            "Order tax recalculated",
            order_id=str(order.id),
            previous_tax_rate=summary.previous_tax_rate,
            new_tax_rate=summary.new_tax_rate,
            total_price_change=summary.total_price_change,
            recalculated_by=requester.user_id,
        )
        return order, summary

    def tax_statistics(self, requester: Requester, start=None, end=None) -> list[TaxRateSummary]:
        _require_admin(requester)
        return summarize_by_tax_rate(self._orders.find_billable_between(start, end))

    # -------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------
    def pay_order(self, order_id, requester: Requester) -> tuple[Order, PaymentOutcome]:
        """Charge the order through the gateway. A declined payment is recorded, not raised."""
        with self._orders.order_locks().hold([order_id]):
            order = self._load(order_id)
            if not requester.can_cancel(order):
                raise NotAuthorizedError("No está autorizado para pagar esta orden")
            order.ensure_payable()

            outcome = self.gateway.process_payment(
                order_id=str(order.id),
                amount=order.pricing.total_price,
                currency=order.pricing.currency,
                payment_method=order.payment_method,
            )
            order.record_payment(outcome)
            self._orders.add(order)

        log = logger.info if outcome.success else logger.warning
        log(
            "Payment recorded",
            order_id=str(order.id),
            transaction_id=outcome.transaction_id,
            status=outcome.status,
        )
        return order, outcome

    def check_payment_status(self, order_id, requester: Requester) -> PaymentStatus:
        order = self.get_order(order_id, requester)
        latest = order.latest_payment
        if latest is None or not latest.transaction_id:
            raise PaymentError("La orden no tiene pagos registrados")
        return self.gateway.check_status(latest.transaction_id)

    def refund_payment(self, order_id, requester: Requester, amount=None, reason=None) -> tuple[Order, RefundOutcome]:
        if not requester.is_admin:
            raise NotAuthorizedError("No está autorizado para reembolsar esta orden")

        with self._orders.order_locks().hold([order_id]):
            order = self._load(order_id)
            payment = order.approved_payment
            if payment is None:
                raise PaymentError("La orden no tiene un pago aprobado para reembolsar")

            refundable = payment.amount - order.refunded_amount
            amount = refundable if amount is None else float(amount)
            if amount <= 0 or amount > refundable:
                raise ValidationError({"amount": [f"El monto a reembolsar debe estar entre 0 y {refundable:g}"]})

            outcome = self.gateway.process_refund(payment.transaction_id, amount=amount, reason=reason)
            if not outcome.success:
                raise PaymentError(outcome.message or "El reembolso fue rechazado")
            order.record_refund(payment.transaction_id, outcome, amount)
            self._orders.add(order)

        logger.info("Payment refunded", order_id=str(order.id), refund_id=outcome.refund_id, amount=amount)
        return order, outcome

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get_order(self, order_id, requester: Requester) -> Order:
        order = self._load(order_id)
        if not requester.can_view(order):
            raise NotAuthorizedError("No está autorizado para ver esta orden")
        return order

    def list_my_orders(self, requester: Requester) -> list[Order]:
        return self._orders.find_by_customer(requester.user_id)

    def list_orders(self, requester: Requester, page: int = 1, limit: int = 10) -> tuple[list[Order], int]:
        _require_admin(requester)
        if page < 1:
            raise ValidationError({"page": ["La página debe ser mayor o igual a 1"]})
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError({"limit": [f"El límite debe estar entre 1 y {MAX_PAGE_SIZE}"]})
        return self._orders.page(page, limit)

    def list_distributor_orders(self, requester: Requester) -> list[DistributorOrderView]:
        if not requester.is_distributor:
            raise ForbiddenError(f"El rol {requester.role} no está autorizado para acceder a esta ruta")

        views = []
        for order in self._orders.find_for_distributor(requester.user_id):
            items = order.items_for_distributor(requester.user_id)
            views.append(
                DistributorOrderView(
                    order=order,
                    items=items,
                    distributor_subtotal=sum(item.line_total for item in items),
                )
            )
        return views


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------
_current_service: OrderService | None = None


def get_order_service() -> OrderService:
    """Return the process-wide order service, building it from the active domain's settings."""
    global _current_service
    if _current_service is None:
        _current_service = OrderService(OrderingSettings.from_domain(current_domain))
    return _current_service


def set_order_service(service: OrderService) -> None:
    """Override the active order service (useful for tests)."""
    global _current_service
    _current_service = service


def reset_order_service() -> None:
    global _current_service
    _current_service = None
