"""FastAPI routes for the Ordering domain: orders, products and runtime configuration."""

import math
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request

from ordering.access import Requester, Role
from ordering.api.deps import get_requester, order_service, require_roles
from ordering.api.schemas import (
    DistributorOrderResponse,
    OrderResponse,
    PaymentResultResponse,
    PaymentStatusResponse,
    PlaceOrderRequest,
    ProductResponse,
    RecalculateTaxRequest,
    RefundRequest,
    RefundResultResponse,
    RegisterProductRequest,
    RestockRequest,
    ShippingConfigRequest,
    ShippingConfigResponse,
    TaxRateRequest,
    TaxRateResponse,
    TaxRecalculationResponse,
    TaxStatisticResponse,
    UpdatePricingRequest,
    UpdateStatusRequest,
    envelope,
)
from ordering.catalogue.service import CatalogueService
from ordering.order.service import OrderService

# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201)
async def place_order(
    body: PlaceOrderRequest,
    requester: Requester = Depends(get_requester),
    service: OrderService = Depends(order_service),
):
    order = service.place_order(
        requester,
        items=[line.model_dump() for line in body.items],
        shipment_method=body.shipment_method,
        shipping_address=body.shipping_address.model_dump() if body.shipping_address else None,
        pickup_location=body.pickup_location.model_dump() if body.pickup_location else None,
        payment_method=body.payment_method,
        order_type=body.order_type,
    )
    return envelope(OrderResponse.from_order(order))


@order_router.get("/my-orders")
async def list_my_orders(
    requester: Requester = Depends(get_requester),
    service: OrderService = Depends(order_service),
):
    orders = service.list_my_orders(requester)
    return envelope([OrderResponse.from_order(order) for order in orders], count=len(orders))


@order_router.get("/distributor-orders")
async def list_distributor_orders(
    requester: Requester = Depends(require_roles(Role.DISTRIBUTOR)),
    service: OrderService = Depends(order_service),
):
    views = service.list_distributor_orders(requester)
    return envelope([DistributorOrderResponse.from_view(view) for view in views], count=len(views))


@order_router.get("/tax-statistics")
async def tax_statistics(
    start: datetime | None = None,
    end: datetime | None = None,
    requester: Requester = Depends(require_roles(Role.ADMIN)),
    service: OrderService = Depends(order_service),
):
    summaries = service.tax_statistics(requester, start=start, end=end)
    return envelope(
        [
            TaxStatisticResponse(
                tax_rate=summary.tax_rate,
                order_count=summary.order_count,
                total_tax_collected=summary.total_tax_collected,
                total_order_value=summary.total_order_value,
                average_order_value=summary.average_order_value,
            )
            for summary in summaries
        ],
        count=len(summaries),
    )


@order_router.get("")
async def list_orders(
    page: int = Query(default=1),
    limit: int = Query(default=10),
    requester: Requester = Depends(require_roles(Role.ADMIN)),
    service: OrderService = Depends(order_service),
):
    orders, total = service.list_orders(requester, page=page, limit=limit)
    return envelope(
        [OrderResponse.from_order(order) for order in orders],
        count=len(orders),
        pagination={"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    )


@order_router.get("/{order_id}")
async def get_order(
    order_id: str,
    requester: Requester = Depends(get_requester),
    service: OrderService = Depends(order_service),
):
    return envelope(OrderResponse.from_order(service.get_order(order_id, requester)))


@order_router.put("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    requester: Requester = Depends(get_requester),
    service: OrderService = Depends(order_service),
):
    return envelope(OrderResponse.from_order(service.cancel_order(order_id, requester)))


@order_router.put("/{order_id}/status")
async def update_order_status(
    order_id: str,
    body: UpdateStatusRequest,
    requester: Requester = Depends(get_requester),
    service: OrderService = Depends(order_service),
):
    order = service.update_status(order_id, requester, status=body.status, is_paid=body.is_paid)
    return envelope(OrderResponse.from_order(order))


@order_router.put("/{order_id}/tax")
async def recalculate_order_tax(
    order_id: str,
    body: RecalculateTaxRequest,
    requester: Requester = Depends(require_roles(Role.ADMIN)),
    service: OrderService = Depends(order_service),
):
    order, summary = service.recalculate_tax(order_id, body.tax_rate, requester)
    return envelope(
        TaxRecalculationResponse(
            previous_tax_rate=summary.previous_tax_rate,
            new_tax_rate=summary.new_tax_rate,
            previous_tax_price=summary.previous_tax_price,
            new_tax_price=summary.new_tax_price,
            total_price_change=summary.total_price_change,
            order=OrderResponse.from_order(order),
        )
    )


# The payment routes are plain functions so FastAPI runs them in its threadpool:
# the gateway blocks while it talks to the acquirer.
@order_router.post("/{order_id}/payment")
def pay_order(
    order_id: str,
    request: Request,
    requester: Requester = Depends(get_requester),
    service: OrderService = Depends(order_service),
):
    with request.app.state.domain.domain_context():
        order, outcome = service.pay_order(order_id, requester)
        return envelope(
            PaymentResultResponse(
                success=outcome.success,
                status=outcome.status,
                transaction_id=outcome.transaction_id,
                authorization_code=outcome.authorization_code,
                message=outcome.message,
                order=OrderResponse.from_order(order),
            )
        )


@order_router.get("/{order_id}/payment")
def get_payment_status(
    order_id: str,
    request: Request,
    requester: Requester = Depends(get_requester),
    service: OrderService = Depends(order_service),
):
    with request.app.state.domain.domain_context():
        status = service.check_payment_status(order_id, requester)
    return envelope(
        PaymentStatusResponse(transaction_id=status.transaction_id, status=status.status, message=status.message)
    )


@order_router.post("/{order_id}/payment/refund")
def refund_payment(
    order_id: str,
    body: RefundRequest,
    request: Request,
    requester: Requester = Depends(require_roles(Role.ADMIN)),
    service: OrderService = Depends(order_service),
):
    with request.app.state.domain.domain_context():
        order, outcome = service.refund_payment(order_id, requester, amount=body.amount, reason=body.reason)
        refund = next(record for record in order.refunds if record.refund_id == outcome.refund_id)
        return envelope(
            RefundResultResponse(
                refund_id=outcome.refund_id,
                status=outcome.status,
                amount=refund.amount,
                order=OrderResponse.from_order(order),
            )
        )


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201)
async def register_product(
    body: RegisterProductRequest,
    requester: Requester = Depends(require_roles(Role.ADMIN, Role.DISTRIBUTOR)),
):
    product = CatalogueService().register_product(requester, **body.model_dump())
    return envelope(ProductResponse.from_product(product))


@product_router.get("/{reference}")
async def get_product(reference: str):
    return envelope(ProductResponse.from_product(CatalogueService().get_product(reference)))


@product_router.put("/{reference}/pricing")
async def update_product_pricing(
    reference: str,
    body: UpdatePricingRequest,
    requester: Requester = Depends(require_roles(Role.ADMIN, Role.DISTRIBUTOR)),
):
    product = CatalogueService().update_pricing(
        reference, requester, price=body.price, wholesale_price=body.wholesale_price
    )
    return envelope(ProductResponse.from_product(product))


@product_router.put("/{reference}/stock")
async def restock_product(
    reference: str,
    body: RestockRequest,
    requester: Requester = Depends(require_roles(Role.ADMIN, Role.DISTRIBUTOR)),
):
    product = CatalogueService().restock(reference, requester, quantity=body.quantity)
    return envelope(ProductResponse.from_product(product))


# ---------------------------------------------------------------------------
# System Configuration Router
# ---------------------------------------------------------------------------
config_router = APIRouter(prefix="/system-config", tags=["system-config"])


def _tax_rate_response(rate: float) -> TaxRateResponse:
    return TaxRateResponse(tax_rate=rate, percentage=f"{rate:g}%")


def _shipping_response(service: OrderService) -> ShippingConfigResponse:
    return ShippingConfigResponse(
        free_shipping_threshold=service.shipping_policy.free_shipping_threshold,
        shipping_fee=service.shipping_policy.shipping_fee,
        currency=service.settings.currency,
    )


@config_router.get("/tax/rate")
async def get_tax_rate(service: OrderService = Depends(order_service)):
    return envelope(_tax_rate_response(service.tax_policy.get_current_rate()))


@config_router.put("/tax/rate")
async def set_tax_rate(
    body: TaxRateRequest,
    requester: Requester = Depends(require_roles(Role.ADMIN)),
    service: OrderService = Depends(order_service),
):
    return envelope(_tax_rate_response(service.tax_policy.set_rate(body.tax_rate)))


@config_router.get("/shipping")
async def get_shipping_config(service: OrderService = Depends(order_service)):
    return envelope(_shipping_response(service))


@config_router.put("/shipping")
async def set_shipping_config(
    body: ShippingConfigRequest,
    requester: Requester = Depends(require_roles(Role.ADMIN)),
    service: OrderService = Depends(order_service),
):
    service.shipping_policy.update(
        free_shipping_threshold=body.free_shipping_threshold,
        shipping_fee=body.shipping_fee,
    )
    return envelope(_shipping_response(service))
