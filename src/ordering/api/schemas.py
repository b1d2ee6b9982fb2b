"""Pydantic request/response schemas for the Ordering API.

Request models are deliberately permissive: missing or out-of-range business
fields are reported by the services with their own messages. Response models
flatten aggregates into the JSON placed under ``data`` in the envelope.
"""

from datetime import datetime

from pydantic import BaseModel


def envelope(data, **extra) -> dict:
    """Success envelope: ``{"success": true, "data": ..., **extra}``."""
    return {"success": True, "data": data, **extra}


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None


class PickupLocationSchema(BaseModel):
    name: str | None = None
    address: str | None = None
    scheduled_date: datetime | None = None
    notes: str | None = None


class OrderLineSchema(BaseModel):
    product_id: str | None = None
    quantity: int | None = None


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    """Prices and totals sent by clients are not part of the contract and are ignored."""

    items: list[OrderLineSchema] = []
    shipment_method: str | None = None
    shipping_address: AddressSchema | None = None
    pickup_location: PickupLocationSchema | None = None
    payment_method: str = "webpay"
    order_type: str = "B2C"

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"product_id": "6f1c...", "quantity": 2}],
                    "shipment_method": "delivery",
                    "shipping_address": {
                        "street": "Av. Providencia 1234",
                        "city": "Santiago",
                        "state": "RM",
                        "postal_code": "7500000",
                        "country": "Chile",
                    },
                    "payment_method": "webpay",
                    "order_type": "B2C",
                }
            ]
        }
    }


class UpdateStatusRequest(BaseModel):
    status: str | None = None
    is_paid: bool | None = None


class RecalculateTaxRequest(BaseModel):
    tax_rate: float


class RefundRequest(BaseModel):
    amount: float | None = None
    reason: str | None = None


# ---------------------------------------------------------------------------
# Catalogue / configuration Request Schemas
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    name: str
    price: float
    stock_quantity: int = 0
    wholesale_price: float | None = None
    sku: str | None = None
    brand: str | None = None
    description: str | None = None
    distributor_id: str | None = None


class UpdatePricingRequest(BaseModel):
    price: float | None = None
    wholesale_price: float | None = None


class RestockRequest(BaseModel):
    quantity: int


class TaxRateRequest(BaseModel):
    tax_rate: float


class ShippingConfigRequest(BaseModel):
    free_shipping_threshold: float | None = None
    shipping_fee: float | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderItemResponse(BaseModel):
    product_id: str
    distributor_id: str | None = None
    name: str
    quantity: int
    unit_price: float
    line_total: float

    @classmethod
    def from_item(cls, item) -> "OrderItemResponse":
        return cls(
            product_id=str(item.product_id),
            distributor_id=str(item.distributor_id) if item.distributor_id else None,
            name=item.name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            line_total=item.line_total,
        )


class PricingResponse(BaseModel):
    items_price: float
    tax_price: float
    shipping_price: float
    total_price: float
    currency: str


class FiscalResponse(BaseModel):
    applied_tax_rate: float
    tax_calculated_at: datetime
    tax_recalculated: bool
    tax_recalculated_by: str | None = None
    tax_recalculated_at: datetime | None = None


class TaxInfoResponse(BaseModel):
    rate: float
    percentage: str
    amount: float
    applied_at: datetime | None = None
    was_recalculated: bool


class TaxAdjustmentResponse(BaseModel):
    previous_tax_rate: float
    new_tax_rate: float
    previous_tax_price: float
    new_tax_price: float
    adjusted_by: str
    adjusted_at: datetime


class PaymentRecordResponse(BaseModel):
    transaction_id: str | None = None
    authorization_code: str | None = None
    status: str
    approved: bool
    amount: float
    message: str | None = None
    processed_at: datetime


class RefundRecordResponse(BaseModel):
    transaction_id: str
    refund_id: str
    status: str
    amount: float
    reason: str | None = None
    refunded_at: datetime


class OrderResponse(BaseModel):
    id: str
    customer_id: str
    order_type: str
    status: str
    shipment_method: str
    shipping_address: AddressSchema | None = None
    pickup_location: PickupLocationSchema | None = None
    payment_method: str
    items: list[OrderItemResponse]
    pricing: PricingResponse
    tax_rate: float
    fiscal: FiscalResponse
    tax_info: TaxInfoResponse
    tax_adjustments: list[TaxAdjustmentResponse] = []
    payments: list[PaymentRecordResponse] = []
    refunds: list[RefundRecordResponse] = []
    is_paid: bool
    paid_at: datetime | None = None
    is_delivered: bool
    delivered_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        address = order.shipping_address
        location = order.pickup_location
        fiscal = order.fiscal
        return cls(
            id=str(order.id),
            customer_id=str(order.customer_id),
            order_type=order.order_type,
            status=order.status,
            shipment_method=order.shipment_method,
            shipping_address=(
                AddressSchema(
                    street=address.street,
                    city=address.city,
                    state=address.state,
                    postal_code=address.postal_code,
                    country=address.country,
                )
                if address
                else None
            ),
            pickup_location=(
                PickupLocationSchema(
                    name=location.name,
                    address=location.address,
                    scheduled_date=location.scheduled_date,
                    notes=location.notes,
                )
                if location
                else None
            ),
            payment_method=order.payment_method,
            items=[OrderItemResponse.from_item(item) for item in order.ordered_items],
            pricing=PricingResponse(
                items_price=order.pricing.items_price,
                tax_price=order.pricing.tax_price,
                shipping_price=order.pricing.shipping_price,
                total_price=order.pricing.total_price,
                currency=order.pricing.currency,
            ),
            tax_rate=order.tax_rate,
            fiscal=FiscalResponse(
                applied_tax_rate=fiscal.applied_tax_rate,
                tax_calculated_at=fiscal.tax_calculated_at,
                tax_recalculated=bool(fiscal.tax_recalculated),
                tax_recalculated_by=str(fiscal.tax_recalculated_by) if fiscal.tax_recalculated_by else None,
                tax_recalculated_at=fiscal.tax_recalculated_at,
            ),
            tax_info=TaxInfoResponse(**order.tax_info),
            tax_adjustments=[
                TaxAdjustmentResponse(
                    previous_tax_rate=entry.previous_tax_rate,
                    new_tax_rate=entry.new_tax_rate,
                    previous_tax_price=entry.previous_tax_price,
                    new_tax_price=entry.new_tax_price,
                    adjusted_by=str(entry.adjusted_by),
                    adjusted_at=entry.adjusted_at,
                )
                for entry in sorted(order.tax_adjustments, key=lambda entry: entry.adjusted_at)
            ],
            payments=[
                PaymentRecordResponse(
                    transaction_id=record.transaction_id,
                    authorization_code=record.authorization_code,
                    status=record.status,
                    approved=bool(record.approved),
                    amount=record.amount,
                    message=record.message,
                    processed_at=record.processed_at,
                )
                for record in sorted(order.payments, key=lambda record: record.processed_at)
            ],
            refunds=[
                RefundRecordResponse(
                    transaction_id=record.transaction_id,
                    refund_id=record.refund_id,
                    status=record.status,
                    amount=record.amount,
                    reason=record.reason,
                    refunded_at=record.refunded_at,
                )
                for record in sorted(order.refunds, key=lambda record: record.refunded_at)
            ],
            is_paid=bool(order.is_paid),
            paid_at=order.paid_at,
            is_delivered=bool(order.is_delivered),
            delivered_at=order.delivered_at,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class DistributorOrderResponse(BaseModel):
    id: str
    customer_id: str
    status: str
    shipment_method: str
    is_paid: bool
    created_at: datetime
    items: list[OrderItemResponse]
    distributor_subtotal: float

    @classmethod
    def from_view(cls, view) -> "DistributorOrderResponse":
        order = view.order
        return cls(
            id=str(order.id),
            customer_id=str(order.customer_id),
            status=order.status,
            shipment_method=order.shipment_method,
            is_paid=bool(order.is_paid),
            created_at=order.created_at,
            items=[OrderItemResponse.from_item(item) for item in view.items],
            distributor_subtotal=view.distributor_subtotal,
        )


class TaxRecalculationResponse(BaseModel):
    previous_tax_rate: float
    new_tax_rate: float
    previous_tax_price: float
    new_tax_price: float
    total_price_change: float
    order: OrderResponse


class TaxStatisticResponse(BaseModel):
    tax_rate: float
    order_count: int
    total_tax_collected: float
    total_order_value: float
    average_order_value: float


class PaymentResultResponse(BaseModel):
    success: bool
    status: str
    transaction_id: str | None = None
    authorization_code: str | None = None
    message: str | None = None
    order: OrderResponse


class PaymentStatusResponse(BaseModel):
    transaction_id: str
    status: str
    message: str | None = None


class RefundResultResponse(BaseModel):
    refund_id: str | None = None
    status: str
    amount: float
    order: OrderResponse


class ProductResponse(BaseModel):
    id: str
    name: str
    slug: str
    sku: str | None = None
    brand: str | None = None
    description: str | None = None
    price: float
    wholesale_price: float | None = None
    stock_quantity: int
    distributor_id: str | None = None

    @classmethod
    def from_product(cls, product) -> "ProductResponse":
        return cls(
            id=str(product.id),
            name=product.name,
            slug=product.slug,
            sku=product.sku,
            brand=product.brand,
            description=product.description,
            price=product.price,
            wholesale_price=product.wholesale_price,
            stock_quantity=product.stock_quantity,
            distributor_id=str(product.distributor_id) if product.distributor_id else None,
        )


class TaxRateResponse(BaseModel):
    tax_rate: float
    percentage: str


class ShippingConfigResponse(BaseModel):
    free_shipping_threshold: float
    shipping_fee: float
    currency: str
