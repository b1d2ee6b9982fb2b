"""Shipping cost rules."""

import threading
from abc import ABC, abstractmethod
from enum import Enum

from protean.exceptions import ValidationError


class ShipmentMethod(Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class ShippingPolicy(ABC):
    @abstractmethod
    def shipping_price(self, shipment_method: str, items_price: float) -> float: ...


class ConfiguredShippingPolicy(ShippingPolicy):
    """Pickup is free. Delivery is free from `free_shipping_threshold` up, otherwise `shipping_fee`."""

    def __init__(self, free_shipping_threshold: float, shipping_fee: float):
        self._lock = threading.Lock()
        self._validate(free_shipping_threshold, shipping_fee)
        self.free_shipping_threshold = float(free_shipping_threshold)
        self.shipping_fee = float(shipping_fee)

    @staticmethod
    def _validate(threshold, fee):
        errors = {}
        if threshold is None or threshold < 0:
            errors["free_shipping_threshold"] = ["El umbral de envío gratis debe ser mayor o igual a 0"]
        if fee is None or fee < 0:
            errors["shipping_fee"] = ["El costo de envío debe ser mayor o igual a 0"]
        if errors:
            raise ValidationError(errors)

    def shipping_price(self, shipment_method, items_price):
        if shipment_method == ShipmentMethod.PICKUP.value:
            return 0.0
        with self._lock:
            if items_price >= self.free_shipping_threshold:
                return 0.0
            return self.shipping_fee

    def update(self, free_shipping_threshold=None, shipping_fee=None):
        with self._lock:
            threshold = self.free_shipping_threshold if free_shipping_threshold is None else free_shipping_threshold
            fee = self.shipping_fee if shipping_fee is None else shipping_fee
            self._validate(threshold, fee)
            self.free_shipping_threshold = float(threshold)
            self.shipping_fee = float(fee)
