"""Product aggregate: the price and stock record an order is placed against."""

import re
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


def slugify(name: str) -> str:
    """Lowercase `name`, drop punctuation and join words with hyphens."""
    words = re.sub(r"[^\w ]+", "", name.lower()).split()
    return "-".join(words)


@ordering.aggregate
class Product:
    name = String(required=True, max_length=255)
    slug = String(required=True, max_length=300)
    sku = String(max_length=50)
    brand = String(max_length=100)
    description = Text()
    price = Float(required=True, min_value=0.0)
    wholesale_price = Float(min_value=0.0)
    stock_quantity = Integer(default=0, min_value=0)
    distributor_id = Identifier()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(
        cls,
        name,
        price,
        slug,
        stock_quantity=0,
        wholesale_price=None,
        sku=None,
        brand=None,
        description=None,
        distributor_id=None,
    ):
        """Create a product. The caller decides the slug so uniqueness can be checked first."""
        from ordering.catalogue.events import ProductRegistered

        now = datetime.now(UTC)
        product = cls(
            name=name,
            slug=slug,
            sku=sku,
            brand=brand,
            description=description,
            price=price,
            wholesale_price=wholesale_price,
            stock_quantity=stock_quantity,
            distributor_id=distributor_id,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                name=name,
                slug=slug,
                price=price,
                wholesale_price=wholesale_price,
                stock_quantity=stock_quantity,
                distributor_id=distributor_id,
                registered_at=now,
            )
        )
        return product

    def update_pricing(self, price=None, wholesale_price=None):
        from ordering.catalogue.events import ProductPricingChanged

        previous_price, previous_wholesale = self.price, self.wholesale_price
        if price is not None:
            self.price = price
        if wholesale_price is not None:
            self.wholesale_price = wholesale_price
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            ProductPricingChanged(
                product_id=str(self.id),
                previous_price=previous_price,
                new_price=self.price,
                previous_wholesale_price=previous_wholesale,
                new_wholesale_price=self.wholesale_price,
                changed_at=now,
            )
        )

    def reserve_stock(self, quantity: int):
        """Take `quantity` units off the shelf. Stock never goes below zero."""
        from ordering.catalogue.events import StockReserved

        if quantity < 1:
            raise ValidationError({"quantity": ["La cantidad mínima es 1"]})
        if quantity > self.stock_quantity:
            raise ValidationError(
                {"stock_quantity": [f"Stock insuficiente para {self.name}. Disponible: {self.stock_quantity}"]}
            )

        self.stock_quantity -= quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(StockReserved(product_id=str(self.id), quantity=quantity, remaining=self.stock_quantity))

    def release_stock(self, quantity: int):
        from ordering.catalogue.events import StockReleased

        if quantity < 1:
            raise ValidationError({"quantity": ["La cantidad mínima es 1"]})

        self.stock_quantity += quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(StockReleased(product_id=str(self.id), quantity=quantity, remaining=self.stock_quantity))

    def restock(self, quantity: int):
        from ordering.catalogue.events import ProductRestocked

        if quantity < 1:
            raise ValidationError({"quantity": ["La cantidad a reponer debe ser al menos 1"]})

        self.stock_quantity += quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            ProductRestocked(product_id=str(self.id), quantity=quantity, stock_quantity=self.stock_quantity)
        )
