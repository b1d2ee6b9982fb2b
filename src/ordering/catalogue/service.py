"""Catalogue operations: registering products, repricing and restocking."""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.access import Requester
from ordering.catalogue.product import Product, slugify
from ordering.catalogue.repository import resolve_product
from ordering.catalogue.store import CatalogStore, RepositoryCatalogStore
from ordering.errors import NotAuthorizedError, NotFoundError

logger = structlog.get_logger(__name__)


class CatalogueService:
    def __init__(self, store: CatalogStore | None = None):
        self.store = store or RepositoryCatalogStore()

    def register_product(
        self,
        requester: Requester,
        name: str,
        price: float,
        stock_quantity: int = 0,
        wholesale_price: float | None = None,
        sku: str | None = None,
        brand: str | None = None,
        description: str | None = None,
        distributor_id: str | None = None,
    ) -> Product:
        if not name or not slugify(name):
            raise ValidationError({"name": ["El nombre del producto es requerido"]})
        if requester.is_distributor:
            distributor_id = requester.user_id

        repo = current_domain.repository_for(Product)
        product = Product.register(
            name=name,
            price=price,
            slug=repo.next_available_slug(slugify(name)),
            stock_quantity=stock_quantity,
            wholesale_price=wholesale_price,
            sku=sku,
            brand=brand,
            description=description,
            distributor_id=distributor_id,
        )
        repo.add(product)

        logger.info("Product registered", product_id=str(product.id), slug=product.slug, stock=stock_quantity)
        return product

    def get_product(self, reference) -> Product:
        product = resolve_product(reference)
        if product is None:
            raise NotFoundError(f"Producto no encontrado con ID: {reference}")
        return product

    def update_pricing(self, reference, requester: Requester, price=None, wholesale_price=None) -> Product:
        product = self.get_product(reference)
        self._ensure_can_manage(product, requester)

        with self.store.hold([product.id]):
            product = current_domain.repository_for(Product).get(product.id)
            product.update_pricing(price=price, wholesale_price=wholesale_price)
            current_domain.repository_for(Product).add(product)

        logger.info("Product repriced", product_id=str(product.id), price=product.price)
        return product

    def restock(self, reference, requester: Requester, quantity: int) -> Product:
        product = self.get_product(reference)
        self._ensure_can_manage(product, requester)

        with self.store.hold([product.id]):
            product = current_domain.repository_for(Product).get(product.id)
            product.restock(quantity)
            current_domain.repository_for(Product).add(product)

        logger.info("Product restocked", product_id=str(product.id), stock=product.stock_quantity)
        return product

    @staticmethod
    def _ensure_can_manage(product: Product, requester: Requester):
        if requester.is_admin:
            return
        if requester.is_distributor and str(product.distributor_id) == str(requester.user_id):
            return
        raise NotAuthorizedError("No está autorizado para modificar este producto")
