# src/shop/products.py
from __future__ import annotations

from typing import List, Optional

from api.client import ApiError, call_blocking
from api.products import ProductService
from shop.catalog import price_ceiling
from shop.models import Product
from utils.logger import get_logger

logger = get_logger(__name__)


class CatalogController:
    """
    Local copy of the remote catalog.

    load() fails closed like order reads: empty list plus ``error``.
    Admin writes raise, and on success patch the local list in place.
    """

    def __init__(self, service: ProductService, deadline: float | None = None):
        self.service = service
        self.deadline = deadline
        self.products: List[Product] = []
        self.loading = False
        self.error: Optional[str] = None

    @property
    def max_price(self) -> int:
        return price_ceiling(self.products)

    def find(self, code: str) -> Optional[Product]:
        for p in self.products:
            if p.code == code:
                return p
        return None

    async def load(self) -> List[Product]:
        self.loading = True
        self.error = None
        try:
            products = await call_blocking(self.service.list, deadline=self.deadline)
        except (ApiError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Error loading products: {e}")
            self.error = "Error loading products"
            self.products = []
            return []
        finally:
            self.loading = False

        self.products = products
        logger.info(f"Loaded {len(products)} product(s)")
        return list(products)

    async def create(self, product: Product) -> Product:
        created = await call_blocking(self.service.create, product, deadline=self.deadline)
        self.products.append(created)
        logger.info(f"Created product {created.code}")
        return created

    async def update(self, product: Product) -> Product:
        updated = await call_blocking(self.service.update, product, deadline=self.deadline)
        self.products = [updated if p.code == updated.code else p for p in self.products]
        logger.info(f"Updated product {updated.code}")
        return updated

    async def delete(self, code: str) -> None:
        await call_blocking(self.service.delete, code, deadline=self.deadline)
        self.products = [p for p in self.products if p.code != code]
        logger.info(f"Deleted product {code}")
