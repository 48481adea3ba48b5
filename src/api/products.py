# src/api/products.py
from typing import List
from urllib.parse import quote

from api.client import ApiClient, parse_object
from shop.models import Product

RESOURCE = "/productos"


class ProductService:
    """Remote catalog: /productos"""

    def __init__(self, client: ApiClient):
        self.client = client

    def list(self) -> List[Product]:
        data = self.client.get(RESOURCE)
        if not isinstance(data, list):
            return []
        return [parse_object(Product.from_api, item, "product") for item in data]

    def get(self, code: str) -> Product:
        data = self.client.get(f"{RESOURCE}/{quote(code, safe='')}")
        return parse_object(Product.from_api, data, "product")

    def create(self, product: Product) -> Product:
        """The server assigns the code, any code on ``product`` is ignored."""
        data = self.client.post(RESOURCE, product.to_api(include_code=False))
        return parse_object(Product.from_api, data, "product")

    def update(self, product: Product) -> Product:
        data = self.client.put(
            f"{RESOURCE}/{quote(product.code, safe='')}",
            product.to_api(include_code=False),
        )
        return parse_object(Product.from_api, data, "product") if data else product

    def delete(self, code: str) -> None:
        self.client.delete(f"{RESOURCE}/{quote(code, safe='')}")
