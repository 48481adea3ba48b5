from typing import List

from api.client import ApiClient, parse_object
from shop.models import Order, OrderPayload, OrderStatus

RESOURCE = "/pedidos"


class OrderService:
    """
    Remote orders: /pedidos

    The server assigns id and date and recomputes the total on create.
    """

    def __init__(self, client: ApiClient):
        self.client = client

    def _orders(self, data) -> List[Order]:
        if not isinstance(data, list):
            return []
        return [parse_object(Order.from_api, item, "order") for item in data]

    def list_all(self) -> List[Order]:
        return self._orders(self.client.get(RESOURCE))

    def list_by_user(self, user_id: int) -> List[Order]:
        return self._orders(self.client.get(RESOURCE, params={"clienteId": user_id}))

    def get(self, order_id: int) -> Order:
        return parse_object(Order.from_api, self.client.get(f"{RESOURCE}/{order_id}"), "order")

    def create(self, payload: OrderPayload) -> Order:
        return parse_object(Order.from_api, self.client.post(RESOURCE, payload.to_api()), "order")

    def update_status(self, order_id: int, status: OrderStatus) -> Order:
        data = self.client.patch_text(f"{RESOURCE}/{order_id}/estado", status.value)
        if not data:
            # 204, read the order back
            return self.get(order_id)
        return parse_object(Order.from_api, data, "order")

    def delete(self, order_id: int) -> None:
        self.client.delete(f"{RESOURCE}/{order_id}")
