import json
import threading
import unittest
from unittest import mock

import requests
from fakes import make_product

from api.client import ApiClient, ApiError, call_blocking
from api.orders import OrderService
from api.products import ProductService
from api.users import UserService
from shop.models import OrderLine, OrderPayload, OrderStatus
from shop.orders import OrderController


def make_response(status: int, body=None, url: str = "http://api.test/x") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.url = url
    resp._content = b"" if body is None else json.dumps(body).encode("utf-8")
    return resp


ORDER_JSON = {
    "id": 10,
    "fecha": "2025-11-02T14:30:00",
    "clienteId": 7,
    "productos": [{"codigo": "AC010", "nombre": "Teclado", "cantidad": 2, "precio": 1000}],
    "estado": "en preparacion",
    "direccion": "Av. Siempre Viva 742",
}


class ApiClientTestCase(unittest.TestCase):
    def setUp(self):
        self.session = mock.Mock(spec=requests.Session)
        self.session.headers = {}
        self.client = ApiClient("http://api.test/", timeout=3, session=self.session)

    def test_get_parses_json_and_passes_timeout(self):
        self.session.request.return_value = make_response(200, [{"codigo": "A"}])
        self.assertEqual(self.client.get("/productos"), [{"codigo": "A"}])
        self.session.request.assert_called_once_with(
            "GET", "http://api.test/productos", timeout=3, params=None
        )

    def test_error_message_comes_from_body(self):
        for key in ("message", "detail", "error"):
            self.session.request.return_value = make_response(400, {key: "Stock insuficiente"})
            with self.assertRaises(ApiError) as ctx:
                self.client.post("/pedidos", {})
            self.assertEqual(ctx.exception.message, "Stock insuficiente")
            self.assertEqual(ctx.exception.status_code, 400)

    def test_error_message_fallback(self):
        self.session.request.return_value = make_response(500)
        with self.assertRaises(ApiError) as ctx:
            self.client.get("/pedidos")
        self.assertEqual(ctx.exception.message, "Request failed with status 500")

    def test_http_errors_are_not_retried(self):
        self.session.request.return_value = make_response(404, {"message": "No existe"})
        with self.assertRaises(ApiError):
            self.client.get("/productos/X")
        self.assertEqual(self.session.request.call_count, 1)

    def test_get_retries_connection_errors(self):
        self.session.request.side_effect = [
            requests.ConnectionError("refused"),
            make_response(200, []),
        ]
        self.assertEqual(self.client.get("/pedidos"), [])
        self.assertEqual(self.session.request.call_count, 2)

    def test_writes_are_attempted_once(self):
        self.session.request.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(ApiError) as ctx:
            self.client.post("/pedidos", {})
        self.assertIsNone(ctx.exception.status_code)
        self.assertTrue(ctx.exception.message.startswith("Could not reach the server"))
        self.assertEqual(self.session.request.call_count, 1)

    def test_patch_sends_bare_text(self):
        self.session.request.return_value = make_response(200, ORDER_JSON)
        self.client.patch_text("/pedidos/10/estado", "entregado")
        _, kwargs = self.session.request.call_args
        self.assertEqual(kwargs["data"], b"entregado")
        self.assertTrue(kwargs["headers"]["Content-Type"].startswith("text/plain"))

    def test_empty_body_is_none(self):
        self.session.request.return_value = make_response(204)
        self.assertIsNone(self.client.delete("/productos/A"))


class ServicesTestCase(unittest.TestCase):
    def setUp(self):
        self.client = mock.Mock(spec=ApiClient)

    def test_orders_by_user_filter_on_server(self):
        self.client.get.return_value = [ORDER_JSON]
        orders = OrderService(self.client).list_by_user(7)
        self.client.get.assert_called_once_with("/pedidos", params={"clienteId": 7})
        self.assertEqual(orders[0].id, 10)
        self.assertEqual(orders[0].total, 2000)  # summed, server sent none
        self.assertEqual(orders[0].created_at.year, 2025)

    def test_order_create_payload(self):
        self.client.post.return_value = {**ORDER_JSON, "total": 1999}
        payload = OrderPayload(
            user_id=7,
            lines=(OrderLine(code="AC010", name="Teclado", quantity=2, unit_price=1000),),
        )
        order = OrderService(self.client).create(payload)
        path, body = self.client.post.call_args.args
        self.assertEqual(path, "/pedidos")
        self.assertEqual(
            body,
            {
                "clienteId": 7,
                "productos": [{"codigo": "AC010", "nombre": "Teclado", "cantidad": 2, "precio": 1000}],
                "estado": "en preparacion",
            },
        )
        # server total wins
        self.assertEqual(order.total, 1999)

    def test_order_status_update(self):
        self.client.patch_text.return_value = {**ORDER_JSON, "estado": "entregado"}
        order = OrderService(self.client).update_status(10, OrderStatus.DELIVERED)
        self.client.patch_text.assert_called_once_with("/pedidos/10/estado", "entregado")
        self.assertEqual(order.status, OrderStatus.DELIVERED)

    def test_order_status_update_without_body_reads_order_back(self):
        self.client.patch_text.return_value = None
        self.client.get.return_value = {**ORDER_JSON, "estado": "entregado"}
        order = OrderService(self.client).update_status(10, OrderStatus.DELIVERED)
        self.client.get.assert_called_once_with("/pedidos/10")
        self.assertEqual(order.status, OrderStatus.DELIVERED)

    def test_empty_create_response_is_api_error(self):
        self.client.post.return_value = None
        with self.assertRaises(ApiError) as ctx:
            OrderService(self.client).create(OrderPayload(user_id=7, lines=()))
        self.assertEqual(ctx.exception.message, "Server returned no order")

    def test_malformed_order_is_api_error(self):
        for body in ({"clienteId": 7}, {**ORDER_JSON, "estado": "perdido"}):
            self.client.post.return_value = body
            with self.assertRaises(ApiError) as ctx:
                OrderService(self.client).create(OrderPayload(user_id=7, lines=()))
            self.assertTrue(ctx.exception.message.startswith("Malformed order"))
            self.assertEqual(ctx.exception.detail, body)

    def test_non_list_listing_is_empty(self):
        self.client.get.return_value = {"unexpected": True}
        self.assertEqual(ProductService(self.client).list(), [])

    def test_product_create_leaves_code_to_server(self):
        self.client.post.return_value = {"codigo": "AC099", "nombre": "Mouse", "precio": 100}
        created = ProductService(self.client).create(make_product("", "Mouse", 100))
        _, body = self.client.post.call_args.args
        self.assertNotIn("codigo", body)
        self.assertEqual(created.code, "AC099")

    def test_product_paths_are_quoted(self):
        ProductService(self.client).delete("A/1")
        self.client.delete.assert_called_once_with("/productos/A%2F1")

    def test_find_user_by_email(self):
        self.client.get.return_value = [
            {"id": 1, "username": "ana", "correo": "Ana@Duoc.cl", "rol": "usuario", "descuentoDuoc": True},
            {"id": 2, "username": "root", "correo": "admin@gmail.com", "rol": "admin"},
        ]
        users = UserService(self.client)
        ana = users.find_by_email(" ana@duoc.cl ")
        self.assertEqual(ana.id, 1)
        self.assertTrue(ana.discount_eligible)
        self.assertEqual(users.find_by_email("admin@gmail.com").role, "admin")
        self.assertIsNone(users.find_by_email("nobody@gmail.com"))


class EmptyWriteResponseTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.session = mock.Mock(spec=requests.Session)
        self.session.headers = {}
        client = ApiClient("http://api.test", timeout=3, session=self.session)
        self.controller = OrderController(OrderService(client), deadline=2)

    async def test_create_with_empty_body_raises_api_error(self):
        self.session.request.return_value = make_response(201)
        with self.assertRaises(ApiError):
            await self.controller.create_order(OrderPayload(user_id=7, lines=()))
        self.assertEqual(self.controller.orders, [])

    async def test_status_update_answered_with_204(self):
        self.session.request.side_effect = [
            make_response(204),
            make_response(200, {**ORDER_JSON, "estado": "entregado"}),
        ]
        updated = await self.controller.update_status(10, OrderStatus.DELIVERED)
        self.assertEqual(updated.status, OrderStatus.DELIVERED)
        methods = [c.args[0] for c in self.session.request.call_args_list]
        self.assertEqual(methods, ["PATCH", "GET"])


class CallBlockingTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_returns_result(self):
        self.assertEqual(await call_blocking(lambda a, b: a + b, 1, 2, deadline=1), 3)

    async def test_deadline_becomes_api_error(self):
        gate = threading.Event()
        try:
            with self.assertRaises(ApiError) as ctx:
                await call_blocking(gate.wait, 5, deadline=0.05)
        finally:
            gate.set()
        self.assertIn("timed out", ctx.exception.message)
        self.assertIsNone(ctx.exception.status_code)


if __name__ == "__main__":
    unittest.main()
