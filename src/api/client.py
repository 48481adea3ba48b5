# src/api/client.py
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Optional, TypeVar

import requests
from requests import RequestException
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from utils import settings
from utils.logger import get_logger

logger = get_logger(__name__)


class ApiError(Exception):
    """
    A failed call to the backend.

    status_code is None when the request never got a response
    (connection refused, timeout, ...).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        detail: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail


def http_retry():
    # only transport problems are worth a retry, an http error response is final
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(
            (requests.ConnectionError, requests.Timeout)
        ),
    )


def _error_message(resp: requests.Response) -> tuple[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            if body.get(key):
                return str(body[key]), body
    return f"Request failed with status {resp.status_code}", body


class ApiClient:
    """
    Thin blocking client for the storefront REST backend.

    Callers on the event loop go through call_blocking() so a slow server
    never stalls the UI.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "application/json")

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.debug(f"ApiClient {method} {url}")
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except RequestException as e:
            logger.error(f"ApiClient {method} {url} failed: {e}")
            raise

        if not resp.ok:
            message, detail = _error_message(resp)
            logger.error(f"ApiClient {method} {url} -> {resp.status_code}: {message}")
            raise ApiError(message, status_code=resp.status_code, detail=detail)
        return resp

    def _json(self, resp: requests.Response) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(
                f"Invalid JSON in response from {resp.url}",
                status_code=resp.status_code,
            ) from e

    def request(self, method: str, path: str, **kwargs) -> Any:
        """One attempt, no retry. Used for writes, which are not idempotent."""
        try:
            return self._json(self._send(method, path, **kwargs))
        except RequestException as e:
            raise ApiError(f"Could not reach the server: {e}") from e

    @http_retry()
    def _get_with_retry(self, path: str, params: Dict[str, Any] | None) -> Any:
        return self._json(self._send("GET", path, params=params))

    def get(self, path: str, params: Dict[str, Any] | None = None) -> Any:
        try:
            return self._get_with_retry(path, params)
        except RequestException as e:
            raise ApiError(f"Could not reach the server: {e}") from e

    def post(self, path: str, payload: Any) -> Any:
        return self.request("POST", path, json=payload)

    def put(self, path: str, payload: Any) -> Any:
        return self.request("PUT", path, json=payload)

    def patch_text(self, path: str, text: str) -> Any:
        # bare string body, not wrapped in a json object
        return self.request(
            "PATCH",
            path,
            data=text.encode("utf-8"),
            headers={"Content-Type": "text/plain; charset=utf-8"},
        )

    def delete(self, path: str) -> None:
        self.request("DELETE", path)

    def close(self) -> None:
        self.session.close()


T = TypeVar("T")


def parse_object(parser: Callable[[Dict[str, Any]], T], data: Any, what: str) -> T:
    """
    Build a model from one json object of a response. An empty or malformed
    body is an ApiError like any other bad response.
    """
    if not isinstance(data, dict):
        raise ApiError(f"Server returned no {what}", detail=data)
    try:
        return parser(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ApiError(f"Malformed {what} in server response: {e}", detail=data) from e


async def call_blocking(fn: Callable[..., T], *args, deadline: float | None = None) -> T:
    """
    Run a blocking client call in a worker thread, bounded by ``deadline``
    seconds. Cancelling the awaiting task abandons the call; its result, if
    it ever arrives, is dropped.
    """
    deadline = settings.REQUEST_DEADLINE if deadline is None else deadline
    try:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), deadline)
    except TimeoutError as e:
        raise ApiError(f"Request timed out after {deadline:g}s") from e
