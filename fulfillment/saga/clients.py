"""
Saga — HTTP clients for the participant services

Every failure of a participant call (connection error, timeout, non-2xx
status) surfaces as StepFailed. The coordinator treats it as terminal for
the step; nothing here retries.
"""

from collections.abc import Sequence
from decimal import Decimal

import httpx

from fulfillment.common.schema import ProductQuantity


class StepFailed(Exception):
    pass


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict) and "error" in body:
        return str(body["error"])
    return resp.text


async def _post(client: httpx.AsyncClient, url: str, payload: dict) -> None:
    """POST and require a 2xx. Response bodies of successful calls are not read."""
    try:
        resp = await client.post(url, json=payload)
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise StepFailed(
            f"POST {url} returned {e.response.status_code}: {_error_message(e.response)}"
        ) from e
    except httpx.HTTPError as e:
        raise StepFailed(f"POST {url} failed: {e!r}") from e


class InventoryClient:
    def __init__(self, base_url: str, client: httpx.AsyncClient) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = client

    def _payload(self, order_id: str, products: Sequence[ProductQuantity]) -> dict:
        return {
            "orderId": order_id,
            "products": [p.model_dump(by_alias=True) for p in products],
        }

    async def reserve(self, order_id: str, products: Sequence[ProductQuantity]) -> None:
        await _post(self.client, f"{self.base_url}/api/inventory/reserve", self._payload(order_id, products))

    async def release(self, order_id: str, products: Sequence[ProductQuantity]) -> None:
        await _post(self.client, f"{self.base_url}/api/inventory/rollback", self._payload(order_id, products))


class PaymentClient:
    def __init__(self, base_url: str, client: httpx.AsyncClient) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = client

    async def process(self, order_id: str, amount: Decimal, user_id: str) -> None:
        await _post(
            self.client,
            f"{self.base_url}/api/payments/process",
            {"orderId": order_id, "amount": float(amount), "userId": user_id},
        )

    async def rollback(self, order_id: str) -> None:
        await _post(self.client, f"{self.base_url}/api/payments/rollback", {"orderId": order_id})
