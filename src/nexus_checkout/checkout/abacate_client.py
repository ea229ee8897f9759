"""HTTP client for the AbacatePay billing API."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from nexus_checkout.common.exceptions import UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class BillingCustomer:
    name: str
    cellphone: str
    email: str
    tax_id: str


@dataclass
class BillingProduct:
    external_id: str
    name: str
    description: str
    price_cents: int
    quantity: int = 1


@dataclass
class Billing:
    """The provider's billing object, as much of it as we keep."""

    id: str
    url: str
    raw: dict[str, Any]


class AbacatePayClient:
    """Creates one-time PIX billings via ``POST /v1/billing/create``.

    Nothing here retries: a timeout or rejected request becomes an
    ``UpstreamError`` and the caller decides whether to try the whole
    checkout again.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.abacatepay.com",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def create_billing(
        self,
        *,
        product: BillingProduct,
        customer: BillingCustomer,
        return_url: str,
        completion_url: str,
    ) -> Billing:
        payload = {
            "frequency": "ONE_TIME",
            "methods": ["PIX"],
            "products": [
                {
                    "externalId": product.external_id,
                    "name": product.name,
                    "description": product.description,
                    "quantity": product.quantity,
                    "price": product.price_cents,
                }
            ],
            "returnUrl": return_url,
            "completionUrl": completion_url,
            "customer": {
                "name": customer.name,
                "cellphone": customer.cellphone,
                "email": customer.email,
                "taxId": customer.tax_id,
            },
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport,
            ) as client:
                resp = await client.post(
                    f"{self.base_url}/v1/billing/create",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.TimeoutException:
            logger.warning("AbacatePay billing request timed out after %ss", self.timeout)
            raise UpstreamError(
                "Tempo esgotado ao criar a cobrança. Tente novamente.",
                detail={"reason": "timeout"},
            )
        except httpx.HTTPError as exc:
            logger.warning("AbacatePay billing request failed: %s", exc)
            raise UpstreamError(detail={"reason": "transport", "error": str(exc)})

        try:
            body = resp.json()
        except ValueError:
            body = {"raw": resp.text}
        if not isinstance(body, dict):
            body = {"raw": body}

        data = body.get("data") or {}
        if resp.status_code >= 300 or body.get("error") or not data.get("url"):
            logger.error(
                "AbacatePay rejected billing (HTTP %s): %s", resp.status_code, body,
            )
            raise UpstreamError(
                "Erro ao criar cobrança no provedor de pagamento.",
                detail={"status_code": resp.status_code, "body": body},
            )

        return Billing(id=str(data.get("id", "")), url=data["url"], raw=body)
