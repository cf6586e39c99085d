"""Payment gateway adapter: the opaque remote service that opens and reports charges."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from ..core.config import GatewayConfig
from ..core.exceptions import GatewayError
from ..core.observability import metrics_collector

logger = logging.getLogger(__name__)


class ChargeStatus(str, Enum):
    """Charge states the reconciler understands."""
    PAID = "PAID"
    OPEN = "OPEN"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class CustomerRef:
    """Customer details forwarded to the gateway with a charge."""

    customer_id: str
    name: str
    email: str
    phone: str


@dataclass(frozen=True)
class ChargeSession:
    """Reference the client uses to complete payment."""

    order_id: str
    session_ref: str
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GatewayChargeStatus:
    """Gateway view of a charge."""

    order_id: str
    status: ChargeStatus
    gateway_status: str
    transaction_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class PaymentGateway(ABC):
    """Interface to the external payment gateway."""

    name = "gateway"

    @abstractmethod
    async def open_charge(
        self,
        order_id: str,
        amount: int,
        currency: str,
        customer: CustomerRef,
        return_url: str | None = None,
        note: str | None = None,
    ) -> ChargeSession:
        """Open a charge. Raises GatewayError on any failure."""

    @abstractmethod
    async def get_charge_status(self, order_id: str) -> GatewayChargeStatus:
        """Read the charge's current status. Raises GatewayError on any failure."""

    async def aclose(self) -> None:
        return None


CASHFREE_STATUS_MAP = {
    "PAID": ChargeStatus.PAID,
    "ACTIVE": ChargeStatus.OPEN,
    "EXPIRED": ChargeStatus.EXPIRED,
}


class CashfreeGateway(PaymentGateway):
    """
    Cashfree Orders API client.

    https://docs.cashfree.com/reference/pg-new-apis-endpoint
    """

    name = "cashfree"

    def __init__(self, config: GatewayConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=config.timeout_seconds)

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-client-id": self.config.app_id,
            "x-client-secret": self.config.secret_key,
            "x-api-version": self.config.api_version,
        }

    async def _request(self, operation: str, method: str, path: str, payload: dict | None = None) -> dict[str, Any]:
        url = self.config.base_url + path
        start = time.perf_counter()
        try:
            response = await self.client.request(method, url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            metrics_collector.record_gateway_error(operation)
            logger.error(
                "Payment gateway unreachable",
                extra={"operation": operation, "path": path, "error": str(e)}
            )
            raise GatewayError(operation, f"transport error: {e}") from e
        finally:
            metrics_collector.observe_gateway_latency(operation, time.perf_counter() - start)

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}

        if response.status_code != 200:
            metrics_collector.record_gateway_error(operation)
            logger.error(
                "Payment gateway returned an error",
                extra={"operation": operation, "path": path, "status_code": response.status_code, "body": body}
            )
            raise GatewayError(
                operation,
                f"unexpected status {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        if not isinstance(body, dict):
            raise GatewayError(operation, "malformed response body", status_code=response.status_code, body=body)
        return body

    async def open_charge(
        self,
        order_id: str,
        amount: int,
        currency: str,
        customer: CustomerRef,
        return_url: str | None = None,
        note: str | None = None,
    ) -> ChargeSession:
        payload = {
            "order_id": order_id,
            "order_amount": float(amount),
            "order_currency": currency,
            "customer_details": {
                "customer_id": customer.customer_id,
                "customer_name": customer.name,
                "customer_email": customer.email,
                "customer_phone": customer.phone,
            },
        }
        if return_url:
            payload["order_meta"] = {"return_url": return_url}
        if note:
            payload["order_note"] = note

        body = await self._request("open_charge", "POST", "/pg/orders", payload)

        session_ref = body.get("payment_session_id")
        if not session_ref:
            raise GatewayError("open_charge", "response has no payment_session_id", status_code=200, body=body)

        logger.info("Cashfree order created", extra={"order_id": order_id, "amount": amount})
        return ChargeSession(order_id=order_id, session_ref=session_ref, raw=body)

    async def get_charge_status(self, order_id: str) -> GatewayChargeStatus:
        body = await self._request("get_charge_status", "GET", f"/pg/orders/{order_id}")

        gateway_status = str(body.get("order_status", "")).upper()
        status = CASHFREE_STATUS_MAP.get(gateway_status, ChargeStatus.FAILED)
        cf_order_id = body.get("cf_order_id")

        logger.info(
            "Cashfree order status fetched",
            extra={"order_id": order_id, "gateway_status": gateway_status, "status": status.value}
        )
        return GatewayChargeStatus(
            order_id=order_id,
            status=status,
            gateway_status=gateway_status,
            transaction_id=str(cf_order_id) if cf_order_id is not None else None,
            raw=body,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
