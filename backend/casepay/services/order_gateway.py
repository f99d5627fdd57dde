"""
Order Gateway — Synchronous client for the payment processor's Orders API.

Two implementations share one contract:
  - RazorpayOrderGateway: POST {api_base}/orders with HTTP basic auth.
  - SandboxOrderGateway: issues local order refs for development.

No retries: one call, bounded by a timeout. Every failure is raised as a
typed error (GatewayUnavailable, InvalidAmount, InvalidCredentials,
ValidationError) before the caller has written anything.
"""
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

import requests
import structlog

from casepay.exceptions import GatewayUnavailable, InvalidAmount, InvalidCredentials, ValidationError
from casepay.utils.validators import validate_amount, validate_currency

logger = structlog.get_logger(__name__)

MAX_RECEIPT_LENGTH = 40


@dataclass(frozen=True)
class GatewayOrder:
    gateway_order_ref: str
    raw: Dict[str, Any] = field(default_factory=dict)


class OrderGateway(ABC):
    """Base class: argument checks shared by every gateway."""

    name = "base"

    def __init__(self, supported_currencies: list[str]):
        self.supported_currencies = list(supported_currencies)

    def _check(self, amount, currency: str, local_receipt_id: str) -> None:
        ok, reason = validate_amount(amount)
        if not ok:
            raise InvalidAmount(reason)
        if not validate_currency(currency, self.supported_currencies):
            raise ValidationError(f"Unsupported currency: {currency!r}")
        if not local_receipt_id or len(local_receipt_id) > MAX_RECEIPT_LENGTH:
            raise ValidationError("Receipt id must be 1-40 characters")

    @abstractmethod
    def create_order(
        self,
        amount: int,
        currency: str,
        local_receipt_id: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> GatewayOrder:
        """Register an order with the gateway and return its reference."""


class RazorpayOrderGateway(OrderGateway):
    """Razorpay Orders API client."""

    name = "razorpay"

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_base: str,
        timeout: float,
        supported_currencies: list[str],
        session: Optional[requests.Session] = None,
    ):
        super().__init__(supported_currencies)
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    @staticmethod
    def _error_description(resp) -> Dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            return {}
        if not isinstance(body, dict):
            return {}
        return body.get("error") or {}

    def create_order(self, amount, currency, local_receipt_id, notes=None) -> GatewayOrder:
        self._check(amount, currency, local_receipt_id)
        if not self.key_id or not self.key_secret:
            raise InvalidCredentials("Payment gateway credentials are not configured")

        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": local_receipt_id,
            "notes": notes or {},
        }
        try:
            resp = self.session.post(
                f"{self.api_base}/orders",
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            logger.warning("gateway_timeout", receipt=local_receipt_id, timeout=self.timeout)
            raise GatewayUnavailable("Payment gateway timed out, please retry") from exc
        except requests.RequestException as exc:
            logger.warning("gateway_transport_error", receipt=local_receipt_id, error=str(exc))
            raise GatewayUnavailable("Payment gateway unreachable, please retry") from exc

        logger.info("gateway_create_order", receipt=local_receipt_id, status_code=resp.status_code)

        if resp.status_code == 401:
            raise InvalidCredentials("Payment gateway rejected the configured credentials")
        if resp.status_code == 400:
            error = self._error_description(resp)
            description = error.get("description") or "Order rejected by gateway"
            logger.error("gateway_rejected_order", receipt=local_receipt_id, error=error)
            if error.get("field") == "amount":
                raise InvalidAmount(description)
            raise ValidationError(description)
        if resp.status_code >= 400:
            logger.error("gateway_error_status", receipt=local_receipt_id, status_code=resp.status_code)
            raise GatewayUnavailable(f"Payment gateway returned HTTP {resp.status_code}, please retry")

        try:
            data = resp.json()
        except ValueError as exc:
            raise GatewayUnavailable("Payment gateway returned an unreadable response") from exc

        order_ref = data.get("id") if isinstance(data, dict) else None
        if not order_ref:
            raise GatewayUnavailable("Payment gateway response carried no order id")
        return GatewayOrder(gateway_order_ref=order_ref, raw=data)


class SandboxOrderGateway(OrderGateway):
    """Local stand-in that never leaves the process."""

    name = "sandbox"

    def create_order(self, amount, currency, local_receipt_id, notes=None) -> GatewayOrder:
        self._check(amount, currency, local_receipt_id)
        order_ref = f"order_{uuid.uuid4().hex[:14]}"
        raw = {
            "id": order_ref,
            "entity": "order",
            "amount": amount,
            "currency": currency,
            "receipt": local_receipt_id,
            "status": "created",
            "notes": notes or {},
            "created_at": int(time.time()),
        }
        logger.info("sandbox_order_created", order_ref=order_ref, receipt=local_receipt_id)
        return GatewayOrder(gateway_order_ref=order_ref, raw=raw)


def build_order_gateway(settings) -> OrderGateway:
    """Pick the gateway implementation named by GATEWAY_MODE."""
    if settings.GATEWAY_MODE == "sandbox":
        return SandboxOrderGateway(settings.SUPPORTED_CURRENCIES)
    if settings.GATEWAY_MODE == "razorpay":
        return RazorpayOrderGateway(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            api_base=settings.RAZORPAY_API_BASE,
            timeout=settings.GATEWAY_TIMEOUT_SECONDS,
            supported_currencies=settings.SUPPORTED_CURRENCIES,
        )
    raise ValueError(f"Unknown GATEWAY_MODE: {settings.GATEWAY_MODE!r}")
