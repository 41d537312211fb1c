from __future__ import annotations

import logging
from typing import Any, Protocol

from opentelemetry import trace

from app.context import get_correlation_id
from app.core.config import get_settings


tracer = trace.get_tracer("app.payments.gateway")
logger = logging.getLogger("app.payments.gateway")

PAID_INVOICE_STATUS = "paid"
CHARGEABLE_SUBSCRIPTION_STATUSES = {"authenticated", "active"}


class PaymentGatewayError(Exception):
    """Raised when the gateway cannot be reached or answers with an error."""


class PaymentGateway(Protocol):
    def fetch_subscription(self, subscription_id: str) -> dict[str, Any]: ...

    def list_invoices(self, subscription_id: str) -> list[dict[str, Any]]: ...

    def create_subscription(self, plan_id: str, total_count: int, notes: dict[str, str]) -> dict[str, Any]: ...


def find_paid_invoice(invoices: list[dict[str, Any]]) -> dict[str, Any] | None:
    for invoice in invoices:
        if invoice.get("status") == PAID_INVOICE_STATUS and invoice.get("payment_id"):
            return invoice
    return None


class RazorpayGateway:
    def __init__(self, key_id: str, key_secret: str, client: Any | None = None) -> None:
        if client is None:
            import razorpay

            client = razorpay.Client(auth=(key_id, key_secret))
        self.client = client

    def fetch_subscription(self, subscription_id: str) -> dict[str, Any]:
        with tracer.start_as_current_span("razorpay.fetch_subscription") as span:
            span.set_attribute("subscription_id", subscription_id)
            span.set_attribute("correlation_id", get_correlation_id() or "")
            try:
                return dict(self.client.subscription.fetch(subscription_id))
            except Exception as exc:
                raise PaymentGatewayError(f"fetch subscription {subscription_id} failed: {exc}") from exc

    def list_invoices(self, subscription_id: str) -> list[dict[str, Any]]:
        with tracer.start_as_current_span("razorpay.list_invoices") as span:
            span.set_attribute("subscription_id", subscription_id)
            span.set_attribute("correlation_id", get_correlation_id() or "")
            try:
                response = self.client.invoice.all({"subscription_id": subscription_id})
            except Exception as exc:
                raise PaymentGatewayError(f"list invoices for {subscription_id} failed: {exc}") from exc
            items = response.get("items", []) if isinstance(response, dict) else []
            span.set_attribute("invoice_count", len(items))
            return [dict(item) for item in items]

    def create_subscription(self, plan_id: str, total_count: int, notes: dict[str, str]) -> dict[str, Any]:
        with tracer.start_as_current_span("razorpay.create_subscription") as span:
            span.set_attribute("plan_id", plan_id)
            span.set_attribute("correlation_id", get_correlation_id() or "")
            data = {
                "plan_id": plan_id,
                "total_count": total_count,
                "customer_notify": 1,
                "notes": notes,
            }
            try:
                subscription = dict(self.client.subscription.create(data=data))
            except Exception as exc:
                raise PaymentGatewayError(f"create subscription for plan {plan_id} failed: {exc}") from exc
            logger.info("razorpay.subscription_created", extra={"subscription_id": subscription.get("id")})
            return subscription


def get_payment_gateway() -> PaymentGateway:
    settings = get_settings()
    return RazorpayGateway(settings.razorpay_key_id, settings.razorpay_key_secret)
