"""Payment provider abstraction layer.

The reconciliation services talk to a ``PaymentProviderBase``; the Stripe
implementation translates SDK objects into provider fact snapshots.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

import stripe

from app.core.config import settings
from app.core.errors import ProviderError
from app.schemas.provider import (
    BillingCycleAnchor,
    InvoiceFacts,
    InvoicePreviewFacts,
    InvoicePreviewLine,
    PaymentFacts,
    PriceFacts,
    ProrationBehavior,
    SubscriptionCreateOptions,
    SubscriptionFacts,
)


class PaymentProviderBase(ABC):
    """Subscription operations the billing services need from a provider."""

    @abstractmethod
    def create_customer(self, email: str) -> str:
        """Create a provider customer and return its reference."""
        pass  # pragma: no cover

    @abstractmethod
    def get_subscription(self, subscription_id: str) -> SubscriptionFacts:
        pass  # pragma: no cover

    @abstractmethod
    def update_subscription_item(
        self,
        subscription_id: str,
        item_id: str,
        new_price_id: str,
        proration_behavior: ProrationBehavior,
        billing_cycle_anchor: BillingCycleAnchor,
    ) -> SubscriptionFacts:
        """Swap the price on a subscription item."""
        pass  # pragma: no cover

    @abstractmethod
    def get_price(self, price_id: str) -> PriceFacts:
        pass  # pragma: no cover

    @abstractmethod
    def create_invoice_preview(
        self, customer_id: str, item_id: str, new_price_id: str
    ) -> InvoicePreviewFacts:
        """Build a hypothetical invoice for swapping ``item_id`` to ``new_price_id``."""
        pass  # pragma: no cover

    @abstractmethod
    def create_subscription(
        self,
        customer_id: str,
        price_id: str,
        payment_method_id: str,
        options: SubscriptionCreateOptions | None = None,
    ) -> SubscriptionFacts:
        pass  # pragma: no cover

    @abstractmethod
    def cancel_subscription(self, subscription_id: str, at_period_end: bool) -> SubscriptionFacts:
        pass  # pragma: no cover


def _timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromtimestamp(int(value), tz=UTC)


def _ref(value: Any) -> str | None:
    """Return the id of an expandable field (plain id or expanded object)."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return value.get("id")
    return None


def subscription_facts_from_object(obj: Mapping[str, Any]) -> SubscriptionFacts:
    """Build SubscriptionFacts from a Stripe subscription object or its JSON payload."""
    items = (obj.get("items") or {}).get("data") or []
    item = items[0] if items else None
    price = item.get("price") if item else None
    if isinstance(price, str):
        price = {"id": price}

    latest_invoice = obj.get("latest_invoice")
    amount_due = latest_invoice.get("amount_due") if isinstance(latest_invoice, Mapping) else None

    return SubscriptionFacts(
        id=obj["id"],
        customer_id=_ref(obj.get("customer")),
        status=obj["status"],
        cancel_at_period_end=bool(obj.get("cancel_at_period_end")),
        trial_end=_timestamp(obj.get("trial_end")),
        cancel_at=_timestamp(obj.get("cancel_at")),
        ended_at=_timestamp(obj.get("ended_at")),
        item_id=item.get("id") if item else None,
        price_id=price.get("id") if price else None,
        price_amount=price.get("unit_amount") if price else None,
        # Newer API versions report the period on the item, older ones on the subscription
        current_period_end=_timestamp(
            (item.get("current_period_end") if item else None) or obj.get("current_period_end")
        ),
        latest_invoice_amount_due=amount_due,
    )


def price_facts_from_object(obj: Mapping[str, Any]) -> PriceFacts:
    recurring = obj.get("recurring") or {}
    return PriceFacts(
        id=obj["id"],
        amount=obj.get("unit_amount") or 0,
        currency=obj.get("currency") or "usd",
        recurring_interval=recurring.get("interval"),
        recurring_interval_count=recurring.get("interval_count"),
        metadata={str(k): str(v) for k, v in (obj.get("metadata") or {}).items()},
    )


def invoice_facts_from_object(obj: Mapping[str, Any]) -> InvoiceFacts:
    subscription_id = _ref(obj.get("subscription"))
    if subscription_id is None:
        parent = obj.get("parent") or {}
        subscription_id = _ref((parent.get("subscription_details") or {}).get("subscription"))

    transitions = obj.get("status_transitions") or {}
    return InvoiceFacts(
        id=obj.get("id"),
        customer_id=_ref(obj.get("customer")),
        subscription_id=subscription_id,
        billing_reason=obj.get("billing_reason"),
        amount_paid=obj.get("amount_paid") or 0,
        voided_at=_timestamp(transitions.get("voided_at")),
    )


def payment_facts_from_object(obj: Mapping[str, Any]) -> PaymentFacts:
    return PaymentFacts(id=obj.get("id"), customer_id=_ref(obj.get("customer")))


def invoice_preview_facts_from_object(obj: Mapping[str, Any]) -> InvoicePreviewFacts:
    lines = (obj.get("lines") or {}).get("data") or []
    return InvoicePreviewFacts(
        line_items=[
            InvoicePreviewLine(amount=line.get("amount") or 0, description=line.get("description"))
            for line in lines
        ],
        amount_due=obj.get("amount_due") or 0,
        currency=obj.get("currency") or "usd",
    )


@contextmanager
def _provider_call(action: str) -> Iterator[None]:
    """Translate Stripe SDK errors into ProviderError, keeping the provider code."""
    try:
        yield
    except stripe.StripeError as e:
        message = getattr(e, "user_message", None) or str(e) or f"Stripe {action} failed"
        raise ProviderError(message, code=getattr(e, "code", None)) from e


class StripeProvider(PaymentProviderBase):
    """Stripe implementation backed by a per-instance ``StripeClient``."""

    SUBSCRIPTION_EXPAND = ["items.data.price", "latest_invoice"]

    def __init__(self, api_key: str | None = None, client: Any = None):
        self.api_key = api_key or settings.stripe_api_key
        self._client = client

    @property
    def client(self) -> Any:
        """Lazily build the client so a missing key only fails on first use."""
        if self._client is None:
            if not self.api_key:
                raise ProviderError("Stripe API key is not configured", code="missing_api_key")
            self._client = stripe.StripeClient(self.api_key)
        return self._client

    def create_customer(self, email: str) -> str:
        with _provider_call("customer creation"):
            customer = self.client.v1.customers.create(params={"email": email})
        return str(customer["id"])

    def get_subscription(self, subscription_id: str) -> SubscriptionFacts:
        with _provider_call("subscription lookup"):
            subscription = self.client.v1.subscriptions.retrieve(
                subscription_id, params={"expand": self.SUBSCRIPTION_EXPAND}
            )
        return subscription_facts_from_object(subscription)

    def update_subscription_item(
        self,
        subscription_id: str,
        item_id: str,
        new_price_id: str,
        proration_behavior: ProrationBehavior,
        billing_cycle_anchor: BillingCycleAnchor,
    ) -> SubscriptionFacts:
        params: dict[str, Any] = {
            "items": [{"id": item_id, "price": new_price_id}],
            "proration_behavior": proration_behavior.value,
            "expand": self.SUBSCRIPTION_EXPAND,
        }
        if billing_cycle_anchor == BillingCycleAnchor.NOW:
            params["billing_cycle_anchor"] = BillingCycleAnchor.NOW.value

        with _provider_call("subscription update"):
            subscription = self.client.v1.subscriptions.update(subscription_id, params=params)
        return subscription_facts_from_object(subscription)

    def get_price(self, price_id: str) -> PriceFacts:
        with _provider_call("price lookup"):
            price = self.client.v1.prices.retrieve(price_id)
        return price_facts_from_object(price)

    def create_invoice_preview(
        self, customer_id: str, item_id: str, new_price_id: str
    ) -> InvoicePreviewFacts:
        params = {
            "customer": customer_id,
            "subscription_details": {
                "items": [{"id": item_id, "price": new_price_id}],
                "proration_behavior": ProrationBehavior.CREATE_PRORATIONS.value,
            },
        }
        with _provider_call("invoice preview"):
            invoice = self.client.v1.invoices.create_preview(params=params)
        return invoice_preview_facts_from_object(invoice)

    def create_subscription(
        self,
        customer_id: str,
        price_id: str,
        payment_method_id: str,
        options: SubscriptionCreateOptions | None = None,
    ) -> SubscriptionFacts:
        params: dict[str, Any] = {
            "customer": customer_id,
            "default_payment_method": payment_method_id,
            "items": [{"price": price_id}],
            "expand": self.SUBSCRIPTION_EXPAND,
        }
        if options is None:
            # Invoice and PaymentIntent are created and must be confirmed by the client
            params["payment_behavior"] = "default_incomplete"
            params["payment_settings"] = {
                "save_default_payment_method": "on_subscription",
                "payment_method_types": ["card"],
            }
        else:
            params["collection_method"] = "charge_automatically"
            if options.backdate_start_date is not None:
                params["backdate_start_date"] = int(options.backdate_start_date.timestamp())
            if options.billing_cycle_anchor is not None:
                params["billing_cycle_anchor"] = int(options.billing_cycle_anchor.timestamp())
            if options.proration_behavior is not None:
                params["proration_behavior"] = options.proration_behavior.value
            if options.trial_end is not None:
                params["trial_end"] = int(options.trial_end.timestamp())

        with _provider_call("subscription creation"):
            self.client.v1.payment_methods.attach(
                payment_method_id, params={"customer": customer_id}
            )
            self.client.v1.customers.update(
                customer_id,
                params={"invoice_settings": {"default_payment_method": payment_method_id}},
            )
            subscription = self.client.v1.subscriptions.create(params=params)
        return subscription_facts_from_object(subscription)

    def cancel_subscription(self, subscription_id: str, at_period_end: bool) -> SubscriptionFacts:
        with _provider_call("subscription cancellation"):
            if at_period_end:
                subscription = self.client.v1.subscriptions.update(
                    subscription_id, params={"cancel_at_period_end": True}
                )
            else:
                subscription = self.client.v1.subscriptions.cancel(subscription_id)
        return subscription_facts_from_object(subscription)


def get_payment_provider(api_key: str | None = None) -> PaymentProviderBase:
    """Build the configured payment provider."""
    return StripeProvider(api_key=api_key or settings.stripe_api_key)
