"""Stripe checkout for the subscription plans offered on the sales page."""

from __future__ import annotations

import logging
from typing import Optional

import stripe
from pydantic import BaseModel

from ..core.config import checkout_urls, load_config, stripe_price_id, stripe_secret_key

logger = logging.getLogger(__name__)


class PaymentError(RuntimeError):
    """Raised when a checkout session cannot be created."""


class Product(BaseModel):
    plan: str
    name: str
    description: str
    mode: str = "subscription"


class CheckoutSession(BaseModel):
    id: str
    url: Optional[str] = None


PRODUCTS = {
    "monthly": Product(
        plan="monthly",
        name="Plano de Assinatura Personalizado Mensal",
        description="Plano de Assinatura Personalizado Mensal",
    ),
    "annual": Product(
        plan="annual",
        name="Plano de Assinatura Personalizado Anual",
        description="Plano de Assinatura Personalizado Anual",
    ),
}


class StripeGateway:
    """Create hosted checkout sessions through the Stripe API."""

    def __init__(self, api_key: str, success_url: str, cancel_url: str) -> None:
        if not api_key:
            raise PaymentError("Stripe secret key is not configured")
        self.api_key = api_key
        self.success_url = success_url
        self.cancel_url = cancel_url

    @classmethod
    def from_config(cls, cfg: Optional[dict] = None) -> "StripeGateway":
        cfg = cfg if cfg is not None else load_config()
        success_url, cancel_url = checkout_urls(cfg)
        return cls(stripe_secret_key(cfg), success_url, cancel_url)

    def create_checkout_session(
        self, price_id: str, mode: str = "subscription"
    ) -> CheckoutSession:
        """Verify ``price_id`` and open a checkout session for it.

        Raises:
            PaymentError: if the price is unknown or Stripe rejects the request.
        """
        if not price_id:
            raise PaymentError("Price id is required")
        if mode not in ("subscription", "payment"):
            raise PaymentError(f"Unsupported checkout mode: {mode}")
        try:
            stripe.Price.retrieve(price_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.error("Process: checkout | Price %s not found: %s", price_id, exc)
            raise PaymentError("Invalid price id or price not found") from exc

        params = {
            "payment_method_types": ["card"],
            "line_items": [{"price": price_id, "quantity": 1}],
            "mode": mode,
            "success_url": self.success_url,
            "cancel_url": self.cancel_url,
            "allow_promotion_codes": True,
            "billing_address_collection": "required",
        }
        # customer_creation is only accepted for one-time payments
        if mode == "payment":
            params["customer_creation"] = "always"
        try:
            session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        except stripe.StripeError as exc:
            logger.error("Process: checkout | Stripe API error: %s", exc)
            raise PaymentError(str(exc)) from exc
        logger.info("Process: checkout | Session %s created for %s", session.id, price_id)
        return CheckoutSession(id=session.id, url=session.url)

    def checkout_plan(self, plan: str, cfg: Optional[dict] = None) -> CheckoutSession:
        """Open a checkout session for one of :data:`PRODUCTS`."""
        product = PRODUCTS.get(plan)
        if product is None:
            raise PaymentError(f"Unknown plan: {plan}")
        return self.create_checkout_session(stripe_price_id(plan, cfg), product.mode)
