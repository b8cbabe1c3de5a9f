import asyncio
import logging
from dataclasses import dataclass, field

import stripe

from easyworkout.config import settings
from easyworkout.core.exceptions import ProviderError
from easyworkout.editor.tree import new_id

logger = logging.getLogger(__name__)


@dataclass
class CheckoutRequest:
    email: str
    price_id: str
    success_url: str
    cancel_url: str
    customer_name: str | None = None


@dataclass
class PaidCustomer:
    id: str
    email: str | None
    deleted: bool = False


class PaymentProvider:
    async def create_checkout_session(self, request: CheckoutRequest) -> str:
        raise NotImplementedError

    async def get_session_customer(self, session_id: str) -> PaidCustomer:
        raise NotImplementedError


@dataclass
class MockPaymentProvider(PaymentProvider):
    sessions: dict[str, CheckoutRequest] = field(default_factory=dict)
    customers: dict[str, PaidCustomer] = field(default_factory=dict)
    fail_with: str | None = None

    async def create_checkout_session(self, request: CheckoutRequest) -> str:
        if self.fail_with:
            raise ProviderError(self.fail_with)
        session_id = f"cs_test_{new_id()}"
        self.sessions[session_id] = request
        self.customers[session_id] = PaidCustomer(id=f"cus_{new_id()[:14]}", email=request.email)
        return session_id

    async def get_session_customer(self, session_id: str) -> PaidCustomer:
        if self.fail_with:
            raise ProviderError(self.fail_with)
        if session_id not in self.customers:
            raise ProviderError(f"No such checkout session: {session_id}")
        return self.customers[session_id]


class StripePaymentProvider(PaymentProvider):
    """Checkout through Stripe; the SDK is blocking so calls run in a worker thread."""

    def _api_key(self) -> str:
        if not settings.STRIPE_SECRET_KEY:
            raise ProviderError("Missing Stripe configuration")
        return settings.STRIPE_SECRET_KEY

    async def create_checkout_session(self, request: CheckoutRequest) -> str:
        api_key = self._api_key()
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=api_key,
                customer_email=request.email,
                line_items=[{"price": request.price_id, "quantity": 1}],
                mode="subscription",
                success_url=request.success_url,
                cancel_url=request.cancel_url,
                metadata={"customerName": request.customer_name or ""},
            )
        except stripe.StripeError as exc:
            logger.exception("Stripe checkout session creation failed")
            raise ProviderError(exc.user_message or str(exc)) from exc
        return session.id

    async def get_session_customer(self, session_id: str) -> PaidCustomer:
        api_key = self._api_key()
        try:
            session = await asyncio.to_thread(stripe.checkout.Session.retrieve, session_id, api_key=api_key)
            customer = await asyncio.to_thread(stripe.Customer.retrieve, session.customer, api_key=api_key)
        except stripe.StripeError as exc:
            logger.exception("Stripe session lookup failed for %s", session_id)
            raise ProviderError(exc.user_message or str(exc)) from exc
        if getattr(customer, "deleted", False):
            return PaidCustomer(id=customer.id, email=None, deleted=True)
        return PaidCustomer(id=customer.id, email=customer.email)


_provider: PaymentProvider | None = None


def get_payment_provider() -> PaymentProvider:
    global _provider
    if _provider is None:
        if settings.PAYMENT_PROVIDER.lower() == "stripe":
            _provider = StripePaymentProvider()
        else:
            _provider = MockPaymentProvider()
    return _provider
