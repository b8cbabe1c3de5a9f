import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from easyworkout.config import settings
from easyworkout.core.exceptions import ProviderError
from easyworkout.core.rate_limit import RateLimitRule, rate_limited
from easyworkout.schemas import ApiModel
from easyworkout.services.identity_service import IdentityProvider, get_identity_provider
from easyworkout.services.payment_service import CheckoutRequest, PaymentProvider, get_payment_provider

logger = logging.getLogger(__name__)

router = APIRouter()

CHECKOUT_RULE = RateLimitRule(
    scope="checkout",
    limit=settings.CHECKOUT_RATE_LIMIT,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)


class CheckoutSessionRequest(ApiModel):
    email: Optional[str] = None
    price_id: Optional[str] = None
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None
    customer_name: Optional[str] = None


@router.post("/create-checkout-session", dependencies=[rate_limited(CHECKOUT_RULE)])
async def create_checkout_session(
    payload: CheckoutSessionRequest,
    provider: Annotated[PaymentProvider, Depends(get_payment_provider)],
):
    required = (payload.email, payload.price_id, payload.success_url, payload.cancel_url)
    if not all(value and value.strip() for value in required):
        raise HTTPException(status_code=400, detail="Missing required fields")
    try:
        session_id = await provider.create_checkout_session(
            CheckoutRequest(
                email=payload.email.strip(),
                price_id=payload.price_id.strip(),
                success_url=payload.success_url.strip(),
                cancel_url=payload.cancel_url.strip(),
                customer_name=payload.customer_name,
            )
        )
    except ProviderError as exc:
        logger.error("Checkout session creation failed: %s", exc.message)
        raise HTTPException(status_code=500, detail="Failed to create checkout session")
    return {"sessionId": session_id}


@router.post("/subscription-success")
async def subscription_success(
    session_id: Annotated[str, Query(min_length=1)],
    payments: Annotated[PaymentProvider, Depends(get_payment_provider)],
    identities: Annotated[IdentityProvider, Depends(get_identity_provider)],
):
    try:
        customer = await payments.get_session_customer(session_id)
    except ProviderError as exc:
        logger.error("Checkout session %s lookup failed: %s", session_id, exc.message)
        raise HTTPException(status_code=500, detail="Failed to process subscription")
    if customer.deleted:
        raise HTTPException(status_code=400, detail="Customer was deleted")
    if not customer.email:
        raise HTTPException(status_code=400, detail="No customer email found")

    try:
        user_id = await identities.create_user(
            customer.email,
            {"stripe_customer_id": customer.id, "is_paid": True},
        )
    except ProviderError as exc:
        logger.error("Account creation for paid customer %s failed: %s", customer.id, exc.message)
        raise HTTPException(status_code=500, detail="Failed to create user account")

    logger.info("Paid account %s created for customer %s", user_id, customer.id)
    return RedirectResponse(url=settings.STRIPE_SUCCESS_REDIRECT_URL, status_code=status.HTTP_303_SEE_OTHER)
