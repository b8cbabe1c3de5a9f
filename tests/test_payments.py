import pytest
from httpx import AsyncClient

from easyworkout.config import settings
from easyworkout.services.payment_service import PaidCustomer

API = settings.API_PREFIX

CHECKOUT = {
    "email": "new.coach@example.com",
    "priceId": "price_123",
    "successUrl": "https://planner.test/success",
    "cancelUrl": "https://planner.test/cancel",
    "customerName": "New Coach",
}


@pytest.mark.asyncio
async def test_checkout_session_created(client: AsyncClient, payment_provider):
    response = await client.post(f"{API}/create-checkout-session", json=CHECKOUT)

    assert response.status_code == 200
    session_id = response.json()["sessionId"]
    assert session_id.startswith("cs_test_")
    request = payment_provider.sessions[session_id]
    assert (request.price_id, request.customer_name) == ("price_123", "New Coach")


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["email", "priceId", "successUrl", "cancelUrl"])
async def test_checkout_requires_fields(client: AsyncClient, missing):
    response = await client.post(f"{API}/create-checkout-session", json={**CHECKOUT, missing: ""})

    assert response.status_code == 400
    assert response.json()["message"] == "Missing required fields"


@pytest.mark.asyncio
async def test_checkout_provider_failure(client: AsyncClient, payment_provider):
    payment_provider.fail_with = "card_declined"

    response = await client.post(f"{API}/create-checkout-session", json=CHECKOUT)

    assert response.status_code == 500
    assert response.json()["message"] == "Failed to create checkout session"


@pytest.mark.asyncio
async def test_checkout_is_rate_limited(client: AsyncClient):
    statuses = [
        (await client.post(f"{API}/create-checkout-session", json=CHECKOUT)).status_code
        for _ in range(settings.CHECKOUT_RATE_LIMIT + 1)
    ]
    assert statuses[-1] == 429
    assert statuses.count(200) == settings.CHECKOUT_RATE_LIMIT


@pytest.mark.asyncio
async def test_subscription_success_creates_paid_account(client: AsyncClient, payment_provider, identity_provider):
    session_id = (await client.post(f"{API}/create-checkout-session", json=CHECKOUT)).json()["sessionId"]
    customer_id = payment_provider.customers[session_id].id

    response = await client.post(
        f"{API}/subscription-success", params={"session_id": session_id}, follow_redirects=False
    )

    assert response.status_code == 303
    assert response.headers["location"] == settings.STRIPE_SUCCESS_REDIRECT_URL
    [user] = identity_provider.users.values()
    assert user["email"] == "new.coach@example.com"
    assert user["email_confirm"] is True
    assert user["user_metadata"] == {"stripe_customer_id": customer_id, "is_paid": True}


@pytest.mark.asyncio
@pytest.mark.parametrize("customer, message", [
    (PaidCustomer(id="cus_gone", email=None, deleted=True), "Customer was deleted"),
    (PaidCustomer(id="cus_anon", email=None), "No customer email found"),
])
async def test_subscription_success_rejects_unusable_customer(
    client: AsyncClient, payment_provider, identity_provider, customer, message
):
    payment_provider.customers["cs_test_manual"] = customer

    response = await client.post(f"{API}/subscription-success", params={"session_id": "cs_test_manual"})

    assert response.status_code == 400
    assert response.json()["message"] == message
    assert identity_provider.users == {}


@pytest.mark.asyncio
async def test_subscription_success_lookup_failure(client: AsyncClient):
    response = await client.post(f"{API}/subscription-success", params={"session_id": "cs_unknown"})
    assert response.status_code == 500


@pytest.mark.asyncio
async def test_subscription_success_needs_session_id(client: AsyncClient):
    response = await client.post(f"{API}/subscription-success")
    assert response.status_code == 400
