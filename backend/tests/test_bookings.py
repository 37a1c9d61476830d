"""
Natours Backend — Booking and Payment Tests
============================================

What:  Checkout session creation, the signed payment webhook, and the
       admin booking routes.
How:   Webhook payloads are signed with the same HMAC gateway the app uses
       (SignedPaymentGateway with the test secret), so the route sees
       exactly what a provider would send.

What we test:
    ✅ Checkout session carries the tour, price in cents and return URLs
    ✅ Valid signature + checkout.session.completed → booking created
    ✅ Missing/invalid signature → 400, no booking
    ✅ Other event types acknowledged and ignored
    ✅ Webhook is not rate limited
    ✅ Booking CRUD restricted to admin and lead-guide
"""

import json
from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from natours.exceptions import WebhookSignatureError
from natours.main import create_app
from natours.models import Booking
from natours.services.payment_gateway import (
    CHECKOUT_COMPLETED,
    SIGNATURE_HEADER,
    PaymentAdapter,
    SignedPaymentGateway,
)
from tests.conftest import WEBHOOK_SECRET, build_settings

gateway = SignedPaymentGateway(WEBHOOK_SECRET, currency="usd", checkout_url="https://pay.test")


def signed(event):
    payload = json.dumps(event).encode()
    return payload, {SIGNATURE_HEADER: gateway.sign(payload), "content-type": "application/json"}


def completed_event(tour, email, amount_total=49700):
    return {
        "type": CHECKOUT_COMPLETED,
        "data": {
            "object": {
                "id": "cs_test",
                "client_reference_id": str(tour.id),
                "customer_email": email,
                "amount_total": amount_total,
            }
        },
    }


async def count_bookings(database):
    async with database.session() as session:
        return (await session.execute(select(func.count(Booking.id)))).scalar_one()


class TestGateway:
    def test_verify_round_trip(self):
        payload, headers = signed({"type": "ping"})
        assert gateway.verify_webhook(payload, headers) == {"type": "ping"}

    def test_tampered_payload(self):
        payload, headers = signed({"type": "ping"})
        with pytest.raises(WebhookSignatureError):
            gateway.verify_webhook(payload + b" ", headers)

    def test_missing_signature(self):
        with pytest.raises(WebhookSignatureError) as info:
            gateway.verify_webhook(b"{}", {})
        assert info.value.message == "Webhook error: missing signature"

    def test_non_ascii_signature_is_invalid(self):
        payload, _ = signed({"type": "ping"})
        with pytest.raises(WebhookSignatureError) as info:
            gateway.verify_webhook(payload, {SIGNATURE_HEADER: "\u00e9abc"})
        assert info.value.message == "Webhook error: invalid signature"


class TestCheckoutSession:
    @pytest.mark.asyncio
    async def test_creates_session(self, client, make_tour, make_user, auth_headers):
        tour = await make_tour(name="The Sea Explorer", price=497)
        user = await make_user(email="buyer@natours.io")
        response = await client.get(
            f"/api/v1/bookings/checkout-session/{tour.id}", headers=auth_headers(user)
        )
        assert response.status_code == 200
        session = response.json()["session"]
        assert session["client_reference_id"] == str(tour.id)
        assert session["customer_email"] == "buyer@natours.io"
        assert session["amount_total"] == 49700
        assert session["success_url"] == "http://test/my-tours?alert=booking"
        assert session["cancel_url"] == "http://test/tour/the-sea-explorer"
        assert session["line_items"][0]["name"] == "The Sea Explorer Tour"

    @pytest.mark.asyncio
    async def test_requires_login(self, client, make_tour):
        tour = await make_tour()
        response = await client.get(f"/api/v1/bookings/checkout-session/{tour.id}")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_tour(self, client, make_user, auth_headers):
        response = await client.get(
            "/api/v1/bookings/checkout-session/00000000-0000-0000-0000-000000000000",
            headers=auth_headers(await make_user()),
        )
        assert response.status_code == 404


class TestWebhook:
    @pytest.mark.asyncio
    async def test_completed_checkout_creates_booking(self, client, database, make_tour, make_user):
        tour = await make_tour()
        await make_user(email="payer@natours.io")
        payload, headers = signed(completed_event(tour, "payer@natours.io"))

        response = await client.post("/webhook-checkout", content=payload, headers=headers)
        assert response.status_code == 200
        assert response.json() == {"received": True}

        async with database.session() as session:
            booking = (await session.execute(select(Booking))).unique().scalar_one()
        assert booking.tour_id == tour.id
        assert booking.price == 497
        assert booking.paid is True

    @pytest.mark.asyncio
    async def test_invalid_signature(self, client, database, make_tour, make_user):
        tour = await make_tour()
        await make_user(email="payer@natours.io")
        payload, headers = signed(completed_event(tour, "payer@natours.io"))
        headers[SIGNATURE_HEADER] = SignedPaymentGateway("other-secret").sign(payload)

        response = await client.post("/webhook-checkout", content=payload, headers=headers)
        assert response.status_code == 400
        assert "Webhook error: invalid signature" in response.text
        assert await count_bookings(database) == 0

    @pytest.mark.asyncio
    async def test_missing_signature(self, client):
        response = await client.post(
            "/webhook-checkout",
            content=b'{"type": "checkout.session.completed"}',
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_non_ascii_signature_header(self, client):
        payload, headers = signed({"type": "ping"})
        headers[SIGNATURE_HEADER] = b"\xe9abc"
        response = await client.post("/webhook-checkout", content=payload, headers=headers)
        assert response.status_code == 400
        assert "Webhook error: invalid signature" in response.text

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", [["not", "an", "object"], "text", {"object": [1, 2]}])
    async def test_malformed_event_data(self, client, database, data):
        payload, headers = signed({"type": CHECKOUT_COMPLETED, "data": data})
        response = await client.post("/webhook-checkout", content=payload, headers=headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid event data"
        assert await count_bookings(database) == 0

    @pytest.mark.asyncio
    async def test_reformatted_payload_fails_verification(self, client, make_tour, make_user):
        """Re-serialized JSON changes the bytes, so the signature no longer matches."""
        tour = await make_tour()
        await make_user(email="payer@natours.io")
        event = completed_event(tour, "payer@natours.io")
        payload, headers = signed(event)
        reformatted = json.dumps(event, indent=2).encode()

        response = await client.post("/webhook-checkout", content=reformatted, headers=headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_other_events_ignored(self, client, database):
        payload, headers = signed({"type": "payment_intent.created", "data": {"object": {}}})
        response = await client.post("/webhook-checkout", content=payload, headers=headers)
        assert response.status_code == 200
        assert await count_bookings(database) == 0

    @pytest.mark.asyncio
    async def test_webhook_not_rate_limited(self, database):
        app = create_app(build_settings(rate_limit_requests=1), database)
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            payload, headers = signed({"type": "ping"})
            for _ in range(3):
                response = await c.post("/webhook-checkout", content=payload, headers=headers)
                assert response.status_code == 200


class TestBookingCrud:
    @pytest.mark.asyncio
    async def test_user_cannot_list(self, client, make_user, auth_headers):
        response = await client.get("/api/v1/bookings", headers=auth_headers(await make_user()))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_lead_guide_manages_bookings(self, client, make_tour, make_user, auth_headers):
        tour = await make_tour(name="Booked Tour Name")
        customer = await make_user()
        headers = auth_headers(await make_user(role="lead-guide"))

        created = await client.post(
            "/api/v1/bookings",
            json={"tour": str(tour.id), "user": str(customer.id), "price": 397},
            headers=headers,
        )
        assert created.status_code == 201
        booking = created.json()["data"]["data"]
        assert booking["tour"]["name"] == "Booked Tour Name"
        assert booking["paid"] is True

        listed = await client.get("/api/v1/bookings", headers=headers)
        assert listed.json()["results"] == 1

        updated = await client.patch(
            f"/api/v1/bookings/{booking['id']}", json={"paid": False}, headers=headers
        )
        assert updated.json()["data"]["data"]["paid"] is False

        deleted = await client.delete(f"/api/v1/bookings/{booking['id']}", headers=headers)
        assert deleted.status_code == 204

    @pytest.mark.asyncio
    async def test_booking_for_missing_tour(self, client, make_user, auth_headers):
        customer = await make_user()
        response = await client.post(
            "/api/v1/bookings",
            json={
                "tour": "00000000-0000-0000-0000-000000000000",
                "user": str(customer.id),
                "price": 100,
            },
            headers=auth_headers(await make_user(role="admin")),
        )
        assert response.status_code == 404


class TestInjectedPaymentAdapter:
    @pytest.mark.asyncio
    async def test_routes_use_app_adapter(self, settings, database, make_tour, make_user, auth_headers):
        """The checkout route talks to whatever adapter the app was built with."""
        payments = MagicMock(spec=PaymentAdapter)
        payments.create_session.return_value = {"id": "cs_fake", "url": "https://pay.test/cs_fake"}
        app = create_app(settings, database, payments=payments)

        tour = await make_tour(name="The Park Camper")
        user = await make_user(email="camper@natours.io")
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            response = await c.get(
                f"/api/v1/bookings/checkout-session/{tour.id}", headers=auth_headers(user)
            )

        assert response.json()["session"]["id"] == "cs_fake"
        kwargs = payments.create_session.call_args.kwargs
        assert kwargs["customer_email"] == "camper@natours.io"
        assert kwargs["cancel_url"] == "http://test/tour/the-park-camper"
        assert kwargs["tour"].id == tour.id
