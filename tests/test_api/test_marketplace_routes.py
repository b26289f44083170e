from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from runnmate.api.deps import get_email_sender
from runnmate.api.main import app
from runnmate.db.connection import get_db


@pytest.fixture
def session() -> Iterator[AsyncMock]:
    mock_session = AsyncMock()
    app.dependency_overrides[get_db] = lambda: mock_session
    yield mock_session
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def email_sender() -> Iterator[AsyncMock]:
    sender = AsyncMock()
    sender.send.return_value = True
    app.dependency_overrides[get_email_sender] = lambda: sender
    yield sender
    app.dependency_overrides.pop(get_email_sender, None)


def _contact(**overrides: str) -> dict[str, str]:
    body = {
        "name": "Ann",
        "email": "ann@example.com",
        "subject": "Sizing question",
        "message": "Do these run small or true to size?",
    }
    body.update(overrides)
    return body


def _offer(**overrides: object) -> dict[str, object]:
    body: dict[str, object] = {
        "sellerEmail": "seller@example.com",
        "listingTitle": "Nike Pegasus 40",
        "listingPrice": 100,
        "listingSize": 42.5,
        "offerPrice": 80,
        "buyerName": "Ben",
        "buyerEmail": "buyer@example.com",
        "message": "Can pick up tomorrow",
    }
    body.update(overrides)
    return body


class TestContact:
    def test_missing_field(self, email_sender: AsyncMock) -> None:
        client = TestClient(app)
        response = client.post("/api/contact", json=_contact(subject=""))
        assert response.status_code == 400
        assert response.json() == {"error": "All fields are required"}
        email_sender.send.assert_not_awaited()

    def test_invalid_email(self, email_sender: AsyncMock) -> None:
        client = TestClient(app)
        response = client.post("/api/contact", json=_contact(email="not-an-email"))
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid email address"}

    def test_short_message(self, email_sender: AsyncMock) -> None:
        client = TestClient(app)
        response = client.post("/api/contact", json=_contact(message="too short"))
        assert response.status_code == 400
        assert response.json() == {"error": "Message must be at least 10 characters long"}

    def test_success(self, email_sender: AsyncMock) -> None:
        client = TestClient(app)
        response = client.post("/api/contact", json=_contact())
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Message sent successfully"}
        assert email_sender.send.call_args.kwargs["reply_to"] == "ann@example.com"

    def test_send_failure(self, email_sender: AsyncMock) -> None:
        email_sender.send.return_value = False
        client = TestClient(app)
        response = client.post("/api/contact", json=_contact())
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to send message"}


class TestLotterySignup:
    def test_email_required(self, session: AsyncMock) -> None:
        client = TestClient(app)
        response = client.post("/api/lottery-signup", json={"lotteryConsent": True})
        assert response.status_code == 400
        assert response.json() == {"error": "Email is required"}

    def test_malformed_email(self, session: AsyncMock) -> None:
        with patch("runnmate.api.routes.marketplace.signup_for_launch", new_callable=AsyncMock) as mock_signup:
            client = TestClient(app)
            response = client.post("/api/lottery-signup", json={"email": "not-an-email"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid email address"}
        mock_signup.assert_not_awaited()

    def test_signup_with_consent(self, session: AsyncMock) -> None:
        with patch("runnmate.api.routes.marketplace.signup_for_launch", new_callable=AsyncMock) as mock_signup:
            client = TestClient(app)
            response = client.post(
                "/api/lottery-signup",
                json={"email": "a@example.com", "lotteryConsent": True, "shoeInterest": "trail"},
            )
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Successfully entered in lottery and signed up for launch notifications",
        }
        kwargs = mock_signup.call_args.kwargs
        assert kwargs["lottery_consent"] is True
        assert kwargs["shoe_interest"] == "trail"

    def test_signup_without_consent(self, session: AsyncMock) -> None:
        with patch("runnmate.api.routes.marketplace.signup_for_launch", new_callable=AsyncMock) as mock_signup:
            client = TestClient(app)
            response = client.post("/api/lottery-signup", json={"email": "a@example.com"})
        assert response.json()["message"] == "Successfully signed up for launch notifications"
        assert mock_signup.call_args.kwargs["lottery_consent"] is False

    def test_database_failure(self, session: AsyncMock) -> None:
        with patch(
            "runnmate.api.routes.marketplace.signup_for_launch",
            new_callable=AsyncMock,
            side_effect=SQLAlchemyError("connection lost"),
        ):
            client = TestClient(app)
            response = client.post("/api/lottery-signup", json={"email": "a@example.com"})
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to save signup"}


class TestSendOffer:
    def test_missing_fields(self, session: AsyncMock, email_sender: AsyncMock) -> None:
        client = TestClient(app)
        response = client.post("/api/send-offer", json=_offer(buyerName=""))
        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}

    def test_invalid_email(self, session: AsyncMock, email_sender: AsyncMock) -> None:
        client = TestClient(app)
        response = client.post("/api/send-offer", json=_offer(sellerEmail="seller"))
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid email address"}

    def test_negative_price(self, session: AsyncMock, email_sender: AsyncMock) -> None:
        client = TestClient(app)
        response = client.post("/api/send-offer", json=_offer(offerPrice=-5))
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid price values"}

    def test_success_without_listing_id(self, session: AsyncMock, email_sender: AsyncMock) -> None:
        with patch("runnmate.api.routes.marketplace.record_offer", new_callable=AsyncMock) as mock_record:
            client = TestClient(app)
            response = client.post("/api/send-offer", json=_offer())
        assert response.status_code == 200
        assert response.json() == {"message": "Offer sent successfully"}
        mock_record.assert_not_awaited()
        kwargs = email_sender.send.call_args.kwargs
        assert kwargs["to"] == "seller@example.com"
        assert kwargs["reply_to"] == "buyer@example.com"

    def test_listing_id_records_offer(self, session: AsyncMock, email_sender: AsyncMock) -> None:
        listing_id = uuid4()
        with patch("runnmate.api.routes.marketplace.record_offer", new_callable=AsyncMock) as mock_record:
            client = TestClient(app)
            response = client.post("/api/send-offer", json=_offer(listingId=str(listing_id)))
        assert response.status_code == 200
        kwargs = mock_record.call_args.kwargs
        assert kwargs["listing_id"] == listing_id
        assert kwargs["offer_price"] == 80

    def test_send_failure(self, session: AsyncMock, email_sender: AsyncMock) -> None:
        email_sender.send.return_value = False
        client = TestClient(app)
        response = client.post("/api/send-offer", json=_offer())
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to send offer"}
