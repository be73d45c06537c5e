"""
Tests for the Stripe Connect webhook endpoint.

Verifies that the /webhooks/stripe-connect endpoint correctly:
- Validates Stripe-Signature headers and webhook secrets
- Syncs the card-gateway profile on account.updated
- Ignores other event types
- Returns 200 on processing errors to prevent Stripe retries

Stripe signature verification is mocked.
"""

import pytest
import stripe
from unittest.mock import patch, AsyncMock

from app.models.payout_profile import PayoutProfile

from tests.utils.payout import ORGANIZER_ID, create_card_gateway_profile


WEBHOOK_MODULE = "app.api.v1.endpoints.connect_webhooks"
WEBHOOK_URL = "/api/v1/webhooks/stripe-connect"


def _stripe_event(event_type="account.updated", data_object=None, event_id="evt_test_001"):
    return {
        "id": event_id,
        "type": event_type,
        "data": {"object": data_object or {}},
    }


@pytest.fixture
def webhook_secret():
    with patch(f"{WEBHOOK_MODULE}.settings") as mock_settings:
        mock_settings.STRIPE_CONNECT_WEBHOOK_SECRET = "whsec_test"
        yield mock_settings


def _post(client, signature="t=1,v1=abc"):
    headers = {"Content-Type": "application/json"}
    if signature:
        headers["Stripe-Signature"] = signature
    return client.post(WEBHOOK_URL, content=b'{"test": true}', headers=headers)


# =========================================================================== #
# 1. Signature Verification
# =========================================================================== #


class TestSignatureVerification:
    """Tests for webhook signature and secret validation."""

    def test_missing_stripe_signature_returns_400(self, client, webhook_secret):
        response = _post(client, signature=None)

        assert response.status_code == 400
        assert "Missing signature" in response.json()["detail"]

    def test_missing_webhook_secret_returns_500(self, client):
        with patch(f"{WEBHOOK_MODULE}.settings") as mock_settings:
            mock_settings.STRIPE_CONNECT_WEBHOOK_SECRET = ""
            response = _post(client)

        assert response.status_code == 500

    @patch(f"{WEBHOOK_MODULE}.stripe.Webhook.construct_event")
    def test_invalid_signature_returns_400(self, mock_construct, client, webhook_secret):
        mock_construct.side_effect = stripe.SignatureVerificationError("bad", "t=1,v1=abc")

        response = _post(client)

        assert response.status_code == 400
        assert "Invalid signature" in response.json()["detail"]

    @patch(f"{WEBHOOK_MODULE}.stripe.Webhook.construct_event")
    def test_invalid_payload_returns_400(self, mock_construct, client, webhook_secret):
        mock_construct.side_effect = ValueError("not json")

        response = _post(client)

        assert response.status_code == 400
        assert "Invalid payload" in response.json()["detail"]


# =========================================================================== #
# 2. Event handling
# =========================================================================== #


class TestEventHandling:
    @patch(f"{WEBHOOK_MODULE}.stripe.Webhook.construct_event")
    def test_account_updated_syncs_profile(self, mock_construct, client, webhook_secret, db):
        create_card_gateway_profile(db, onboarded=False)
        mock_construct.return_value = _stripe_event(
            data_object={
                "id": "acct_test123",
                "charges_enabled": True,
                "payouts_enabled": True,
                "details_submitted": True,
            }
        )

        response = _post(client)

        assert response.status_code == 200
        assert response.json() == {"status": "processed", "event_id": "evt_test_001"}
        db.expire_all()
        profile = db.query(PayoutProfile).filter_by(organizer_id=ORGANIZER_ID).one()
        assert profile.payouts_enabled is True

    @patch(f"{WEBHOOK_MODULE}.stripe.Webhook.construct_event")
    def test_unhandled_event_ignored(self, mock_construct, client, webhook_secret):
        mock_construct.return_value = _stripe_event(event_type="payout.paid")

        response = _post(client)

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"

    @patch(f"{WEBHOOK_MODULE}.StripeConnectService.handle_account_updated", new_callable=AsyncMock)
    @patch(f"{WEBHOOK_MODULE}.stripe.Webhook.construct_event")
    def test_processing_error_returns_200(self, mock_construct, mock_handle, client, webhook_secret):
        mock_construct.return_value = _stripe_event(data_object={"id": "acct_test123"})
        mock_handle.side_effect = RuntimeError("db down")

        response = _post(client)

        assert response.status_code == 200
        assert response.json()["status"] == "processing_error"
