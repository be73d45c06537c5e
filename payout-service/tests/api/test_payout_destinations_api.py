# tests/api/test_payout_destinations_api.py

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app.services.payout.step_up import step_up_service
from app.services.payout.withdrawal_processor import withdrawal_processor

from tests.utils.payout import (
    ORGANIZER_ID,
    add_tickets,
    create_event,
    create_haiti_bank_profile,
    create_organizer,
    set_document,
)

STEP_UP_MODULE = "app.api.v1.endpoints.step_up"
BANK = {
    "bankName": "Sogebank",
    "accountHolder": "Jean Baptiste",
    "accountNumber": "0012 3456 7890",
}


class EmailOutbox:
    def __init__(self, delivered=True):
        self.delivered = delivered
        self.sent = []

    def __call__(self, organizer_id, email, code, expires_at):
        self.sent.append({"organizer_id": organizer_id, "email": email, "code": code})
        return self.delivered


@pytest.fixture
def outbox(monkeypatch):
    box = EmailOutbox()
    monkeypatch.setattr(f"{STEP_UP_MODULE}.publish_step_up_code_email", box)
    return box


@pytest.fixture
def organizer(db):
    create_organizer(db)
    create_haiti_bank_profile(db)


def _verify(client, outbox):
    response = client.post("/api/v1/organizer/payout-details-change/send-code")
    assert response.status_code == 200
    code = outbox.sent[-1]["code"]
    response = client.post(
        "/api/v1/organizer/payout-details-change/verify-code", json={"code": code}
    )
    assert response.status_code == 200
    return response.json()


# ---------------------------------------------------------------------------
# Step-up
# ---------------------------------------------------------------------------


def test_send_code_emails_organizer(client: TestClient, organizer, outbox):
    response = client.post("/api/v1/organizer/payout-details-change/send-code")

    assert response.status_code == 200
    assert response.json()["sent"] is True
    assert "expiresAt" in response.json()
    [message] = outbox.sent
    assert message["email"] == "owner@example.com"
    assert len(message["code"]) == 6


def test_send_code_uses_token_email_without_organizer(client: TestClient, outbox):
    response = client.post("/api/v1/organizer/payout-details-change/send-code")

    assert response.status_code == 200
    assert outbox.sent[0]["email"] == "owner@example.com"


def test_send_code_delivery_failure(client: TestClient, organizer, outbox):
    outbox.delivered = False

    first = client.post("/api/v1/organizer/payout-details-change/send-code")
    outbox.delivered = True
    retry = client.post("/api/v1/organizer/payout-details-change/send-code")

    assert first.status_code == 502
    assert first.json()["code"] == "EMAIL_DELIVERY_FAILED"
    # The undelivered code does not start a cooldown
    assert retry.status_code == 200


def test_send_code_cooldown(client: TestClient, organizer, outbox):
    client.post("/api/v1/organizer/payout-details-change/send-code")

    response = client.post("/api/v1/organizer/payout-details-change/send-code")

    assert response.status_code == 400
    assert response.json()["code"] == "RESEND_COOLDOWN"
    assert response.json()["retryAfterSeconds"] > 0


def test_send_code_rate_limited(client: TestClient, organizer, outbox):
    statuses = [
        client.post("/api/v1/organizer/payout-details-change/send-code").status_code
        for _ in range(6)
    ]

    assert statuses[-1] == 429


def test_verify_wrong_code(client: TestClient, organizer, outbox):
    client.post("/api/v1/organizer/payout-details-change/send-code")
    wrong = "000000" if outbox.sent[0]["code"] != "000000" else "111111"

    response = client.post(
        "/api/v1/organizer/payout-details-change/verify-code", json={"code": wrong}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_CODE"


def test_verify_rejects_malformed_code(client: TestClient, organizer):
    response = client.post(
        "/api/v1/organizer/payout-details-change/verify-code", json={"code": "12ab"}
    )

    assert response.status_code == 422


# ---------------------------------------------------------------------------
# Destinations
# ---------------------------------------------------------------------------


def test_add_destination_requires_verification(client: TestClient, organizer):
    response = client.post("/api/v1/organizer/payout-destinations/bank", json=BANK)

    assert response.status_code == 403
    assert response.json()["requiresVerification"] is True


def test_add_and_list_destinations(client: TestClient, organizer, outbox):
    _verify(client, outbox)

    created = client.post("/api/v1/organizer/payout-destinations/bank", json=BANK)

    assert created.status_code == 201
    body = created.json()
    assert body["accountNumberLast4"] == "7890"
    assert body["isPrimary"] is False
    assert body["verificationStatus"] == "absent"
    assert "accountNumber" not in body
    assert "encryptedDetails" not in body

    listing = client.get("/api/v1/organizer/payout-destinations/bank").json()
    assert [d["id"] for d in listing] == [body["id"]]
    assert "001234567890" not in str(listing)


def test_holder_mismatch(client: TestClient, organizer, outbox):
    _verify(client, outbox)

    response = client.post(
        "/api/v1/organizer/payout-destinations/bank",
        json={**BANK, "accountHolder": "Marie Claire"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "ACCOUNT_HOLDER_MISMATCH"


def test_update_primary_bank_details(client: TestClient, organizer, outbox):
    _verify(client, outbox)

    response = client.put("/api/v1/organizer/payout-destinations/bank/primary", json=BANK)

    assert response.status_code == 200
    assert response.json()["isPrimary"] is True
    profile = client.get("/api/v1/organizer/payout-profiles/haiti").json()
    assert profile["bankAccountLast4"] == "7890"
    # A different account number goes back to review
    assert response.json()["verificationStatus"] == "pending"
    assert profile["status"] == "pending_verification"


def test_delete_destinations(client: TestClient, db, organizer, outbox, monkeypatch):
    monkeypatch.setattr(step_up_service, "resend_cooldown", timedelta(0))
    _verify(client, outbox)
    primary = client.put("/api/v1/organizer/payout-destinations/bank/primary", json=BANK).json()
    set_document(db, ORGANIZER_ID, "bank", "verified")
    _verify(client, outbox)
    secondary = client.post(
        "/api/v1/organizer/payout-destinations/bank", json={**BANK, "bankName": "Unibank"}
    ).json()
    _verify(client, outbox)

    rejected = client.delete(f"/api/v1/organizer/payout-destinations/bank/{primary['id']}")
    removed = client.delete(f"/api/v1/organizer/payout-destinations/bank/{secondary['id']}")

    assert rejected.status_code == 400
    assert rejected.json()["code"] == "PRIMARY_DESTINATION"
    assert removed.status_code == 204
    listing = client.get("/api/v1/organizer/payout-destinations/bank").json()
    assert [d["id"] for d in listing] == [primary["id"]]


def test_make_unverified_primary_rejected(client: TestClient, organizer, outbox, monkeypatch):
    monkeypatch.setattr(step_up_service, "resend_cooldown", timedelta(0))
    _verify(client, outbox)
    client.post("/api/v1/organizer/payout-destinations/bank", json=BANK)
    _verify(client, outbox)
    secondary = client.post(
        "/api/v1/organizer/payout-destinations/bank", json={**BANK, "bankName": "Unibank"}
    ).json()
    _verify(client, outbox)

    response = client.post(
        f"/api/v1/organizer/payout-destinations/bank/{secondary['id']}/primary"
    )

    assert secondary["verificationStatus"] == "absent"
    assert response.status_code == 403
    assert response.json()["code"] == "DESTINATION_NOT_VERIFIED"


def test_withdraw_to_saved_destination(client: TestClient, db, organizer, outbox, monkeypatch):
    class Queue:
        def __init__(self):
            self.details = None

        def hand_off(self, withdrawal, bank_details=None):
            self.details = bank_details
            return True

    queue = Queue()
    monkeypatch.setattr(withdrawal_processor, "disbursements", queue)
    event = create_event(db)
    add_tickets(db, event, [10000])
    _verify(client, outbox)
    destination = client.post("/api/v1/organizer/payout-destinations/bank", json=BANK).json()
    set_document(db, ORGANIZER_ID, f"bank_{destination['id']}", "verified")

    response = client.post(
        "/api/v1/organizer/withdraw-bank",
        json={"eventId": event.id, "amount": 5000, "bankDestinationId": destination["id"]},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert queue.details["account_number"] == "001234567890"


def test_withdraw_to_unreviewed_destination_refused(
    client: TestClient, db, organizer, outbox, monkeypatch
):
    class Queue:
        def hand_off(self, withdrawal, bank_details=None):
            raise AssertionError("nothing should be handed off")

    monkeypatch.setattr(withdrawal_processor, "disbursements", Queue())
    event = create_event(db)
    add_tickets(db, event, [10000])
    _verify(client, outbox)
    destination = client.post(
        "/api/v1/organizer/payout-destinations/bank",
        json={**BANK, "accountNumber": "9999 8888 7777"},
    ).json()

    response = client.post(
        "/api/v1/organizer/withdraw-bank",
        json={"eventId": event.id, "amount": 5000, "bankDestinationId": destination["id"]},
    )

    assert response.status_code == 403
    assert response.json()["code"] == "DESTINATION_NOT_VERIFIED"
    assert client.get("/api/v1/organizer/withdrawals").json() == []
