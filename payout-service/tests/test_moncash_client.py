"""
Tests for the MonCash API client.

Verifies that MoncashClient correctly:
- Authenticates with client credentials and caches the token in Redis
- Sends transfers in currency units with the withdrawal as reference
- Parses the transaction id from either response shape
- Reports timeouts, HTTP errors and rejections as MoncashError

HTTP is served by httpx.MockTransport; Redis by an in-memory stand-in.
"""

import asyncio
import json

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.services.payout.moncash_client import (
    TOKEN_CACHE_KEY,
    MoncashClient,
    MoncashError,
    cents_to_amount,
)


def run_async(coro):
    return asyncio.run(coro)


class FakeRedis:
    def __init__(self, fail=False):
        self.values = {}
        self.ttls = {}
        self.fail = fail

    def get(self, key):
        if self.fail:
            raise RedisConnectionError("redis down")
        return self.values.get(key)

    def setex(self, key, ttl, value):
        if self.fail:
            raise RedisConnectionError("redis down")
        self.values[key] = value
        self.ttls[key] = ttl


class MoncashServer:
    """Records requests and answers like the MonCash API."""

    def __init__(self, transfer_status=200, transfer_body=None, transfer_error=None):
        self.requests = []
        self.transfer_status = transfer_status
        self.transfer_body = transfer_body or {
            "transfer": {"transaction_id": "MC-123456", "amount": 48.5}
        }
        self.transfer_error = transfer_error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/Api/oauth/token":
            return httpx.Response(200, json={"access_token": "tok_abc", "expires_in": 59})
        if request.url.path == "/Api/v1/Transfert":
            if self.transfer_error:
                raise self.transfer_error
            return httpx.Response(self.transfer_status, json=self.transfer_body)
        return httpx.Response(404)

    def paths(self):
        return [r.url.path for r in self.requests]


def _client(server, redis_client=None):
    return MoncashClient(
        redis_client=redis_client,
        base_url="https://moncash.test",
        client_id="client_id",
        secret_key="secret",
        timeout=1.0,
        transport=httpx.MockTransport(server),
    )


def _transfer(client, amount_cents=4850):
    return run_async(
        client.transfer(
            amount_cents=amount_cents,
            receiver="50937001234",
            reference="wdr_abc",
            description="Instant withdrawal (evt_1)",
        )
    )


class TestMoncashClient:
    def test_cents_to_amount(self):
        assert cents_to_amount(4850) == 48.5
        assert cents_to_amount(1) == 0.01

    def test_transfer_success(self):
        server = MoncashServer()

        result = _transfer(_client(server))

        assert result.transaction_id == "MC-123456"
        assert server.paths() == ["/Api/oauth/token", "/Api/v1/Transfert"]
        transfer_request = server.requests[1]
        assert transfer_request.headers["Authorization"] == "Bearer tok_abc"
        assert json.loads(transfer_request.content) == {
            "amount": 48.5,
            "receiver": "50937001234",
            "desc": "Instant withdrawal (evt_1)",
            "reference": "wdr_abc",
        }

    def test_flat_transaction_id(self):
        server = MoncashServer(transfer_body={"transactionId": 987654})

        assert _transfer(_client(server)).transaction_id == "987654"

    def test_token_cached_in_redis(self):
        server = MoncashServer()
        redis_client = FakeRedis()
        client = _client(server, redis_client)

        _transfer(client)
        _transfer(client)

        assert server.paths().count("/Api/oauth/token") == 1
        assert redis_client.values[TOKEN_CACHE_KEY] == "tok_abc"
        assert redis_client.ttls[TOKEN_CACHE_KEY] == 1

    def test_redis_failure_falls_back_to_auth(self):
        server = MoncashServer()

        result = _transfer(_client(server, FakeRedis(fail=True)))

        assert result.transaction_id == "MC-123456"

    def test_missing_credentials(self):
        client = MoncashClient(
            base_url="https://moncash.test",
            client_id="",
            secret_key="",
            transport=httpx.MockTransport(MoncashServer()),
        )

        with pytest.raises(MoncashError):
            _transfer(client)

    def test_timeout_is_failure(self):
        server = MoncashServer(transfer_error=httpx.ReadTimeout("timed out"))

        with pytest.raises(MoncashError) as exc_info:
            _transfer(_client(server))

        assert "timed out" in str(exc_info.value)

    def test_rejected_transfer(self):
        server = MoncashServer(transfer_status=400, transfer_body={"message": "Insufficient funds"})

        with pytest.raises(MoncashError) as exc_info:
            _transfer(_client(server))

        assert "Insufficient funds" in str(exc_info.value)

    def test_response_without_transaction_id(self):
        server = MoncashServer(transfer_body={"status": "ok"})

        with pytest.raises(MoncashError):
            _transfer(_client(server))
