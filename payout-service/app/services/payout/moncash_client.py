"""
MonCash (Digicel) API client for instant prefunded payouts.

Authentication uses OAuth client credentials; the access token is shared
across workers through Redis until shortly before it expires. Transfers
are never retried here: a timeout is reported as a failure and the caller
records it.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
from redis import Redis
from redis.exceptions import RedisError

from app.core.config import settings

logger = logging.getLogger(__name__)

TOKEN_CACHE_KEY = "moncash:access_token"
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class MoncashError(Exception):
    """A MonCash call failed or returned an unusable response."""


@dataclass
class TransferResult:
    transaction_id: str
    raw: Dict[str, Any] = field(default_factory=dict)


def cents_to_amount(cents: int) -> float:
    return float(Decimal(cents) / Decimal(100))


class MoncashClient:
    def __init__(
        self,
        redis_client: Optional[Redis] = None,
        base_url: Optional[str] = None,
        client_id: Optional[str] = None,
        secret_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.redis = redis_client
        self.base_url = (base_url or settings.MONCASH_BASE_URL).rstrip("/")
        self.client_id = client_id if client_id is not None else settings.MONCASH_CLIENT_ID
        self.secret_key = secret_key if secret_key is not None else settings.MONCASH_SECRET_KEY
        self.timeout = timeout or settings.MONCASH_TIMEOUT_SECONDS
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        )

    def _cached_token(self) -> Optional[str]:
        if self.redis is None:
            return None
        try:
            return self.redis.get(TOKEN_CACHE_KEY)
        except RedisError as e:
            logger.warning(f"MonCash token cache unavailable: {e}")
            return None

    def _store_token(self, token: str, expires_in: int) -> None:
        if self.redis is None:
            return
        ttl = max(1, int(expires_in) - TOKEN_EXPIRY_MARGIN_SECONDS)
        try:
            self.redis.setex(TOKEN_CACHE_KEY, ttl, token)
        except RedisError as e:
            logger.warning(f"Could not cache MonCash token: {e}")

    async def get_access_token(self, client: httpx.AsyncClient) -> str:
        cached = self._cached_token()
        if cached:
            return cached

        if not self.client_id or not self.secret_key:
            raise MoncashError("MonCash credentials are not configured")

        try:
            response = await client.post(
                "/Api/oauth/token",
                auth=(self.client_id, self.secret_key),
                data={"scope": "read,write", "grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"MonCash authentication failed: {e}")
            raise MoncashError(f"MonCash authentication failed: {e}") from e

        token = data.get("access_token")
        if not token:
            raise MoncashError("MonCash authentication returned no access token")
        self._store_token(token, data.get("expires_in", 59))
        return token

    async def transfer(
        self, *, amount_cents: int, receiver: str, reference: str, description: str
    ) -> TransferResult:
        """Send `amount_cents` from the prefunded pool to a MonCash wallet."""
        async with self._client() as client:
            token = await self.get_access_token(client)
            payload = {
                "amount": cents_to_amount(amount_cents),
                "receiver": receiver,
                "desc": description,
                "reference": reference,
            }
            try:
                response = await client.post(
                    "/Api/v1/Transfert",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Accept": "application/json",
                    },
                )
            except httpx.TimeoutException as e:
                logger.error(f"MonCash transfer {reference} timed out")
                raise MoncashError("MonCash transfer timed out") from e
            except httpx.HTTPError as e:
                logger.error(f"MonCash transfer {reference} failed: {e}")
                raise MoncashError(f"MonCash transfer failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {"body": response.text}

        if response.status_code >= 400:
            message = data.get("message") or data.get("error") or f"HTTP {response.status_code}"
            logger.error(f"MonCash transfer {reference} rejected: {message}")
            raise MoncashError(f"MonCash transfer rejected: {message}")

        transfer = data.get("transfer") or {}
        transaction_id = transfer.get("transaction_id") or data.get("transactionId")
        if not transaction_id:
            raise MoncashError("MonCash transfer response had no transaction id")

        logger.info(f"MonCash transfer {reference} completed: {transaction_id}")
        return TransferResult(transaction_id=str(transaction_id), raw=data)


def get_moncash_client() -> MoncashClient:
    from app.db.redis import redis_client

    return MoncashClient(redis_client=redis_client)
