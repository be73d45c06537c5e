# app/core/encryption.py
"""
Bank account details are stored as an opaque Fernet token.

Display paths only ever see the masked last four digits; the plaintext is
available solely through EncryptedBlob.decrypt(key), used by dispatch.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict

from cryptography.fernet import Fernet, InvalidToken

from app.core.config import settings
from app.core.errors import PayoutError


class EncryptionKeyError(PayoutError):
    code = "ENCRYPTION_KEY_ERROR"


def get_encryption_key() -> bytes:
    if not settings.PAYOUT_ENCRYPTION_KEY:
        raise EncryptionKeyError("PAYOUT_ENCRYPTION_KEY is not configured")
    return settings.PAYOUT_ENCRYPTION_KEY.encode("utf-8")


def mask_last4(value: str) -> str:
    digits = "".join(ch for ch in (value or "") if ch.isalnum())
    return digits[-4:]


@dataclass(frozen=True)
class EncryptedBlob:
    token: str

    @classmethod
    def seal(cls, payload: Dict[str, Any], key: bytes) -> "EncryptedBlob":
        raw = json.dumps(payload, sort_keys=True).encode("utf-8")
        return cls(Fernet(key).encrypt(raw).decode("utf-8"))

    def decrypt(self, key: bytes) -> Dict[str, Any]:
        try:
            raw = Fernet(key).decrypt(self.token.encode("utf-8"))
        except InvalidToken as e:
            raise EncryptionKeyError("Stored bank details could not be decrypted") from e
        return json.loads(raw.decode("utf-8"))

    def __repr__(self) -> str:
        return "EncryptedBlob(<redacted>)"
