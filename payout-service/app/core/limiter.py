# app/core/limiter.py
"""
Rate limiter shared by the routers and app.main.

Organizer routes are limited per organizer (token subject), so several
organizers behind one NAT do not share a bucket; anything else falls back
to the client address.
"""

from fastapi import Request
from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.util import get_remote_address


def organizer_or_remote_address(request: Request) -> str:
    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token:
        try:
            # Signature is checked by get_current_user; this only picks a bucket
            subject = jwt.get_unverified_claims(token).get("sub")
        except JWTError:
            subject = None
        if subject:
            return f"organizer:{subject}"
    return get_remote_address(request)


limiter = Limiter(key_func=organizer_or_remote_address)
