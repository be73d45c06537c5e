# app/schemas/token.py
from pydantic import BaseModel, Field
from typing import Optional


class TokenPayload(BaseModel):
    sub: str  # organizer / user id
    org_id: Optional[str] = Field(default=None, alias="orgId")
    email: Optional[str] = None
    exp: int

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }
