# app/schemas/step_up.py
from pydantic import BaseModel, Field
from datetime import datetime


class SendCodeResponse(BaseModel):
    sent: bool = True
    expires_at: datetime = Field(alias="expiresAt")

    model_config = {"populate_by_name": True}


class VerifyCodeRequest(BaseModel):
    code: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")


class VerifyCodeResponse(BaseModel):
    verified: bool = True
    verified_until: datetime = Field(alias="verifiedUntil")

    model_config = {"populate_by_name": True}
