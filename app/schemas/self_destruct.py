from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .gadget import GadgetOut


class SelfDestructInitiated(BaseModel):
    message: str = "Self-destruct sequence initiated"
    confirmation_code: str = Field(..., serialization_alias="confirmationCode")
    expires_at: datetime = Field(..., serialization_alias="expiresAt")
    expires_in: int = Field(..., serialization_alias="expiresIn", description="Seconds until the code expires")

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "message": "Self-destruct sequence initiated",
                "confirmationCode": "A1B2C3D4",
                "expiresAt": "2024-01-01T12:05:00Z",
                "expiresIn": 300,
            }
        },
    }


class SelfDestructConfirm(BaseModel):
    # Left untyped so a missing or non-string code reaches the workflow and is
    # reported as bad_request rather than a 422.
    confirmation_code: Any = Field(default=None, alias="confirmationCode")

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {"confirmationCode": "A1B2C3D4"}
        },
    }


class SelfDestructCompleted(BaseModel):
    message: str = "Self-destruct sequence completed successfully"
    gadget: GadgetOut
