from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

GadgetStatus = Literal["Active", "Decommissioned", "Destroyed"]


class GadgetCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)


class GadgetUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[GadgetStatus] = None


class GadgetOut(BaseModel):
    id: str
    name: str
    description: str
    codename: str
    status: GadgetStatus
    decommissioned_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class GadgetMessage(BaseModel):
    message: str
