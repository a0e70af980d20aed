"""Pydantic schemas for tenders and bids.

Learn: Separate "Create" schemas (input) from "Read" schemas (output).
Read schemas use from_attributes so routes can return the service's
dataclasses directly.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ─── Tenders ─────────────────────────────────────────────

class TenderCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    budget: float = Field(..., gt=0)
    deadline: Optional[datetime] = None


class TenderStatusUpdate(BaseModel):
    status: str = Field(..., pattern=r"^(open|closed)$")


class TenderRead(BaseModel):
    id: uuid.UUID
    client_id: str
    title: str
    description: str
    budget: float
    deadline: Optional[datetime]
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─── Bids ────────────────────────────────────────────────

class BidCreate(BaseModel):
    price: float = Field(..., gt=0)
    delivery_time: int = Field(..., gt=0, description="Delivery time in days")
    comments: str = Field(..., min_length=1, max_length=2000)


class BidRead(BaseModel):
    id: uuid.UUID
    tender_id: uuid.UUID
    contractor_id: str
    price: float
    delivery_time: int
    comments: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AwardResult(BaseModel):
    message: str
    bid: BidRead
