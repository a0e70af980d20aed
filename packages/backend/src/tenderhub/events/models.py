"""Domain event models and their wire encoding.

Learn: DomainEvent is a discriminated union on ``type``. Each variant is
a frozen pydantic model, so once business logic builds an event nothing
downstream can change it.

``recipient_id`` says who the event is for. It is routing metadata only
and is excluded from the serialized payload: the recipient already knows
who they are.
"""

import uuid
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from tenderhub.events.types import AWARD, NEW_BID


class _BidEvent(BaseModel):
    recipient_id: str = Field(..., min_length=1, exclude=True)
    tender_id: uuid.UUID
    message: str = ""

    model_config = {"frozen": True}


class NewBidEvent(_BidEvent):
    """A contractor bid on one of the recipient's tenders."""

    type: Literal["new_bid"] = NEW_BID
    bid_id: uuid.UUID
    price: float


class AwardEvent(_BidEvent):
    """The recipient's bid won the tender."""

    type: Literal["award"] = AWARD
    bid_id: Optional[uuid.UUID] = None
    price: Optional[float] = None


DomainEvent = Annotated[Union[NewBidEvent, AwardEvent], Field(discriminator="type")]


def serialize_event(event: DomainEvent) -> str:
    """Encode an event as the JSON text of a single WebSocket message."""
    return event.model_dump_json()
