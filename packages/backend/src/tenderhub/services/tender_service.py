"""Tender service — tenders, bids, awards, and the events they trigger.

Learn: Storage here is an in-memory stand-in for the SQL repositories;
the part that matters is what happens after a write:

  create_bid  → NewBidEvent  → tender's client
  award_bid   → AwardEvent   → winning contractor

Notification is fire-and-forget. A failed push is logged and the
business operation still succeeds: the bid exists whether or not the
client's browser heard about it.
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog

from tenderhub.events.models import AwardEvent, DomainEvent, NewBidEvent
from tenderhub.realtime.registry import ConnectionRegistry, NotificationError

logger = structlog.get_logger()

TENDER_OPEN = "open"
TENDER_CLOSED = "closed"
TENDER_AWARDED = "awarded"

BID_PENDING = "pending"
BID_AWARDED = "awarded"
BID_REJECTED = "rejected"

BID_SORT_FIELDS = ("price", "delivery_time", "created_at")


class TenderNotFoundError(Exception):
    """Raised when a tender does not exist."""


class BidNotFoundError(Exception):
    """Raised when a bid does not exist or is not part of the tender."""


class TenderClosedError(Exception):
    """Raised when bidding on or awarding a tender that is not open."""


class NotTenderOwnerError(Exception):
    """Raised when a client acts on someone else's tender."""


class NotBidOwnerError(Exception):
    """Raised when a contractor acts on someone else's bid."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Tender:
    client_id: str
    title: str
    description: str
    budget: float
    deadline: Optional[datetime] = None
    status: str = TENDER_OPEN
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)


@dataclass
class Bid:
    tender_id: uuid.UUID
    contractor_id: str
    price: float
    delivery_time: int
    comments: str
    status: str = BID_PENDING
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)


class TenderService:
    """Business logic for tenders and bids."""

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry
        self._tenders: dict[uuid.UUID, Tender] = {}
        self._bids: dict[uuid.UUID, Bid] = {}
        self._lock = threading.Lock()

    # ─── Tenders ────────────────────────────────────────

    async def create_tender(
        self,
        client_id: str,
        title: str,
        description: str,
        budget: float,
        deadline: Optional[datetime] = None,
    ) -> Tender:
        tender = Tender(
            client_id=client_id,
            title=title,
            description=description,
            budget=budget,
            deadline=deadline,
        )
        with self._lock:
            self._tenders[tender.id] = tender
        logger.info("tender.created", tender_id=str(tender.id), client_id=client_id)
        return tender

    async def get_tender(self, tender_id: uuid.UUID) -> Tender:
        with self._lock:
            tender = self._tenders.get(tender_id)
        if tender is None:
            raise TenderNotFoundError(f"Tender {tender_id} not found")
        return tender

    async def list_tenders(self, client_id: str) -> list[Tender]:
        with self._lock:
            tenders = [t for t in self._tenders.values() if t.client_id == client_id]
        return sorted(tenders, key=lambda t: t.created_at)

    async def update_tender_status(
        self, client_id: str, tender_id: uuid.UUID, status: str
    ) -> Tender:
        """Open or close a tender. Awarded tenders are final."""
        if status not in (TENDER_OPEN, TENDER_CLOSED):
            raise ValueError(f"Invalid tender status: {status}")
        with self._lock:
            tender = self._tenders.get(tender_id)
            if tender is None:
                raise TenderNotFoundError(f"Tender {tender_id} not found")
            if tender.client_id != client_id:
                raise NotTenderOwnerError("client does not own the tender")
            if tender.status == TENDER_AWARDED:
                raise TenderClosedError(f"Tender {tender_id} is {tender.status}")
            tender.status = status
            tender.updated_at = _now()
        return tender

    async def delete_tender(self, client_id: str, tender_id: uuid.UUID) -> None:
        """Delete one of the client's tenders together with its bids."""
        with self._lock:
            tender = self._tenders.get(tender_id)
            if tender is None:
                raise TenderNotFoundError(f"Tender {tender_id} not found")
            if tender.client_id != client_id:
                raise NotTenderOwnerError("client does not own the tender")
            del self._tenders[tender_id]
            orphaned = [b.id for b in self._bids.values() if b.tender_id == tender_id]
            for bid_id in orphaned:
                del self._bids[bid_id]
        logger.info("tender.deleted", tender_id=str(tender_id), bids_removed=len(orphaned))

    async def filter_tenders(
        self, status: Optional[str] = None, search: Optional[str] = None
    ) -> list[Tender]:
        """All tenders, newest first, optionally narrowed by status and a
        case-insensitive search over title and description."""
        needle = search.lower() if search else None
        with self._lock:
            tenders = list(self._tenders.values())
        if status:
            tenders = [t for t in tenders if t.status == status]
        if needle:
            tenders = [
                t for t in tenders
                if needle in t.title.lower() or needle in t.description.lower()
            ]
        return sorted(tenders, key=lambda t: t.created_at, reverse=True)

    # ─── Bids ───────────────────────────────────────────

    async def create_bid(
        self,
        tender_id: uuid.UUID,
        contractor_id: str,
        price: float,
        delivery_time: int,
        comments: str,
    ) -> Bid:
        """Place a bid on an open tender and tell the tender's client."""
        if price <= 0 or delivery_time <= 0 or not comments.strip():
            raise ValueError("Invalid bid data")

        with self._lock:
            tender = self._tenders.get(tender_id)
            if tender is None:
                raise TenderNotFoundError(f"Tender {tender_id} not found")
            if tender.status != TENDER_OPEN:
                raise TenderClosedError(f"Tender {tender_id} is {tender.status}")
            bid = Bid(
                tender_id=tender_id,
                contractor_id=contractor_id,
                price=price,
                delivery_time=delivery_time,
                comments=comments,
            )
            self._bids[bid.id] = bid

        logger.info("bid.created", bid_id=str(bid.id), tender_id=str(tender_id))

        await self._notify(
            NewBidEvent(
                recipient_id=tender.client_id,
                tender_id=tender.id,
                bid_id=bid.id,
                price=bid.price,
                message=f"New bid on '{tender.title}'",
            )
        )
        return bid

    async def list_bids(
        self,
        tender_id: uuid.UUID,
        client_id: str,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        sort_by: str = "created_at",
        sort_order: str = "asc",
    ) -> list[Bid]:
        """Bids on one of the client's own tenders.

        Price bounds are inclusive. ``sort_by`` is one of BID_SORT_FIELDS.
        """
        if sort_by not in BID_SORT_FIELDS:
            raise ValueError(f"Cannot sort bids by {sort_by}")
        if sort_order not in ("asc", "desc"):
            raise ValueError(f"Invalid sort order: {sort_order}")

        tender = await self.get_tender(tender_id)
        if tender.client_id != client_id:
            raise NotTenderOwnerError("client does not own the tender")
        with self._lock:
            bids = [b for b in self._bids.values() if b.tender_id == tender_id]
        if min_price is not None:
            bids = [b for b in bids if b.price >= min_price]
        if max_price is not None:
            bids = [b for b in bids if b.price <= max_price]
        return sorted(
            bids,
            key=lambda b: getattr(b, sort_by),
            reverse=sort_order == "desc",
        )

    async def list_contractor_bids(self, contractor_id: str) -> list[Bid]:
        with self._lock:
            bids = [b for b in self._bids.values() if b.contractor_id == contractor_id]
        return sorted(bids, key=lambda b: b.created_at)

    async def delete_bid(self, contractor_id: str, bid_id: uuid.UUID) -> None:
        """Withdraw one of the contractor's own bids."""
        with self._lock:
            bid = self._bids.get(bid_id)
            if bid is None:
                raise BidNotFoundError(f"Bid {bid_id} not found")
            if bid.contractor_id != contractor_id:
                raise NotBidOwnerError("contractor does not own the bid")
            del self._bids[bid_id]
        logger.info("bid.deleted", bid_id=str(bid_id), contractor_id=contractor_id)

    # ─── Awards ─────────────────────────────────────────

    async def award_bid(
        self, client_id: str, tender_id: uuid.UUID, bid_id: uuid.UUID
    ) -> Bid:
        """Award ``bid_id``: it wins, the other bids lose, the tender closes.

        The winning contractor gets an AwardEvent.
        """
        with self._lock:
            tender = self._tenders.get(tender_id)
            if tender is None:
                raise TenderNotFoundError(f"Tender {tender_id} not found")
            if tender.client_id != client_id:
                raise NotTenderOwnerError("client does not own the tender")
            if tender.status != TENDER_OPEN:
                raise TenderClosedError(f"Tender {tender_id} is {tender.status}")
            bid = self._bids.get(bid_id)
            if bid is None or bid.tender_id != tender_id:
                raise BidNotFoundError(f"Bid {bid_id} not found for tender {tender_id}")

            now = _now()
            for other in self._bids.values():
                if other.tender_id == tender_id and other.id != bid_id:
                    other.status = BID_REJECTED
                    other.updated_at = now
            bid.status = BID_AWARDED
            bid.updated_at = now
            tender.status = TENDER_AWARDED
            tender.updated_at = now

        logger.info("bid.awarded", bid_id=str(bid_id), tender_id=str(tender_id))

        await self._notify(
            AwardEvent(
                recipient_id=bid.contractor_id,
                tender_id=tender_id,
                bid_id=bid.id,
                price=bid.price,
                message=f"Your bid on '{tender.title}' was awarded",
            )
        )
        return bid

    # ─── Notifications ──────────────────────────────────

    async def _notify(self, event: DomainEvent) -> None:
        """Push an event; never let a failed push fail the caller."""
        try:
            await self.registry.publish(event)
        except NotificationError as e:
            logger.warning(
                "notify.failed",
                user_id=e.identity,
                event_type=event.type,
                error=str(e),
            )
