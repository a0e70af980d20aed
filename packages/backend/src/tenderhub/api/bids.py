"""Contractor-side bid routes.

Learn: POST /contractor/tenders/{tender_id}/bid is the one route behind
BidRateLimitMiddleware. By the time this handler runs the contractor
has already been admitted; the handler itself knows nothing about rate
limits.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException

from tenderhub.api.tenders import get_tender_service
from tenderhub.auth.dependencies import CurrentIdentity, require_role
from tenderhub.auth.jwt import CONTRACTOR
from tenderhub.schemas.tender import BidCreate, BidRead
from tenderhub.services.tender_service import (
    BidNotFoundError,
    NotBidOwnerError,
    TenderClosedError,
    TenderNotFoundError,
    TenderService,
)

router = APIRouter(prefix="/contractor")

_contractor = require_role(CONTRACTOR)


@router.post("/tenders/{tender_id}/bid", response_model=BidRead, status_code=201)
async def create_bid(
    tender_id: uuid.UUID,
    body: BidCreate,
    identity: CurrentIdentity = Depends(_contractor),
    svc: TenderService = Depends(get_tender_service),
):
    """Submit a bid. The tender's client is notified if connected."""
    try:
        return await svc.create_bid(
            tender_id=tender_id,
            contractor_id=identity.user_id,
            price=body.price,
            delivery_time=body.delivery_time,
            comments=body.comments,
        )
    except TenderNotFoundError:
        raise HTTPException(status_code=404, detail="Tender not found")
    except TenderClosedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/bids", response_model=list[BidRead])
async def list_my_bids(
    identity: CurrentIdentity = Depends(_contractor),
    svc: TenderService = Depends(get_tender_service),
):
    return await svc.list_contractor_bids(identity.user_id)


@router.delete("/bids/{bid_id}")
async def delete_my_bid(
    bid_id: uuid.UUID,
    identity: CurrentIdentity = Depends(_contractor),
    svc: TenderService = Depends(get_tender_service),
):
    """Withdraw one of your own bids."""
    try:
        await svc.delete_bid(identity.user_id, bid_id)
    except BidNotFoundError:
        raise HTTPException(status_code=404, detail="Bid not found")
    except NotBidOwnerError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return {"deleted": True}
