"""Client-side tender routes.

Learn: Routes handle HTTP concerns (status codes, error responses), the
TenderService handles business logic. The service instance is created
once in create_app() and read from app.state, so every request shares
the same store and the same notification registry.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from tenderhub.auth.dependencies import CurrentIdentity, require_role
from tenderhub.auth.jwt import CLIENT
from tenderhub.schemas.tender import (
    AwardResult,
    BidRead,
    TenderCreate,
    TenderRead,
    TenderStatusUpdate,
)
from tenderhub.services.tender_service import (
    BidNotFoundError,
    NotTenderOwnerError,
    TenderClosedError,
    TenderNotFoundError,
    TenderService,
)

router = APIRouter(prefix="/client")

_client = require_role(CLIENT)


def get_tender_service(request: Request) -> TenderService:
    return request.app.state.tender_service


@router.post("/tenders", response_model=TenderRead, status_code=201)
async def create_tender(
    body: TenderCreate,
    identity: CurrentIdentity = Depends(_client),
    svc: TenderService = Depends(get_tender_service),
):
    return await svc.create_tender(
        client_id=identity.user_id,
        title=body.title,
        description=body.description,
        budget=body.budget,
        deadline=body.deadline,
    )


@router.get("/tenders", response_model=list[TenderRead])
async def list_tenders(
    identity: CurrentIdentity = Depends(_client),
    svc: TenderService = Depends(get_tender_service),
):
    return await svc.list_tenders(identity.user_id)


@router.get("/tenders/filter", response_model=list[TenderRead])
async def filter_tenders(
    status: Optional[str] = Query(
        None, pattern=r"^(open|closed|awarded)$", description="Filter by status"
    ),
    search: Optional[str] = Query(
        None, max_length=200, description="Match in title or description"
    ),
    identity: CurrentIdentity = Depends(_client),
    svc: TenderService = Depends(get_tender_service),
):
    """Browse all tenders, newest first."""
    return await svc.filter_tenders(status=status, search=search)


@router.put("/tenders/{tender_id}", response_model=TenderRead)
async def update_tender_status(
    tender_id: uuid.UUID,
    body: TenderStatusUpdate,
    identity: CurrentIdentity = Depends(_client),
    svc: TenderService = Depends(get_tender_service),
):
    try:
        return await svc.update_tender_status(identity.user_id, tender_id, body.status)
    except TenderNotFoundError:
        raise HTTPException(status_code=404, detail="Tender not found")
    except NotTenderOwnerError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except TenderClosedError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete("/tenders/{tender_id}")
async def delete_tender(
    tender_id: uuid.UUID,
    identity: CurrentIdentity = Depends(_client),
    svc: TenderService = Depends(get_tender_service),
):
    """Delete a tender and every bid on it."""
    try:
        await svc.delete_tender(identity.user_id, tender_id)
    except TenderNotFoundError:
        raise HTTPException(status_code=404, detail="Tender not found")
    except NotTenderOwnerError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return {"deleted": True}


@router.get("/tenders/{tender_id}/bids", response_model=list[BidRead])
async def list_tender_bids(
    tender_id: uuid.UUID,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    sort_by: str = Query("created_at", pattern=r"^(price|delivery_time|created_at)$"),
    sort_order: str = Query("asc", pattern=r"^(asc|desc)$"),
    identity: CurrentIdentity = Depends(_client),
    svc: TenderService = Depends(get_tender_service),
):
    try:
        return await svc.list_bids(
            tender_id,
            identity.user_id,
            min_price=min_price,
            max_price=max_price,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except TenderNotFoundError:
        raise HTTPException(status_code=404, detail="Tender not found")
    except NotTenderOwnerError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.post("/tenders/{tender_id}/award/{bid_id}", response_model=AwardResult)
async def award_bid(
    tender_id: uuid.UUID,
    bid_id: uuid.UUID,
    identity: CurrentIdentity = Depends(_client),
    svc: TenderService = Depends(get_tender_service),
):
    """Award a bid. The winning contractor is notified if connected."""
    try:
        bid = await svc.award_bid(identity.user_id, tender_id, bid_id)
    except TenderNotFoundError:
        raise HTTPException(status_code=404, detail="Tender not found")
    except BidNotFoundError:
        raise HTTPException(status_code=404, detail="Bid not found")
    except NotTenderOwnerError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except TenderClosedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"message": "Bid awarded successfully", "bid": bid}
