"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Role checks live on the individual routes (require_role), since
the client and contractor routers need different roles. Health is open.
"""

from fastapi import APIRouter

from tenderhub.api.bids import router as bids_router
from tenderhub.api.health import router as health_router
from tenderhub.api.tenders import router as tenders_router

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])

# Protected routes — require a valid JWT with the right role
api_router.include_router(tenders_router, tags=["tenders"])
api_router.include_router(bids_router, tags=["bids"])
