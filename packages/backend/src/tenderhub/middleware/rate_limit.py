"""Bid rate limiting middleware — per-contractor fixed window.

Learn: Only bid submissions are limited: POST requests to
/api/v1/contractor/tenders/{tender_id}/bid. Every other request passes
straight through. For a bid submission the caller's token is parsed here
(the route dependencies run later), then:

- no token / bad token → 401, the admission check never runs
- role other than contractor → passes through unlimited
- contractor → AdmissionController.evaluate(user_id); denied → 429

The 429 body carries ``retry_after`` as the Unix epoch second at which
the contractor's current window ends.
"""

import re

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from tenderhub.admission.limiter import AdmissionController
from tenderhub.auth.dependencies import bearer_token, identity_from_token
from tenderhub.auth.jwt import CONTRACTOR, TokenError

logger = structlog.get_logger()

BID_SUBMISSION_PATH = re.compile(r"^/api/v1/contractor/tenders/[^/]+/bid$")


class BidRateLimitMiddleware(BaseHTTPMiddleware):
    """Admission control for contractor bid submissions."""

    def __init__(
        self,
        app,
        controller: AdmissionController,
        path_pattern: re.Pattern = BID_SUBMISSION_PATH,
    ):
        super().__init__(app)
        self.controller = controller
        self.path_pattern = path_pattern

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method != "POST" or not self.path_pattern.match(request.url.path):
            return await call_next(request)

        token = bearer_token(request.headers.get("Authorization"))
        if not token:
            return _unauthenticated("Missing token")
        try:
            identity = identity_from_token(token)
        except TokenError as e:
            return _unauthenticated(str(e))

        if identity.role != CONTRACTOR:
            return await call_next(request)

        admission = self.controller.evaluate(identity.user_id)
        if not admission.allowed:
            logger.info(
                "bid_rate_limit.rejected",
                user_id=identity.user_id,
                retry_after=admission.retry_after,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Rate limit exceeded. Please try again later.",
                    "retry_after": admission.retry_after,
                },
                headers={
                    "Retry-After": str(admission.retry_in),
                    "X-RateLimit-Limit": str(admission.limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(admission.retry_after),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(admission.limit)
        response.headers["X-RateLimit-Remaining"] = str(admission.remaining)
        response.headers["X-RateLimit-Reset"] = str(admission.retry_after)
        return response


def _unauthenticated(detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": detail},
        headers={"WWW-Authenticate": "Bearer"},
    )
