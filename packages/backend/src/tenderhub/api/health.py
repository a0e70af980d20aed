"""Health check endpoint.

Learn: Reports the server version plus the size of the two in-memory
tables the realtime layer owns, so an operator can see how many users
are connected and how many contractors are being rate limited.
"""

from fastapi import APIRouter, Request

from tenderhub import __version__

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health."""
    state = request.app.state
    return {
        "status": "healthy",
        "server": "ok",
        "version": __version__,
        "connections": len(state.registry),
        "rate_windows": len(state.admission),
    }
