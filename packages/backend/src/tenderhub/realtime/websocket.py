"""WebSocket endpoint — live bid/award notifications.

Learn: Each user connects to /ws?token=JWT. The handler:
1. Authenticates via JWT query param
2. Accepts the upgrade and registers the socket under the token's user id
3. Reads from the socket until it fails, purely to notice disconnects
4. Unregisters, then closes

Notifications are written by whichever request triggered them (bid
created, bid awarded) through the ConnectionRegistry; this handler never
sends anything after the greeting.
"""

import json

import structlog
from fastapi import APIRouter, WebSocket

from tenderhub.auth.dependencies import identity_from_token
from tenderhub.auth.jwt import TokenError
from tenderhub.events.types import CONNECTED
from tenderhub.realtime.connection import Connection, ConnectionClosed, WebSocketConnection
from tenderhub.realtime.registry import ConnectionRegistry

logger = structlog.get_logger()
router = APIRouter()


async def serve_connection(
    registry: ConnectionRegistry,
    identity: str,
    connection: Connection,
) -> None:
    """Own ``connection`` for its whole lifetime.

    Learn: Incoming messages are read and dropped; the read is what
    detects that the peer has gone. Whatever ends the loop (clean close,
    read error, task cancellation) the finally block removes the entry
    first and closes second, so notify() never picks up a socket that is
    already half closed.
    """
    try:
        # register may await a superseded close; cancellation there still cleans up
        await registry.register(identity, connection)
        logger.info("connection.opened", user_id=identity)

        await connection.send_message(
            json.dumps({"type": CONNECTED, "user_id": identity})
        )
        while True:
            await connection.receive_message()
    except ConnectionClosed as e:
        logger.info("connection.closed", user_id=identity, code=e.code)
    except Exception as e:
        logger.warning("connection.read_failed", user_id=identity, error=str(e))
    finally:
        registry.unregister(identity, connection)
        try:
            await connection.close()
        except Exception as e:
            logger.warning("connection.close_failed", user_id=identity, error=str(e))


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket):
    """WebSocket endpoint for a user's own notifications.

    Authentication: JWT token required as ?token= query param.
    """
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4001, reason="Authentication required")
        return

    try:
        identity = identity_from_token(token)
    except TokenError:
        await websocket.close(code=4001, reason="Invalid or expired token")
        return

    await websocket.accept()

    registry: ConnectionRegistry = websocket.app.state.registry
    await serve_connection(registry, identity.user_id, WebSocketConnection(websocket))
