"""Duplex connection abstraction.

Learn: The registry only needs three things from a transport: send one
message, receive one message, close. Connection is a typing.Protocol so
the Starlette adapter below and the in-memory double used in tests both
satisfy it structurally, and the registry never has to inspect what kind
of object it is holding.
"""

from typing import Protocol, Union

from starlette.websockets import WebSocket, WebSocketState


class ConnectionClosed(Exception):
    """Raised by receive_message() once the peer has gone away."""

    def __init__(self, code: int = 1000, reason: str = ""):
        super().__init__(f"connection closed ({code}) {reason}".strip())
        self.code = code
        self.reason = reason


class Connection(Protocol):
    async def send_message(self, data: str) -> None: ...

    async def receive_message(self) -> Union[str, bytes]: ...

    async def close(self) -> None: ...


class WebSocketConnection:
    """Connection backed by an accepted Starlette WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send_message(self, data: str) -> None:
        await self.websocket.send_text(data)

    async def receive_message(self) -> Union[str, bytes]:
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise ConnectionClosed(
                code=message.get("code", 1000),
                reason=message.get("reason") or "",
            )
        if message.get("text") is not None:
            return message["text"]
        return message.get("bytes") or b""

    async def close(self) -> None:
        # Both sides must still be open, otherwise Starlette refuses the close frame
        if (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        ):
            await self.websocket.close()

    def __repr__(self) -> str:
        client = self.websocket.client
        return f"<WebSocketConnection {client.host}:{client.port}>" if client else "<WebSocketConnection>"
