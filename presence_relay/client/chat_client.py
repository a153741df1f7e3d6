"""
Async chat client for the presence relay server.

Requirements:
    pip install websockets httpx

Usage:
    ```python
    async with ChatClient("alice", "ws://localhost:8000/ws") as client:
        await client.select_conversation("bob")
        await client.send_message("bob", "hi")
    ```
"""

import asyncio
import json
from typing import Any

import httpx
import websockets
from pydantic import BaseModel, ValidationError
from websockets.exceptions import ConnectionClosed

from presence_relay.client.mirror import ClientSessionMirror
from presence_relay.logging import logger
from presence_relay.schemas.events import (
    ActivityPayload,
    SendMessagePayload,
    SendMessageRequest,
    UpdateActivityRequest,
    UserConnectedRequest,
)
from presence_relay.schemas.message import MessageRead


class ChatClient:
    """
    WebSocket client that keeps a ClientSessionMirror up to date.

    On connect it announces the local user with `user_connected` and starts
    a listener task that applies every inbound event to `mirror`.

    Args:
        user_id: The local identity.
        ws_url: WebSocket endpoint, e.g. "ws://localhost:8000/ws".
        http_url: Base URL of the HTTP API for history. Derived from ws_url
            when omitted.
        http_client: Optional preconfigured httpx.AsyncClient.
    """

    def __init__(
        self,
        user_id: str,
        ws_url: str,
        http_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.user_id = user_id
        self.ws_url = ws_url
        self.http_url = http_url or _http_base_from_ws(ws_url)
        self.mirror = ClientSessionMirror(user_id)

        self._http = http_client
        self._owns_http = http_client is None
        self._ws: Any = None
        self._listener: asyncio.Task | None = None

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    async def __aenter__(self) -> "ChatClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()

    async def connect(self) -> None:
        """Open the WebSocket, register the user and start listening."""
        if self.is_connected:
            return

        self._ws = await websockets.connect(self.ws_url)
        await self._emit(UserConnectedRequest(data=self.user_id))
        self._listener = asyncio.create_task(self._listen())
        logger.info(f"Connected to {self.ws_url} as {self.user_id}")

    async def disconnect(self) -> None:
        """Close the WebSocket and the HTTP client (if owned)."""
        if self._listener is not None:
            self._listener.cancel()
            await asyncio.gather(self._listener, return_exceptions=True)
            self._listener = None

        if self._ws is not None:
            await self._ws.close()
            self._ws = None

        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def send_message(self, receiver_id: str, content: str) -> bool:
        """
        Ask the server to persist and relay a message.

        The message shows up in the mirror only when the server echoes it
        back as `receive_message`.

        Returns:
            False if nothing was sent (not connected, blank or oversized
            content, invalid receiver id).
        """
        if not self.is_connected or not content.strip():
            return False

        try:
            payload = SendMessagePayload(
                sender_id=self.user_id,
                receiver_id=receiver_id,
                content=content,
            )
        except ValidationError as ex:
            logger.warning(
                f"Not sending invalid message: {ex.error_count()} error(s)"
            )
            return False

        await self._emit(SendMessageRequest(data=payload))
        return True

    async def update_activity(self, activity: str) -> bool:
        """
        Publish the local user's activity label.

        Returns:
            False if nothing was sent (not connected, blank or oversized
            label).
        """
        if not self.is_connected:
            return False

        try:
            payload = ActivityPayload(user_id=self.user_id, activity=activity)
        except ValidationError as ex:
            logger.warning(
                f"Not sending invalid activity: {ex.error_count()} error(s)"
            )
            return False

        await self._emit(UpdateActivityRequest(data=payload))
        return True

    async def select_conversation(self, peer_id: str | None) -> None:
        """
        Switch to the conversation with peer_id and load its history.

        The mirror is cleared first; a failed history fetch leaves it empty.
        """
        self.mirror.select_conversation(peer_id)
        if peer_id is None:
            return

        messages = await self.fetch_messages(peer_id)
        if self.mirror.selected_peer == peer_id:
            self.mirror.load_history(messages)

    async def fetch_messages(self, peer_id: str) -> list[MessageRead]:
        """Fetch the full conversation with peer_id over HTTP."""
        if self._http is None:
            self._http = httpx.AsyncClient(base_url=self.http_url)
            self._owns_http = True

        try:
            response = await self._http.get(
                f"/messages/{self.user_id}/{peer_id}"
            )
            response.raise_for_status()
        except httpx.HTTPError as ex:
            logger.error(f"Error fetching messages with {peer_id}: {ex}")
            return []

        return [MessageRead.model_validate(item) for item in response.json()]

    async def _emit(self, event: BaseModel) -> None:
        await self._ws.send(event.model_dump_json(by_alias=True))

    async def _listen(self) -> None:
        try:
            async for frame in self._ws:
                try:
                    data = json.loads(frame)
                except (json.JSONDecodeError, TypeError) as ex:
                    logger.warning(f"Ignoring non-JSON frame: {ex}")
                    continue
                self.mirror.apply(data)
        except ConnectionClosed as ex:
            logger.info(f"Connection closed by server: {ex}")
        self._ws = None


def _http_base_from_ws(ws_url: str) -> str:
    base = ws_url.replace("wss://", "https://", 1).replace(
        "ws://", "http://", 1
    )
    return base.rsplit("/ws", 1)[0]
