from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from binwatch.models.schemas import BinRecord

LOGGER = logging.getLogger(__name__)

router = APIRouter()


class ConnectionManager:
    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)

    async def broadcast(self, message: dict) -> None:
        stale: list[WebSocket] = []
        for websocket in list(self._connections):
            try:
                await websocket.send_json(message)
            except Exception as exc:
                LOGGER.info("Dropping stale bin subscriber: %s", exc)
                stale.append(websocket)

        for websocket in stale:
            self.disconnect(websocket)

    async def publish_bin(self, record: BinRecord) -> None:
        await self.broadcast({"type": "bin_updated", "data": record.model_dump(mode="json")})


@router.websocket("/ws/bins")
async def bins_ws(websocket: WebSocket) -> None:
    manager: ConnectionManager = websocket.app.state.ws_manager
    await manager.connect(websocket)

    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)
