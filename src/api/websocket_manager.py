"""WebSocket connection management for reel status updates."""

from fastapi import WebSocket

from models.reel import Reel


def reel_status_message(reel: Reel) -> dict:
    """Status push sent to clients watching a reel."""
    return {
        "type": "status",
        "reel_id": reel.id,
        "status": reel.status.value,
        "progress_percentage": reel.progress_percentage,
        "storage_path": reel.storage_path,
    }


class WebSocketManager:
    """Manages WebSocket connections grouped by reel id."""

    def __init__(self):
        self.connections: dict[str, list[WebSocket]] = {}

    async def connect(self, key: str, websocket: WebSocket) -> None:
        """Accept a WebSocket connection and add it to the pool for ``key``."""
        await websocket.accept()
        self.connections.setdefault(key, []).append(websocket)

    async def broadcast(self, key: str, message: dict) -> None:
        """Send a message to every socket watching ``key``.

        Sockets that fail to receive are dropped from the pool.
        """
        disconnected = []
        for ws in self.connections.get(key, []):
            try:
                await ws.send_json(message)
            except Exception:
                disconnected.append(ws)

        for ws in disconnected:
            self.disconnect(key, ws)

    async def broadcast_reel(self, reel: Reel) -> None:
        """Push a reel's status; the pool for a terminal reel is released."""
        await self.broadcast(reel.id, reel_status_message(reel))
        if reel.status.is_terminal:
            self.cleanup(reel.id)

    def disconnect(self, key: str, websocket: WebSocket) -> None:
        """Remove a WebSocket from the pool."""
        if key in self.connections and websocket in self.connections[key]:
            self.connections[key].remove(websocket)
            if not self.connections[key]:
                del self.connections[key]

    def cleanup(self, key: str) -> None:
        """Remove all connections for ``key``."""
        self.connections.pop(key, None)
