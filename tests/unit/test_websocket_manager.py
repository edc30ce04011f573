"""Unit tests for WebSocketManager status pushes."""

from unittest.mock import AsyncMock

import pytest
from api.websocket_manager import WebSocketManager, reel_status_message

from models.reel import Reel, ReelStatus


def _reel(status: ReelStatus) -> Reel:
    return Reel(
        id="reel-1",
        product_id="p1",
        user_id="user-1",
        title="Launch",
        status=status,
        progress_percentage=status.progress,
    )


@pytest.mark.unit
def test_status_message():
    message = reel_status_message(_reel(ReelStatus.RENDERING_PROCESSING))

    assert message == {
        "type": "status",
        "reel_id": "reel-1",
        "status": "rendering_processing",
        "progress_percentage": 75,
        "storage_path": None,
    }


@pytest.mark.unit
@pytest.mark.asyncio
async def test_broadcast_drops_dead_sockets():
    manager = WebSocketManager()
    alive, dead = AsyncMock(), AsyncMock()
    dead.send_json.side_effect = RuntimeError("closed")
    await manager.connect("reel-1", alive)
    await manager.connect("reel-1", dead)

    await manager.broadcast_reel(_reel(ReelStatus.PROCESSING))

    alive.send_json.assert_awaited_once()
    assert manager.connections["reel-1"] == [alive]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_terminal_status_releases_pool():
    manager = WebSocketManager()
    socket = AsyncMock()
    await manager.connect("reel-1", socket)

    await manager.broadcast_reel(_reel(ReelStatus.COMPLETED))

    socket.send_json.assert_awaited_once()
    assert "reel-1" not in manager.connections
