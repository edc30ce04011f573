"""HTTP API tests with the store, quota and worker injected."""

import httpx
import pytest
import pytest_asyncio
from api.dependencies import (
    get_config,
    get_photo_describer,
    get_reel_store,
    get_reel_worker,
    get_storage,
    get_usage_service,
)
from api.server import create_app

from models.reel import ReelRequest, ReelStatus
from services.usage_service import UsageService


class FakeWorker:
    """Records enqueued reels instead of running them."""

    def __init__(self):
        self.enqueued: list[tuple[str, ReelRequest]] = []
        self.busy: set[str] = set()
        self.running = True

    async def enqueue(self, reel_id, request):
        self.enqueued.append((reel_id, request))

    def is_busy(self, reel_id):
        return reel_id in self.busy


class FakeDescriber:
    async def describe(self, photo_ids):
        return {photo_id: f"Description of {photo_id}" for photo_id in photo_ids if photo_id != "broken"}


@pytest.fixture
def worker():
    return FakeWorker()


@pytest.fixture
def usage(reel_store):
    return UsageService(reel_store, limit=2, plan_name="Free Plan")


@pytest_asyncio.fixture
async def client(reel_store, usage, worker, fake_storage):
    app = create_app(use_lifespan=False)
    app.dependency_overrides[get_config] = lambda: {
        "default_user_id": "anonymous",
        "output_bucket": "generated-reels",
    }
    app.dependency_overrides[get_storage] = lambda: fake_storage
    app.dependency_overrides[get_reel_store] = lambda: reel_store
    app.dependency_overrides[get_usage_service] = lambda: usage
    app.dependency_overrides[get_reel_worker] = lambda: worker
    app.dependency_overrides[get_photo_describer] = lambda: FakeDescriber()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def _body(**overrides) -> dict:
    body = {
        "productId": "p1",
        "title": "Trail backpack launch",
        "photoIds": ["img-1", "img-2"],
        "videoIds": ["vid-1"],
        "scriptId": "script-1",
        "fontSize": 5,
    }
    body.update(overrides)
    return body


async def _create(reel_store, reel_id="reel-1", user_id="user-1", product_id="p1"):
    request = ReelRequest(product_id=product_id, title="t", user_id=user_id, photo_ids=["img-1"])
    return await reel_store.create_reel(request, reel_id=reel_id)


# =============================================================================
# POST /api/reels
# =============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_reel_returns_pending_and_enqueues(client, reel_store, worker):
    response = await client.post("/api/reels", json=_body(), headers={"X-User-Id": "user-1"})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "pending"
    assert data["message"] == "Reel generation started"
    assert data["usage"] == {"currentUsage": 0, "limit": 2, "planName": "Free Plan", "metricName": "reels_per_month"}

    reel = await reel_store.get_reel(data["reel_id"])
    assert reel.status == ReelStatus.PENDING
    assert reel.user_id == "user-1"

    [(reel_id, request)] = worker.enqueued
    assert reel_id == data["reel_id"]
    assert request.photo_ids == ["img-1", "img-2"]
    assert request.video_ids == ["vid-1"]
    assert request.font_size == 5


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_reel_defaults_user(client, reel_store):
    response = await client.post("/api/reels", json=_body(videoIds=[]))

    reel = await reel_store.get_reel(response.json()["reel_id"])
    assert reel.user_id == "anonymous"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_reel_over_quota_creates_nothing(client, reel_store, usage, worker):
    await usage.increment("user-1")
    await usage.increment("user-1")

    response = await client.post("/api/reels", json=_body(), headers={"X-User-Id": "user-1"})

    assert response.status_code == 429
    data = response.json()
    assert data["error"] == "Usage limit exceeded"
    assert data["details"]["currentUsage"] == 2
    assert data["details"]["limit"] == 2
    assert "Free Plan" in data["message"]
    assert await reel_store.list_reels() == []
    assert worker.enqueued == []


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"photoIds": [], "videoIds": []},
        {"title": "   "},
        {"productId": ""},
        {"fontSize": 0},
    ],
)
async def test_create_reel_rejects_invalid_body(client, reel_store, worker, overrides):
    response = await client.post("/api/reels", json=_body(**overrides))

    assert response.status_code == 422
    assert await reel_store.list_reels() == []
    assert worker.enqueued == []


# =============================================================================
# Reads, retry, delete
# =============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
async def test_get_reel(client, reel_store):
    await _create(reel_store)

    response = await client.get("/api/reels/reel-1")

    assert response.status_code == 200
    assert response.json()["status"] == "pending"
    assert response.json()["progress_percentage"] == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_get_missing_reel(client):
    response = await client.get("/api/reels/nope")

    assert response.status_code == 404


@pytest.mark.integration
@pytest.mark.asyncio
async def test_list_reels_by_product(client, reel_store):
    await _create(reel_store, "reel-1", product_id="p1")
    await _create(reel_store, "reel-2", product_id="p2")

    response = await client.get("/api/reels", params={"product_id": "p2"})

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["reels"][0]["id"] == "reel-2"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_retry_failed_reel(client, reel_store, worker):
    await _create(reel_store)
    await reel_store.update_reel("reel-1", status=ReelStatus.FAILED, progress_percentage=0)

    response = await client.post("/api/reels/reel-1/retry")

    assert response.status_code == 200
    assert response.json()["status"] == "pending"
    assert (await reel_store.get_reel("reel-1")).status == ReelStatus.PENDING
    assert [reel_id for reel_id, _ in worker.enqueued] == ["reel-1"]
    assert worker.enqueued[0][1].user_id == "user-1"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_retry_completed_reel_conflicts(client, reel_store, worker):
    await _create(reel_store)
    await reel_store.update_reel("reel-1", status=ReelStatus.COMPLETED, progress_percentage=100)

    response = await client.post("/api/reels/reel-1/retry")

    assert response.status_code == 409
    assert worker.enqueued == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_retry_running_reel_conflicts(client, reel_store, worker):
    await _create(reel_store)
    worker.busy.add("reel-1")

    response = await client.post("/api/reels/reel-1/retry")

    assert response.status_code == 409


@pytest.mark.integration
@pytest.mark.asyncio
async def test_delete_reel(client, reel_store):
    await _create(reel_store)

    assert (await client.delete("/api/reels/reel-1")).status_code == 200
    assert await reel_store.get_reel("reel-1") is None
    assert (await client.delete("/api/reels/reel-1")).status_code == 404


@pytest.mark.integration
@pytest.mark.asyncio
async def test_delete_reel_removes_rendered_file(client, reel_store, fake_storage):
    await _create(reel_store)
    await reel_store.update_reel(
        "reel-1",
        status=ReelStatus.COMPLETED,
        file_name="user-1/reel-1-1.mp4",
        storage_path="generated-reels/user-1/reel-1-1.mp4",
    )
    fake_storage.put("generated-reels", "user-1/reel-1-1.mp4")

    assert (await client.delete("/api/reels/reel-1")).status_code == 200
    assert ("generated-reels", "user-1/reel-1-1.mp4") not in fake_storage.objects


@pytest.mark.integration
@pytest.mark.asyncio
async def test_delete_reel_survives_storage_error(client, reel_store, fake_storage):
    await _create(reel_store)
    await reel_store.update_reel("reel-1", status=ReelStatus.COMPLETED, file_name="user-1/reel-1-1.mp4")
    fake_storage.put("generated-reels", "user-1/reel-1-1.mp4")
    fake_storage.fail_all_deletes_in.add("generated-reels")

    assert (await client.delete("/api/reels/reel-1")).status_code == 200
    assert await reel_store.get_reel("reel-1") is None


# =============================================================================
# Other routes
# =============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_describe_photos(client):
    response = await client.post("/api/photos/describe", json={"photoIds": ["a", "broken"]})

    assert response.status_code == 200
    assert response.json() == {"descriptions": {"a": "Description of a"}, "described": 1, "requested": 2}


@pytest.mark.integration
@pytest.mark.asyncio
async def test_describe_photos_requires_ids(client):
    response = await client.post("/api/photos/describe", json={"photoIds": []})

    assert response.status_code == 422
