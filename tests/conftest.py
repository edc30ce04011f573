"""Shared pytest fixtures for reelforge tests."""

import sys
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from models.reel import MediaDescriptor, MediaKind, Transcript, WordTiming  # noqa: E402
from services.object_storage import StorageError  # noqa: E402
from services.reel_store import ReelStore  # noqa: E402
from utils.logging import PipelineTelemetry  # noqa: E402


class FakeStorage:
    """In-memory stand-in for ObjectStorage with the same sync interface."""

    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.signed: list[tuple[str, str]] = []
        self.unsignable_keys: set[str] = set()
        self.fail_all_signing_in: set[str] = set()
        self.fail_all_deletes_in: set[str] = set()

    def put(self, bucket: str, key: str, data: bytes = b"data") -> None:
        self.objects[(bucket, key)] = data

    def object_exists(self, bucket: str, key: str) -> bool:
        return (bucket, key) in self.objects

    def upload_bytes(self, bucket, key, data, content_type=None, upsert=False):
        if not data:
            raise StorageError("empty upload")
        if not upsert and (bucket, key) in self.objects:
            raise StorageError(f"Object already exists: {bucket}/{key}")
        self.objects[(bucket, key)] = data
        return key

    def download_bytes(self, bucket, key):
        if (bucket, key) not in self.objects:
            raise StorageError(f"Object not found: {bucket}/{key}")
        return self.objects[(bucket, key)]

    def delete_object(self, bucket, key):
        if bucket in self.fail_all_deletes_in:
            raise StorageError(f"Cannot delete {bucket}/{key}")
        return self.objects.pop((bucket, key), None) is not None

    def create_signed_url(self, bucket, key, expires_in=3600):
        if bucket in self.fail_all_signing_in or key in self.unsignable_keys:
            raise StorageError(f"Cannot sign {bucket}/{key}")
        if (bucket, key) not in self.objects:
            raise StorageError(f"Object not found: {bucket}/{key}")
        self.signed.append((bucket, key))
        return f"https://storage.test/{bucket}/{key}?token=signed-{len(self.signed)}"

    def missing_buckets(self, buckets):
        return []


class RecordingTelemetry(PipelineTelemetry):
    """Collects pipeline events instead of logging them."""

    def __init__(self):
        super().__init__()
        self.events: list[dict[str, Any]] = []

    def event(self, stage, reel_id, outcome="ok", duration_ms=None, level="info", **details):
        self.events.append(
            {"stage": stage, "reel_id": reel_id, "outcome": outcome, "duration_ms": duration_ms, **details}
        )

    def outcomes(self, stage: str) -> list[str]:
        return [e["outcome"] for e in self.events if e["stage"] == stage]


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def telemetry() -> RecordingTelemetry:
    return RecordingTelemetry()


@pytest_asyncio.fixture
async def reel_store(tmp_path):
    """Connected ReelStore on a temporary SQLite file."""
    store = ReelStore(str(tmp_path / "reels.db"))
    await store.connect()
    yield store
    await store.close()


def make_transcript(words: list[tuple[str, float, float]], text: str | None = None) -> Transcript:
    """Build a Transcript from (word, start, end) tuples."""
    timings = [WordTiming(word=w, start=s, end=e, confidence=0.99) for w, s, e in words]
    return Transcript(text=text or " ".join(w for w, _, _ in words), words=timings)


@pytest.fixture
def sample_transcript() -> Transcript:
    """A 9 second narration."""
    return make_transcript(
        [
            ("Meet", 0.0, 0.4),
            ("the", 0.4, 0.6),
            ("new", 0.6, 0.9),
            ("trail", 0.9, 1.3),
            ("backpack.", 1.3, 2.0),
            ("Waterproof", 2.5, 3.4),
            ("and", 3.4, 3.6),
            ("light.", 3.6, 4.2),
            ("Now", 5.0, 5.4),
            ("with", 5.4, 5.7),
            ("a", 5.7, 5.8),
            ("lifetime", 5.8, 6.6),
            ("warranty.", 6.6, 9.0),
        ]
    )


def image(media_id: str, description: str = "A product photo") -> MediaDescriptor:
    return MediaDescriptor(
        id=media_id,
        kind=MediaKind.IMAGE,
        source=f"https://storage.test/media/{media_id}.jpg",
        original_path=f"photos/p1/{media_id}.jpg",
        description=description,
    )


def video(media_id: str, duration: float | None) -> MediaDescriptor:
    return MediaDescriptor(
        id=media_id,
        kind=MediaKind.VIDEO,
        source=f"https://storage.test/media/{media_id}.mp4",
        original_path=f"videos/p1/{media_id}.mp4",
        description="Video content",
        original_duration=duration,
    )


@pytest.fixture
def sample_media() -> list[MediaDescriptor]:
    return [image("img-1", "Backpack on a trail"), image("img-2", "Backpack in rain"), video("vid-1", 4.0)]
