"""Resolve selected photos and videos into signed, plannable media.

Also hosts the upload-time photo describer, which fills in the vision
descriptions the planner later reads.
"""

import asyncio
import re

from models.reel import (
    MIN_ELEMENT_DURATION,
    MISSING_PHOTO_DESCRIPTION,
    VIDEO_PLACEHOLDER_DESCRIPTION,
    MediaDescriptor,
    MediaKind,
)
from reel_pipeline.errors import NoMediaResolvedError
from services.object_storage import ObjectStorage
from services.reel_store import ReelStore
from utils.logging import PipelineTelemetry, get_logger

logger = get_logger(__name__)

# Stored paths may be full public URLs of the media bucket
PUBLIC_MEDIA_URL_PATTERN = re.compile(r"/storage/v1/object/public/media/(.*)")


def extract_storage_path(file_path: str) -> str:
    """Return the object key inside the media bucket for a stored path or URL."""
    match = PUBLIC_MEDIA_URL_PATTERN.search(file_path)
    if match:
        return match.group(1)
    return file_path.lstrip("/")


class MediaCatalog:
    """Turns photo/video ids into MediaDescriptors with fresh signed URLs."""

    def __init__(
        self,
        store: ReelStore,
        storage: ObjectStorage,
        media_bucket: str = "media",
        signed_url_ttl: int = 3600,
        telemetry: PipelineTelemetry | None = None,
    ):
        self.store = store
        self.storage = storage
        self.media_bucket = media_bucket
        self.signed_url_ttl = signed_url_ttl
        self.telemetry = telemetry or PipelineTelemetry()

    async def _sign(self, row_id: str, file_path: str, reel_id: str | None) -> tuple[str, str] | None:
        key = extract_storage_path(file_path)
        try:
            url = await asyncio.to_thread(
                self.storage.create_signed_url, self.media_bucket, key, self.signed_url_ttl
            )
        except Exception as e:
            logger.warning("media_sign_failed", reel_id=reel_id, media_id=row_id, key=key, error=str(e))
            return None
        return key, url

    async def resolve(
        self,
        photo_ids: list[str],
        video_ids: list[str],
        reel_id: str | None = None,
    ) -> list[MediaDescriptor]:
        """Resolve ids to descriptors, photos first, each in selection order.

        Unresolvable items are logged and skipped.

        Raises:
            NoMediaResolvedError: If nothing could be resolved
        """
        with self.telemetry.stage("media_resolution", reel_id):
            media: list[MediaDescriptor] = []

            photos = await self.store.get_photos(photo_ids)
            videos = await self.store.get_videos(video_ids)

            missing = (set(photo_ids) - {p["id"] for p in photos}) | (
                set(video_ids) - {v["id"] for v in videos}
            )
            if missing:
                logger.warning("media_rows_missing", reel_id=reel_id, media_ids=sorted(missing))

            for photo in photos:
                signed = await self._sign(photo["id"], photo["file_path"], reel_id)
                if signed is None:
                    continue
                key, url = signed
                media.append(
                    MediaDescriptor(
                        id=photo["id"],
                        kind=MediaKind.IMAGE,
                        source=url,
                        original_path=key,
                        description=photo.get("description") or MISSING_PHOTO_DESCRIPTION,
                    )
                )

            for video in videos:
                duration = video.get("duration")
                if duration is not None and duration < MIN_ELEMENT_DURATION:
                    logger.warning(
                        "video_too_short",
                        reel_id=reel_id,
                        media_id=video["id"],
                        duration=duration,
                    )
                    continue
                signed = await self._sign(video["id"], video["file_path"], reel_id)
                if signed is None:
                    continue
                key, url = signed
                media.append(
                    MediaDescriptor(
                        id=video["id"],
                        kind=MediaKind.VIDEO,
                        source=url,
                        original_path=key,
                        description=VIDEO_PLACEHOLDER_DESCRIPTION,
                        original_duration=duration,
                    )
                )

            if not media:
                raise NoMediaResolvedError(
                    f"None of {len(photo_ids)} photo(s) and {len(video_ids)} video(s) could be resolved"
                )

            logger.info(
                "media_resolved",
                reel_id=reel_id,
                resolved=len(media),
                requested=len(photo_ids) + len(video_ids),
            )
            return media


class PhotoDescriber:
    """Upload-time vision descriptions for product photos."""

    def __init__(
        self,
        store: ReelStore,
        storage: ObjectStorage,
        ai_service,
        media_bucket: str = "media",
    ):
        self.store = store
        self.storage = storage
        self.ai_service = ai_service
        self.media_bucket = media_bucket

    async def describe(self, photo_ids: list[str]) -> dict[str, str]:
        """Describe each photo and store the description.

        A photo that cannot be downloaded or described keeps no description;
        the rest of the batch continues.

        Returns:
            Mapping of photo id to stored description
        """
        descriptions: dict[str, str] = {}
        for photo in await self.store.get_photos(photo_ids):
            key = extract_storage_path(photo["file_path"])
            try:
                image_bytes = await asyncio.to_thread(
                    self.storage.download_bytes, self.media_bucket, key
                )
                description = await asyncio.to_thread(
                    self.ai_service.describe_image,
                    image_bytes,
                    ObjectStorage.guess_content_type(key),
                )
            except Exception as e:
                logger.warning("photo_description_failed", media_id=photo["id"], error=str(e))
                continue

            await self.store.update_photo_description(photo["id"], description)
            descriptions[photo["id"]] = description

        logger.info("photos_described", described=len(descriptions), requested=len(photo_ids))
        return descriptions
