"""Photo routes: upload-time vision descriptions."""

from api.dependencies import get_photo_describer
from api.schemas import PhotoDescribeRequest, PhotoDescribeResponse
from fastapi import APIRouter, Depends
from reel_pipeline.media_catalog import PhotoDescriber

router = APIRouter(tags=["Photos"])


@router.post(
    "/api/photos/describe",
    response_model=PhotoDescribeResponse,
    summary="Describe uploaded photos",
    description="Generate and store a short description for each photo. Photos that fail are skipped.",
)
async def describe_photos(
    body: PhotoDescribeRequest,
    describer: PhotoDescriber = Depends(get_photo_describer),
) -> dict:
    descriptions = await describer.describe(body.photo_ids)
    return {
        "descriptions": descriptions,
        "described": len(descriptions),
        "requested": len(body.photo_ids),
    }
