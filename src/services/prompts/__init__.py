"""Prompts module - centralized prompt templates for AI services.

Re-exports all prompt constants and utilities for easy importing:
    from services.prompts import PROMPT_VERSIONS, strip_markdown_code_blocks
    from services.prompts import MEDIA_SEQUENCER_V1, PHOTO_DESCRIBER_V1
"""

from services.prompts._base import strip_markdown_code_blocks
from services.prompts.sequencing import (
    MEDIA_SEQUENCER_SYSTEM,
    MEDIA_SEQUENCER_V1,
    PHOTO_DESCRIBER_V1,
)

# Increment these when prompts change
PROMPT_VERSIONS = {
    "generate_media_sequence": "v1",
    "describe_photo": "v1",
}

__all__ = [
    "strip_markdown_code_blocks",
    "MEDIA_SEQUENCER_SYSTEM",
    "MEDIA_SEQUENCER_V1",
    "PHOTO_DESCRIBER_V1",
    "PROMPT_VERSIONS",
]
