"""Media sequencing prompt templates.

Contains prompts for:
- MEDIA_SEQUENCER_SYSTEM: Role and hard rules for the sequencing model
- MEDIA_SEQUENCER_V1: Narration + media inventory -> timed element list
- PHOTO_DESCRIBER_V1: Short description of a product photo
"""

MEDIA_SEQUENCER_SYSTEM = """You are a short-form video editor. You arrange product photos and
video clips into a vertical reel that follows a spoken narration. You answer with JSON only."""

# Media Sequencer v1 prompt
# Template placeholders: {transcript_text}, {word_timings}, {media_inventory},
# {total_duration}, {min_duration}
MEDIA_SEQUENCER_V1 = """TASK
Order the media below so each item appears while the narration talks about it.

NARRATION
<<<
{transcript_text}
>>>

WORD TIMINGS (seconds)
{word_timings}

MEDIA
{media_inventory}

RULES
1. Match each item to the part of the narration it illustrates.
2. Consider the natural flow of the narration when ordering.
3. Every element lasts at least {min_duration} seconds.
4. A video may not be shown longer than its length.
5. Elements are back to back: no gaps, no overlaps.
6. The first element starts at 0 and the last element ends at exactly {total_duration}.
7. You may reuse media if there is not enough to fill the narration.
8. Only use ids from the MEDIA list.

OUTPUT FORMAT (JSON)
Return ONLY a JSON object with this exact structure:
{{
  "elements": [
    {{"id": "media id", "type": "image|video", "start_time": 0.0, "duration": 3.0}}
  ],
  "total_duration": {total_duration}
}}"""

# Photo Describer v1 prompt
PHOTO_DESCRIBER_V1 = """Describe this product photo in one or two plain sentences: what is shown,
the setting, and anything that stands out. No marketing language."""
