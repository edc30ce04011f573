"""Unit tests for prompt templates and reply cleanup."""

import pytest
from services.prompts import MEDIA_SEQUENCER_V1, strip_markdown_code_blocks


@pytest.mark.unit
@pytest.mark.parametrize(
    "reply,expected",
    [
        ('{"elements": []}', '{"elements": []}'),
        ('```json\n{"elements": []}\n```', '{"elements": []}'),
        ('```\n{"elements": []}\n```', '{"elements": []}'),
        ('Here is the sequence:\n```json\n{"elements": []}\n```\nEnjoy!', '{"elements": []}'),
    ],
)
def test_strip_markdown_code_blocks(reply, expected):
    assert strip_markdown_code_blocks(reply) == expected


@pytest.mark.unit
def test_sequencer_prompt_formats():
    prompt = MEDIA_SEQUENCER_V1.format(
        transcript_text="Meet the backpack.",
        word_timings="0.00-0.40 Meet",
        media_inventory="- id: a | type: image | description: x",
        total_duration=9.0,
        min_duration=2.0,
    )

    assert "Meet the backpack." in prompt
    assert "- id: a" in prompt
    assert "9.0" in prompt
