"""Shared helpers for model responses."""

import re

# A fenced block anywhere in the reply, optionally tagged json
_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)


def strip_markdown_code_blocks(text: str) -> str:
    """Return the payload of a model reply without markdown fences.

    Models occasionally wrap JSON in a code fence, sometimes after a line
    of prose. The first fenced block wins; unfenced text is returned
    trimmed.

    Args:
        text: Raw model reply

    Returns:
        Reply with fences removed
    """
    text = text.strip()
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    return text
