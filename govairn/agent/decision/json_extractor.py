"""
JSON extraction utilities for parsing LLM responses.

Models asked for a JSON object often wrap it in a markdown fence or put prose
around it. These helpers find the first object that actually parses.
"""
import re
import json
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

_CODE_BLOCK_PATTERNS = [
    r'```json\s*(.*?)\s*```',  # ```json ... ```
    r'```\s*(.*?)\s*```',      # ``` ... ```
]


def extract_json_from_text(text: str) -> Optional[Dict[str, Any]]:
    """
    Extract and parse the first valid JSON object from text.

    Handles plain JSON, JSON inside markdown code blocks and JSON embedded
    in surrounding text.

    Args:
        text: The text containing JSON

    Returns:
        Parsed JSON dictionary or None if no valid JSON found
    """
    if not text or not isinstance(text, str):
        return None

    # Strategy 1: the whole response is the object
    json_obj = _try_parse_json(text.strip())
    if json_obj is not None:
        return json_obj

    # Strategy 2: markdown code blocks
    json_obj = _extract_from_code_blocks(text)
    if json_obj is not None:
        return json_obj

    # Strategy 3: scan for an object embedded in prose
    json_obj = _extract_embedded_object(text)
    if json_obj is not None:
        return json_obj

    logger.warning("No valid JSON found in text: %s",
                   text[:100] + "..." if len(text) > 100 else text)
    return None


def _extract_from_code_blocks(text: str) -> Optional[Dict[str, Any]]:
    """Extract JSON from markdown code blocks."""
    for pattern in _CODE_BLOCK_PATTERNS:
        for match in re.findall(pattern, text, re.DOTALL | re.IGNORECASE):
            json_obj = _try_parse_json(match.strip())
            if json_obj is not None:
                return json_obj
    return None


def _extract_embedded_object(text: str) -> Optional[Dict[str, Any]]:
    """Decode from each opening brace until an object parses."""
    decoder = json.JSONDecoder()
    start = text.find('{')
    while start != -1:
        try:
            parsed, _ = decoder.raw_decode(text, start)
            if isinstance(parsed, dict):
                return parsed
        except ValueError:
            pass
        start = text.find('{', start + 1)
    return None


def _try_parse_json(json_str: str) -> Optional[Dict[str, Any]]:
    """
    Safely attempt to parse a JSON string.

    Returns:
        Parsed JSON dictionary or None if parsing fails
    """
    if not json_str or not json_str.strip():
        return None

    try:
        parsed = json.loads(json_str)
        if isinstance(parsed, dict):
            return parsed
    except (json.JSONDecodeError, ValueError) as e:
        logger.debug("JSON parsing failed: %s", str(e))

    return None
