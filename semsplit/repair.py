# Version: v1.0
"""
semsplit.repair — Locate and leniently parse the JSON object in an oracle reply.

Small models wrap JSON in prose or code fences, use single quotes, trailing
commas and unquoted keys, or stop before closing every bracket. parse_json()
tries strict json.loads first and falls back to one json_repair pass.
"""

import json
import re
from typing import Any

from json_repair import repair_json

from semsplit.config import logger
from semsplit.exceptions import JSONExtractionError, JSONParseError

_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def extract_json_object(text: str) -> str:
    """Return the span from the first '{' to the last '}' in *text*.

    Raises:
        JSONExtractionError: If the text holds no such span.
    """
    match = _OBJECT_RE.search(text or "")
    if match is None:
        raise JSONExtractionError("No JSON object found in response")
    return match.group(0)


def parse_json(text: str) -> Any:
    """Parse *text* as JSON, repairing it once if strict parsing fails.

    Raises:
        JSONParseError: If the strict parse fails and the repair pass does not
            recover an object or array.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as first_error:
        logger.info(f"Strict JSON parse failed ({first_error.msg}); attempting repair")

    value = repair_json(text, return_objects=True)
    if not isinstance(value, (dict, list)):
        raise JSONParseError(f"JSON parse failed after repair: recovered {value!r}")
    logger.info("JSON repair succeeded")
    return value
