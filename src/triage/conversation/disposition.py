"""Extract the structured disposition trailing a final answer."""

from __future__ import annotations

import json
import re

from pydantic import ValidationError

from triage.types import Disposition

_TRAILING_FENCE = re.compile(r"\s*```\s*$")


def parse_disposition(text: str) -> Disposition | None:
    """Return the disposition encoded as the last JSON object in `text`, if any."""

    body = _TRAILING_FENCE.sub("", text).rstrip()
    if not body.endswith("}"):
        return None

    decoder = json.JSONDecoder()
    position = body.rfind("{")
    while position != -1:
        try:
            parsed, end = decoder.raw_decode(body, position)
        except json.JSONDecodeError:
            position = body.rfind("{", 0, position)
            continue
        if end != len(body) or not isinstance(parsed, dict):
            position = body.rfind("{", 0, position)
            continue
        if not set(parsed) & set(Disposition.model_fields):
            return None
        try:
            return Disposition.model_validate(parsed)
        except ValidationError:
            return None
    return None
