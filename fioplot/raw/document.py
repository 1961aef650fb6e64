"""Helpers for decoding raw fio JSON output that may carry surrounding noise."""

from __future__ import annotations

import json
import logging
from typing import Any

from fioplot.errors import MalformedInput

logger = logging.getLogger(__name__)


def extract_json_span(data: bytes) -> bytes:
    """Return the bytes between the first `{` and the last `}` inclusive.

    fio writes banners and warnings around the JSON body when `--output`
    is shared with stderr, so everything outside the outermost braces is
    discarded.

    Raises:
        MalformedInput: If no `{ ... }` span exists.
    """
    begin = data.find(b"{")
    end = data.rfind(b"}") + 1
    if begin < 0 or begin >= end:
        raise MalformedInput("No JSON object span found in input")
    if begin > 0 or end < len(data):
        logger.debug("Discarded %d leading and %d trailing bytes", begin, len(data) - end)
    return data[begin:end]


def decode_document(data: bytes) -> dict[str, Any]:
    """Decode a raw result document into a JSON object.

    Raises:
        MalformedInput: If the span is missing, is not valid JSON, or does
            not decode to an object.
    """
    span = extract_json_span(data)
    try:
        doc = json.loads(span)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedInput(f"Invalid JSON input: {exc}") from exc
    if not isinstance(doc, dict):
        raise MalformedInput(f"Expected a JSON object, got {type(doc).__name__}")
    return doc
