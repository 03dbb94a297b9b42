"""JSON extraction from provider replies.

Providers wrap JSON in different ways: fenced code blocks, bare objects
after a marker, or objects embedded in prose. `extract_json` is lenient and
used for dynamic options; `parse_completion` is strict and used to decide
whether a conversation has finished.
"""

import json
import re
from dataclasses import dataclass
from typing import Any

from src.llm.backend import InvalidResponseError
from src.prompt import COMPLETION_MARKER

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_GREEDY_OBJECT = re.compile(r"\{[\s\S]*\}")

# A completion must describe the site through at least one of these
COMPLETION_KEYS = ("purpose", "contentTypes", "features")


class CompletionParseError(InvalidResponseError):
    """Raised when a reply carries the completion marker but no usable JSON."""


def extract_balanced_object(text: str) -> str | None:
    """Return the balanced `{...}` prefix of `text`.

    Braces inside JSON strings (including escaped quotes) are ignored.

    Returns:
        The object text, or None if `text` does not start with '{' or the
        braces never balance.
    """
    if not text.startswith("{"):
        return None

    depth = 0
    in_string = False
    escaped = False
    for i, char in enumerate(text):
        if escaped:
            escaped = False
            continue
        if char == "\\" and in_string:
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[: i + 1]
    return None


def _loads(candidate: str) -> Any | None:
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        return None


def extract_json(text: str | None) -> Any | None:
    """Best-effort JSON extraction.

    Tries, in order: the first fenced code block, the balanced object after
    the completion marker, then the span from the first '{' to the last '}'.

    Returns:
        Parsed JSON value, or None when nothing parses.
    """
    if not text:
        return None

    match = _FENCED_BLOCK.search(text)
    if match:
        parsed = _loads(match.group(1).strip())
        if parsed is not None:
            return parsed

    marker = text.find(COMPLETION_MARKER)
    if marker != -1:
        after = text[marker + len(COMPLETION_MARKER) :]
        start = after.find("{")
        if start != -1:
            candidate = extract_balanced_object(after[start:])
            if candidate is not None:
                parsed = _loads(candidate)
                if parsed is not None:
                    return parsed

    match = _GREEDY_OBJECT.search(text)
    if match:
        return _loads(match.group(0))
    return None


@dataclass
class Completion:
    """Parsed conversation completion.

    Attributes:
        reply: Text before the marker, stripped (may be empty).
        payload: JSON object following the marker.
    """

    reply: str
    payload: dict[str, Any]


def has_completion_marker(text: str) -> bool:
    return COMPLETION_MARKER in text


def parse_completion(text: str) -> Completion | None:
    """Two-phase completion parse.

    Phase one locates the marker; phase two strictly parses the JSON that
    follows it, either a fenced block or a balanced object. Nothing before
    the marker is considered.

    Returns:
        Completion, or None if the marker is absent.

    Raises:
        CompletionParseError: If the marker is present but no JSON object
            follows it, or the object names no purpose, content types or
            features.
    """
    marker = text.find(COMPLETION_MARKER)
    if marker == -1:
        return None

    reply = text[:marker].strip()
    after = text[marker + len(COMPLETION_MARKER) :]

    candidate: str | None = None
    match = _FENCED_BLOCK.search(after)
    if match:
        candidate = match.group(1).strip()
    else:
        start = after.find("{")
        if start != -1:
            candidate = extract_balanced_object(after[start:])

    if candidate is None:
        raise CompletionParseError(f"No JSON found after {COMPLETION_MARKER}")

    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise CompletionParseError(f"Malformed completion JSON: {e}") from e

    if not isinstance(payload, dict):
        raise CompletionParseError(
            f"Completion JSON must be an object, got {type(payload).__name__}"
        )
    if not any(payload.get(key) for key in COMPLETION_KEYS):
        raise CompletionParseError(
            f"Completion JSON needs one of {', '.join(COMPLETION_KEYS)}"
        )
    return Completion(reply=reply, payload=payload)


__all__ = [
    "Completion",
    "CompletionParseError",
    "extract_balanced_object",
    "extract_json",
    "has_completion_marker",
    "parse_completion",
]
