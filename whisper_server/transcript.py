"""
whisper_server.transcript - Transcript normalization.

Converts both whisper.cpp output shapes into an ordered list of
TranscriptLine records:
- server JSON (verbose_json) with a "segments" list, offsets in seconds
- `main` stdout lines like "[00:00:01.000 --> 00:00:02.000]  hello"
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict

from whisper_server.exceptions import EmptyTranscriptError, MalformedServerResponseError
from whisper_server.utils import format_timestamp

VTT_LINE = re.compile(r"\[([0-9:.]+)\s-->\s([0-9:.]+)\](.*)")


class TranscriptLine(BaseModel):
    """One transcribed span with HH:MM:SS.mmm timestamps."""

    model_config = ConfigDict(frozen=True)

    start: str
    end: str
    speech: str


def normalize(raw: str | Mapping[str, Any] | list[TranscriptLine]) -> list[TranscriptLine]:
    """Normalize server JSON or `main` stdout into transcript lines.

    Strings starting with "{" are treated as JSON. Already-normalized lines,
    including an empty list, are returned unchanged.

    Raises:
        MalformedServerResponseError: JSON without segments, or unknown input
        EmptyTranscriptError: Text with no transcript lines
    """
    if isinstance(raw, str) and raw.lstrip().startswith("{"):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedServerResponseError(f"Invalid JSON response: {e}") from e

    if isinstance(raw, Mapping):
        return parse_server_response(raw)
    if isinstance(raw, str):
        return parse_vtt(raw)
    if isinstance(raw, (list, tuple)):
        if all(isinstance(line, TranscriptLine) for line in raw):
            return list(raw)
    raise MalformedServerResponseError(f"Unsupported transcript type: {type(raw).__name__}")


def parse_server_response(data: Mapping[str, Any]) -> list[TranscriptLine]:
    """Parse a verbose_json server response."""
    segments = data.get("segments")
    if segments is None:
        raise MalformedServerResponseError("Invalid server response format: no segments")
    if not isinstance(segments, list):
        raise MalformedServerResponseError("Invalid server response format: segments is not a list")

    lines = []
    for segment in segments:
        try:
            lines.append(
                TranscriptLine(
                    start=format_timestamp(float(segment["start"])),
                    end=format_timestamp(float(segment["end"])),
                    speech=str(segment["text"]).strip(),
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedServerResponseError(f"Invalid segment {segment!r}: {e}") from e
    return lines


def parse_vtt(text: str) -> list[TranscriptLine]:
    """Parse bracketed-timestamp lines from `main` stdout.

    Lines without a bracketed time range are ignored.
    """
    lines = []
    for match in VTT_LINE.finditer(text):
        start, end, speech = match.groups()
        lines.append(
            TranscriptLine(start=start, end=end, speech=speech.replace("\n", "").strip())
        )

    if not lines:
        raise EmptyTranscriptError("No valid transcript lines found in whisper output")
    return lines


def render_text(lines: list[TranscriptLine]) -> str:
    """Render lines back into whisper.cpp's bracketed text format."""
    return "".join(f"[{line.start} --> {line.end}]  {line.speech}\n" for line in lines)
