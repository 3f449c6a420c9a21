"""Tests for whisper_server.transcript module."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from whisper_server.exceptions import EmptyTranscriptError, MalformedServerResponseError
from whisper_server.transcript import (
    TranscriptLine,
    normalize,
    parse_server_response,
    parse_vtt,
    render_text,
)


class TestParseServerResponse:
    def test_single_segment(self) -> None:
        result = parse_server_response({"segments": [{"start": 4.0, "end": 13.0, "text": " hi "}]})
        assert result == [TranscriptLine(start="00:00:04.000", end="00:00:13.000", speech="hi")]

    def test_segments_keep_order(self, server_response: dict) -> None:
        result = parse_server_response(server_response)
        assert [line.start for line in result] == ["00:00:00.000", "00:00:04.000"]
        assert result[1].speech == "ask not what your country can do"

    def test_fractional_and_hour_offsets(self) -> None:
        result = parse_server_response(
            {"segments": [{"start": 3723.5, "end": 3725.125, "text": "late"}]}
        )
        assert result[0].start == "01:02:03.500"
        assert result[0].end == "01:02:05.125"

    def test_empty_segments(self) -> None:
        assert parse_server_response({"segments": []}) == []

    def test_missing_segments_raises(self) -> None:
        with pytest.raises(MalformedServerResponseError):
            parse_server_response({"text": "hello"})

    def test_segments_not_a_list_raises(self) -> None:
        with pytest.raises(MalformedServerResponseError):
            parse_server_response({"segments": "hello"})

    def test_segment_without_text_raises(self) -> None:
        with pytest.raises(MalformedServerResponseError):
            parse_server_response({"segments": [{"start": 0.0, "end": 1.0}]})


class TestParseVtt:
    def test_single_line(self) -> None:
        result = parse_vtt("[00:00:01.000 --> 00:00:02.000]  hello world\n")
        assert result == [
            TranscriptLine(start="00:00:01.000", end="00:00:02.000", speech="hello world")
        ]

    def test_main_output(self, main_output: str) -> None:
        result = parse_vtt(main_output)
        assert len(result) == 2
        assert result[0].speech == "And so my fellow Americans"
        assert result[1].end == "00:00:13.000"

    def test_ignores_non_matching_lines(self) -> None:
        text = (
            "whisper_init_from_file: loading model\n"
            "[00:00:00.000 --> 00:00:01.500]  first\n"
            "system_info: n_threads = 4\n"
            "[00:00:01.500 --> 00:00:03.000]  second\n"
        )
        result = parse_vtt(text)
        assert [line.speech for line in result] == ["first", "second"]

    def test_windows_line_endings(self) -> None:
        result = parse_vtt("[00:00:00.000 --> 00:00:01.000]  hello\r\n")
        assert result[0].speech == "hello"

    def test_no_lines_raises(self) -> None:
        with pytest.raises(EmptyTranscriptError):
            parse_vtt("whisper_print_timings: total time = 100 ms\n")

    def test_empty_string_raises(self) -> None:
        with pytest.raises(EmptyTranscriptError):
            parse_vtt("")


class TestNormalize:
    def test_mapping(self, server_response: dict) -> None:
        assert normalize(server_response) == parse_server_response(server_response)

    def test_json_string(self, server_response: dict) -> None:
        assert normalize(json.dumps(server_response)) == parse_server_response(server_response)

    def test_invalid_json_string_raises(self) -> None:
        with pytest.raises(MalformedServerResponseError):
            normalize('{"segments": [')

    def test_text(self, main_output: str) -> None:
        assert normalize(main_output) == parse_vtt(main_output)

    def test_is_deterministic(self, server_response: dict) -> None:
        assert normalize(server_response) == normalize(server_response)

    def test_normalized_lines_unchanged(self, main_output: str) -> None:
        lines = normalize(main_output)
        assert normalize(lines) == lines

    def test_empty_transcript_renormalizes(self) -> None:
        lines = normalize({"segments": []})
        assert lines == []
        assert normalize(lines) == []
        assert normalize(()) == []

    @pytest.mark.parametrize("raw", [None, 42, [{"start": 0.0}], b"bytes"])
    def test_unknown_shape_raises(self, raw: object) -> None:
        with pytest.raises(MalformedServerResponseError):
            normalize(raw)


class TestTranscriptLine:
    def test_is_frozen(self) -> None:
        line = TranscriptLine(start="00:00:00.000", end="00:00:01.000", speech="hi")
        with pytest.raises(ValidationError):
            line.speech = "changed"


class TestRenderText:
    def test_renders_parseable_text(self, main_output: str) -> None:
        lines = parse_vtt(main_output)
        assert parse_vtt(render_text(lines)) == lines

    def test_format(self) -> None:
        line = TranscriptLine(start="00:00:01.000", end="00:00:02.000", speech="hello")
        assert render_text([line]) == "[00:00:01.000 --> 00:00:02.000]  hello\n"
