"""
whisper_server.transcribe - Transcription entry point.

Uses the supervised whisper.cpp server when it is running, otherwise runs the
one-off `main` binary. The mode is chosen once per call; a failure in one
mode does not fall back to the other.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from whisper_server.command import CommandMode, build_command
from whisper_server.config import WhisperOptions
from whisper_server.exceptions import (
    MalformedServerResponseError,
    ServerRequestError,
    TranscriptionError,
)
from whisper_server.server import WhisperServer
from whisper_server.shell import resolve_cwd, run_capture
from whisper_server.transcript import TranscriptLine, normalize

logger = logging.getLogger(__name__)

INFERENCE_PATH = "/inference"
RESPONSE_FORMAT = "verbose_json"


async def transcribe(
    file_path: str | Path,
    options: WhisperOptions | None = None,
    server: WhisperServer | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> list[TranscriptLine]:
    """Transcribe an audio file with whisper.cpp.

    Args:
        file_path: Audio file (16kHz WAV for the one-off binary)
        options: Model, flags and shell options (server's options if None)
        server: Supervisor; its server is used when running
        http_client: Client for server requests (a new one if None)

    Returns:
        Ordered transcript lines

    Raises:
        TranscriptionError: If the audio file is missing or the request fails
        ServerRequestError: If the server answers with an error status
        ProcessExecutionError: If the one-off process fails
        ConfigError: If the model selection is invalid
    """
    if options is None:
        options = server.options if server is not None else WhisperOptions()

    audio_path = Path(file_path).expanduser().resolve()
    if not audio_path.is_file():
        raise TranscriptionError(f"Audio file not found: {audio_path}")

    logger.info("Transcribing: %s", audio_path)

    if server is not None and server.is_running:
        url = (options.server_url or server.url) + INFERENCE_PATH
        return await _transcribe_server(audio_path, options, url, http_client)
    return await _transcribe_once(audio_path, options)


async def _transcribe_server(
    audio_path: Path,
    options: WhisperOptions,
    url: str,
    http_client: httpx.AsyncClient | None,
) -> list[TranscriptLine]:
    fields = {"response_format": RESPONSE_FORMAT, **options.flags.to_form_fields()}
    logger.debug("Sending request to %s with options: %s", url, fields)

    try:
        with open(audio_path, "rb") as f:
            files = {"file": (audio_path.name, f)}
            if http_client is not None:
                response = await http_client.post(url, data=fields, files=files)
            else:
                async with httpx.AsyncClient(timeout=None) as client:
                    response = await client.post(url, data=fields, files=files)
    except httpx.HTTPError as e:
        raise TranscriptionError(f"Request to {url} failed: {e}") from e

    if not response.is_success:
        logger.error("Server response: %s", response.text)
        raise ServerRequestError(response.reason_phrase, response.text)

    try:
        data = response.json()
    except ValueError as e:
        raise MalformedServerResponseError(f"Server returned invalid JSON: {e}") from e

    return normalize(data)


async def _transcribe_once(audio_path: Path, options: WhisperOptions) -> list[TranscriptLine]:
    whisper_dir = resolve_cwd(options.shell)
    command = build_command(
        CommandMode.ONE_OFF,
        model_name=options.model_name,
        model_path=options.model_path,
        flags=options.flags,
        file_path=audio_path,
        whisper_dir=whisper_dir,
    )
    output = await run_capture(command, options.shell.model_copy(update={"cwd": whisper_dir}))
    return normalize(output)
