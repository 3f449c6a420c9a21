"""
whisper_server.command - whisper.cpp command construction.

Builds argument lists for the one-off `main` binary and the long-running
`server` binary. Commands are token lists and are never passed to a shell.
"""

from __future__ import annotations

import sys
from enum import Enum
from pathlib import Path

from whisper_server.config import DEFAULT_PORT, WhisperFlags
from whisper_server.exceptions import ConfigError
from whisper_server.models import resolve_model

PLATFORM = sys.platform

SERVER_HOST = "0.0.0.0"


class CommandMode(str, Enum):
    """Which whisper.cpp binary to invoke."""

    ONE_OFF = "main"
    SERVER = "server"


def executable_name(base: str, platform: str = PLATFORM) -> str:
    """Return the executable file name for a platform, e.g. server.exe on win32."""
    return f"{base}.exe" if platform == "win32" else base


def flag_tokens(flags: WhisperFlags | None) -> list[str]:
    """Translate flags into command-line tokens.

    Order is fixed: language, word timestamps, timestamp size, then the
    txt/srt/vtt output toggles.
    """
    if flags is None:
        return []

    tokens: list[str] = []
    if flags.language:
        tokens += ["-l", flags.language]
    if flags.word_timestamps:
        tokens += ["-ml", "1"]
    if flags.timestamp_size:
        tokens += ["-ts", str(flags.timestamp_size)]
    if flags.gen_file_txt:
        tokens.append("-otxt")
    if flags.gen_file_subtitle:
        tokens.append("-osrt")
    if flags.gen_file_vtt:
        tokens.append("-ovtt")
    return tokens


def build_command(
    mode: CommandMode,
    model_name: str | None = None,
    model_path: str | None = None,
    flags: WhisperFlags | None = None,
    file_path: str | Path | None = None,
    port: int = DEFAULT_PORT,
    whisper_dir: Path | None = None,
    platform: str = PLATFORM,
) -> list[str]:
    """Build a whisper.cpp invocation.

    Args:
        mode: ONE_OFF for `main`, SERVER for `server`
        model_name: Key of MODELS_LIST
        model_path: Explicit weight file path
        flags: Optional whisper flags
        file_path: Audio file, required in ONE_OFF mode
        port: Listening port in SERVER mode
        whisper_dir: whisper.cpp directory used to check model files exist
        platform: Platform identifier selecting the executable suffix

    Returns:
        Argument list; the first token is the executable name relative to
        the whisper.cpp directory

    Raises:
        ConflictingModelSelectionError: If both model name and path are given
        ModelNotFoundError: If the model cannot be resolved
        ConfigError: If ONE_OFF mode has no file path
    """
    model = resolve_model(model_name, model_path, whisper_dir)
    command = [executable_name(mode.value, platform), *flag_tokens(flags), "-m", model]

    if mode is CommandMode.SERVER:
        command += ["--host", SERVER_HOST, "--port", str(port)]
    else:
        if file_path is None:
            raise ConfigError("An audio file path is required for one-off transcription")
        command += ["-f", str(file_path)]

    return command
