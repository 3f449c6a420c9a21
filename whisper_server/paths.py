"""
whisper_server.paths - Locate the whisper.cpp working directory.
"""

from __future__ import annotations

import os
from pathlib import Path

from whisper_server.exceptions import WhisperCppNotFoundError

ENV_VAR = "WHISPER_CPP_DIR"

PACKAGE_DIR = Path(__file__).parent


def candidate_dirs() -> list[Path]:
    """Directories searched for whisper.cpp, in order."""
    bundled = PACKAGE_DIR / "lib" / "whisper.cpp"
    return [
        bundled / "build" / "bin" / "Release",
        bundled,
        PACKAGE_DIR.parent / "lib" / "whisper.cpp",
    ]


def find_whisper_cpp_dir(explicit: Path | None = None) -> Path:
    """Find the whisper.cpp directory.

    Checks, in order: the explicit path, $WHISPER_CPP_DIR, the Release
    binaries of the bundled build, the bundled tree, then the development
    checkout next to the package.

    Raises:
        WhisperCppNotFoundError: If no candidate exists
    """
    if explicit is not None:
        if not explicit.is_dir():
            raise WhisperCppNotFoundError(f"whisper.cpp directory not found: {explicit}")
        return explicit

    env_dir = os.environ.get(ENV_VAR)
    if env_dir:
        path = Path(env_dir).expanduser()
        if not path.is_dir():
            raise WhisperCppNotFoundError(f"{ENV_VAR} points to a missing directory: {path}")
        return path

    for candidate in candidate_dirs():
        if candidate.is_dir():
            return candidate

    raise WhisperCppNotFoundError(
        f"Could not find whisper.cpp directory. Set {ENV_VAR} or build it under "
        f"{PACKAGE_DIR / 'lib' / 'whisper.cpp'}"
    )
