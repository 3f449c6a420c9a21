"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from whisper_server.config import ShellOptions, WhisperOptions
from whisper_server.shell import watch_process


class FakeProcess:
    """Stand-in for asyncio.subprocess.Process that records signals."""

    def __init__(self, exit_on_terminate: bool = True, kill_error: Exception | None = None):
        self.pid = 4242
        self.returncode: int | None = None
        self.exit_on_terminate = exit_on_terminate
        self.kill_error = kill_error
        self.signals: list[str] = []
        self._exited = asyncio.Event()

    def terminate(self) -> None:
        self.signals.append("SIGTERM")
        if self.exit_on_terminate:
            self.exit(-15)

    def kill(self) -> None:
        self.signals.append("SIGKILL")
        if self.kill_error is not None:
            raise self.kill_error
        self.exit(-9)

    def exit(self, code: int) -> None:
        if self.returncode is None:
            self.returncode = code
            self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode


class FakeSpawner:
    """Replaces run_supervised; keeps every command and process it spawned."""

    def __init__(self) -> None:
        self.spawned: list[tuple[list[str], FakeProcess]] = []
        self.make_process = FakeProcess

    async def __call__(self, command, options=None, on_exit=None) -> FakeProcess:
        process = self.make_process()
        self.spawned.append((command, process))
        watch_process(process, on_exit, silent=True)
        return process


@pytest.fixture
def whisper_dir(tmp_path: Path) -> Path:
    """Create a fake whisper.cpp directory with the default model downloaded."""
    root = tmp_path / "whisper.cpp"
    models = root / "models"
    models.mkdir(parents=True)
    (models / "ggml-base.en.bin").write_bytes(b"fake weights")
    (models / "ggml-tiny.bin").write_bytes(b"fake weights")
    return root


@pytest.fixture
def options(whisper_dir: Path) -> WhisperOptions:
    """Options rooted at the fake whisper.cpp directory."""
    return WhisperOptions(shell=ShellOptions(cwd=whisper_dir, silent=True))


@pytest.fixture
def fake_process() -> type[FakeProcess]:
    """The FakeProcess class, for building processes with custom exit behaviour."""
    return FakeProcess


@pytest.fixture
def fake_spawn(monkeypatch: pytest.MonkeyPatch) -> FakeSpawner:
    """Patch the server module so no real whisper.cpp build or process is used."""
    spawner = FakeSpawner()

    async def fake_ensure_built(whisper_dir=None, platform=None):
        return whisper_dir / "server"

    monkeypatch.setattr("whisper_server.server.run_supervised", spawner)
    monkeypatch.setattr("whisper_server.server.ensure_built", fake_ensure_built)
    return spawner


@pytest.fixture
def audio_file(tmp_path: Path) -> Path:
    """A placeholder audio file."""
    path = tmp_path / "audio.wav"
    path.write_bytes(b"RIFF0000WAVEfmt ")
    return path


@pytest.fixture
def server_response() -> dict:
    """Return a sample verbose_json server response."""
    return {
        "task": "transcribe",
        "language": "english",
        "duration": 13.0,
        "segments": [
            {"id": 0, "start": 0.0, "end": 4.0, "text": " And so my fellow Americans"},
            {"id": 1, "start": 4.0, "end": 13.0, "text": " ask not what your country can do "},
        ],
    }


@pytest.fixture
def main_output() -> str:
    """Return sample stdout of the whisper.cpp main binary."""
    return (
        "\n"
        "[00:00:00.000 --> 00:00:04.000]   And so my fellow Americans\n"
        "[00:00:04.000 --> 00:00:13.000]   ask not what your country can do for you\n"
    )
