"""Tests for whisper_server.paths module."""

from __future__ import annotations

from pathlib import Path

import pytest

from whisper_server import paths
from whisper_server.exceptions import WhisperCppNotFoundError
from whisper_server.paths import ENV_VAR, candidate_dirs, find_whisper_cpp_dir


@pytest.fixture(autouse=True)
def no_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(ENV_VAR, raising=False)


class TestFindWhisperCppDir:
    def test_explicit_dir(self, tmp_path: Path) -> None:
        assert find_whisper_cpp_dir(tmp_path) == tmp_path

    def test_explicit_missing_raises(self, tmp_path: Path) -> None:
        with pytest.raises(WhisperCppNotFoundError):
            find_whisper_cpp_dir(tmp_path / "missing")

    def test_explicit_wins_over_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        other = tmp_path / "other"
        other.mkdir()
        monkeypatch.setenv(ENV_VAR, str(other))
        assert find_whisper_cpp_dir(tmp_path) == tmp_path

    def test_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(ENV_VAR, str(tmp_path))
        assert find_whisper_cpp_dir() == tmp_path

    def test_env_var_missing_raises(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(ENV_VAR, str(tmp_path / "missing"))
        with pytest.raises(WhisperCppNotFoundError, match=ENV_VAR):
            find_whisper_cpp_dir()

    def test_first_existing_candidate(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        release = tmp_path / "release"
        bundled = tmp_path / "bundled"
        release.mkdir()
        bundled.mkdir()
        monkeypatch.setattr(
            paths, "candidate_dirs", lambda: [tmp_path / "absent", release, bundled]
        )
        assert find_whisper_cpp_dir() == release

    def test_nothing_found_raises(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(paths, "candidate_dirs", lambda: [tmp_path / "absent"])
        with pytest.raises(WhisperCppNotFoundError, match="Could not find whisper.cpp"):
            find_whisper_cpp_dir()


class TestCandidateDirs:
    def test_release_build_first(self) -> None:
        dirs = candidate_dirs()
        assert dirs[0].parts[-3:] == ("build", "bin", "Release")
        assert dirs[1] == dirs[0].parents[2]
