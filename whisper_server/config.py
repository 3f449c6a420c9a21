"""
whisper_server.config - Option models and YAML config loading.

Options can be built in code or loaded from a whisper-server.yaml file; CLI
flags are merged on top of file values.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from whisper_server.exceptions import ConfigError

CONFIG_FILENAME = "whisper-server.yaml"
DEFAULT_PORT = 8080


class WhisperFlags(BaseModel):
    """Optional whisper.cpp flags. Unset fields are not passed."""

    # https://github.com/ggerganov/whisper.cpp/blob/master/README.md?plain=1#L91
    language: str | None = None
    word_timestamps: bool | None = None
    timestamp_size: int | None = Field(default=None, gt=0)
    gen_file_txt: bool | None = None
    gen_file_subtitle: bool | None = None
    gen_file_vtt: bool | None = None

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("language must not be empty")
        return v

    def to_form_fields(self) -> dict[str, str]:
        """Flatten set flags into multipart form fields.

        Booleans are sent as lowercase "true"/"false".
        """
        fields = {}
        for key, value in self.model_dump(exclude_none=True).items():
            fields[key] = str(value).lower() if isinstance(value, bool) else str(value)
        return fields


class ShellOptions(BaseModel):
    """Process options. A None cwd means the discovered whisper.cpp directory."""

    cwd: Path | None = None
    silent: bool = False


class WhisperOptions(BaseModel):
    """Options shared by server start-up and transcription."""

    model_config = ConfigDict(protected_namespaces=())

    model_name: str | None = None
    model_path: str | None = None
    flags: WhisperFlags = Field(default_factory=WhisperFlags)
    shell: ShellOptions = Field(default_factory=ShellOptions)
    server_url: str | None = None
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)

    @field_validator("server_url")
    @classmethod
    def validate_server_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError("server_url must start with http:// or https://")
        return v.rstrip("/")


def merge_config(file_config: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge CLI overrides onto file config. Overrides take precedence.

    None values in overrides are ignored; nested flags and shell dicts merge
    key by key.
    """
    merged = dict(file_config)
    for key, value in overrides.items():
        if key in ("flags", "shell") and isinstance(value, dict):
            nested = dict(merged.get(key) or {})
            nested.update({k: v for k, v in value.items() if v is not None})
            merged[key] = nested
        elif value is not None:
            merged[key] = value
    return merged


def find_config_file(start: Path | None = None) -> Path | None:
    """Find whisper-server.yaml in start (or cwd) or any parent directory."""
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        if current == current.parent:
            return None
        current = current.parent


def load_config(
    config_file: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> WhisperOptions:
    """Load and validate options from a YAML file plus overrides.

    Args:
        config_file: Path to YAML file (None for defaults plus overrides)
        overrides: Values taking precedence over the file

    Returns:
        Validated WhisperOptions

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    raw_config: dict[str, Any] = {}
    if config_file is not None:
        if not config_file.exists():
            raise ConfigError(f"No config file found at {config_file}")
        try:
            with open(config_file) as f:
                raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e
        if not isinstance(raw_config, dict):
            raise ConfigError(f"{config_file} must contain a mapping")

    merged = merge_config(raw_config, overrides or {})
    try:
        return WhisperOptions(**merged)
    except ValueError as e:
        raise ConfigError(str(e)) from e


def write_config(options: WhisperOptions, path: Path) -> None:
    """Write options to a YAML file, omitting unset values."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = options.model_dump(mode="json", exclude_none=True)
    with open(path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)
