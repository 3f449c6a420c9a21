"""
whisper_server.models - Supported whisper.cpp models and weight resolution.

Model weights live in the `models` directory of the whisper.cpp tree and are
named after the ggml conversion script's conventions.
"""

from __future__ import annotations

import logging
from pathlib import Path

from whisper_server.exceptions import (
    ConflictingModelSelectionError,
    ModelNotFoundError,
)

logger = logging.getLogger(__name__)

MODELS_DIR = "models"
DEFAULT_MODEL = "base.en"
DOWNLOAD_HINT = "Run 'whisper-server download' to fetch it"

# https://github.com/ggerganov/whisper.cpp/#more-audio-samples
MODELS_LIST: dict[str, str] = {
    "tiny": "ggml-tiny.bin",
    "tiny.en": "ggml-tiny.en.bin",
    "base": "ggml-base.bin",
    "base.en": "ggml-base.en.bin",
    "small": "ggml-small.bin",
    "small.en": "ggml-small.en.bin",
    "medium": "ggml-medium.bin",
    "medium.en": "ggml-medium.en.bin",
    "large-v1": "ggml-large-v1.bin",
    "large": "ggml-large.bin",
    "large-v3-turbo": "ggml-large-v3-turbo.bin",
}

# (disk, ram) shown by the download wizard
MODEL_SIZES: dict[str, tuple[str, str]] = {
    "tiny": ("75 MB", "~390 MB"),
    "tiny.en": ("75 MB", "~390 MB"),
    "base": ("142 MB", "~500 MB"),
    "base.en": ("142 MB", "~500 MB"),
    "small": ("466 MB", "~1.0 GB"),
    "small.en": ("466 MB", "~1.0 GB"),
    "medium": ("1.5 GB", "~2.6 GB"),
    "medium.en": ("1.5 GB", "~2.6 GB"),
    "large-v1": ("2.9 GB", "~4.7 GB"),
    "large": ("2.9 GB", "~4.7 GB"),
    "large-v3-turbo": ("1.5 GB", "-"),
}


def model_file(model_name: str) -> str:
    """Relative path of a named model's weight file, e.g. models/ggml-base.bin."""
    if model_name not in MODELS_LIST:
        raise ModelNotFoundError(
            model_name,
            "not found in list of models",
            "Check your spelling OR use a custom model path",
        )
    return str(Path(MODELS_DIR) / MODELS_LIST[model_name])


def resolve_model(
    model_name: str | None = None,
    model_path: str | None = None,
    whisper_dir: Path | None = None,
) -> str:
    """Resolve a model name or explicit path to the path passed to whisper.cpp.

    Args:
        model_name: Key of MODELS_LIST
        model_path: Explicit weight file, used verbatim
        whisper_dir: whisper.cpp working directory used for existence checks
            (current directory if None)

    Returns:
        Model path token for the `-m` flag

    Raises:
        ConflictingModelSelectionError: If both name and path are given
        ModelNotFoundError: If the name is unknown or the file is missing
    """
    if model_name and model_path:
        raise ConflictingModelSelectionError(model_name, model_path)

    base = whisper_dir or Path.cwd()

    if model_path:
        if not (base / model_path).exists():
            raise ModelNotFoundError(model_path, "model file does not exist")
        return model_path

    if not model_name:
        logger.info("No model name or model path provided. Using default model: %s", DEFAULT_MODEL)
        model_name = DEFAULT_MODEL

    relative = model_file(model_name)
    if not (base / relative).exists():
        raise ModelNotFoundError(model_name, "model not downloaded", DOWNLOAD_HINT)
    return relative
