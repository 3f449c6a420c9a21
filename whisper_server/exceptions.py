"""
whisper_server.exceptions - Custom exception classes.

All whisper-server exceptions inherit from WhisperServerError.
"""


class WhisperServerError(Exception):
    """Base exception for all whisper-server errors."""

    pass


class ConfigError(WhisperServerError):
    """Configuration loading or validation error."""

    pass


class ConflictingModelSelectionError(ConfigError):
    """Both a model name and a model path were supplied."""

    def __init__(self, model_name: str, model_path: str):
        self.model_name = model_name
        self.model_path = model_path
        super().__init__(
            f"Submit a model name OR a model path, not both "
            f"(got model name '{model_name}' and model path '{model_path}')"
        )


class ModelNotFoundError(ConfigError):
    """Model is unknown or its weight file is not on disk."""

    def __init__(self, model: str, message: str, hint: str | None = None):
        self.model = model
        self.message = message
        self.hint = hint
        text = f"{model}: {message}"
        if hint:
            text = f"{text}. {hint}"
        super().__init__(text)


class WhisperCppNotFoundError(WhisperServerError):
    """The whisper.cpp directory could not be located."""

    pass


class BuildFailedError(WhisperServerError):
    """Building whisper.cpp failed."""

    pass


class ProcessExecutionError(WhisperServerError):
    """A whisper.cpp process failed to start or exited non-zero."""

    def __init__(self, exit_code: int | None, stderr: str = ""):
        self.exit_code = exit_code
        self.stderr = stderr
        detail = stderr.strip() or "no output on stderr"
        super().__init__(f"Process exited with code {exit_code}: {detail}")


class TranscriptionError(WhisperServerError):
    """Transcription error."""

    pass


class ServerRequestError(TranscriptionError):
    """The inference server answered with a non-success status."""

    def __init__(self, status_text: str, body: str = ""):
        self.status_text = status_text
        self.body = body
        super().__init__(f"Server error: {status_text}")


class MalformedServerResponseError(TranscriptionError):
    """Server response has no segments list or is not a known shape."""

    pass


class EmptyTranscriptError(TranscriptionError):
    """No transcript lines were found in process output."""

    pass


class DownloadError(WhisperServerError):
    """Model download wizard error."""

    pass
