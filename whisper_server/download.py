"""
whisper_server.download - Interactive model download wizard.

Wraps whisper.cpp's bundled download-ggml-model script: asks for a model
name, runs the script, then rebuilds whisper.cpp.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Callable

from rich.console import Console
from rich.table import Table

from whisper_server.command import PLATFORM
from whisper_server.exceptions import BuildFailedError, DownloadError
from whisper_server.models import DEFAULT_MODEL, MODEL_SIZES, MODELS_DIR, MODELS_LIST
from whisper_server.paths import find_whisper_cpp_dir

logger = logging.getLogger(__name__)

CANCEL = "cancel"
PROMPT = (
    f"\nEnter model name (e.g. '{DEFAULT_MODEL}') or '{CANCEL}' to exit\n"
    f"(ENTER for {DEFAULT_MODEL}): "
)


def model_table() -> Table:
    """Table of downloadable models with disk and memory requirements."""
    table = Table(title="whisper.cpp models")
    table.add_column("Model", style="cyan")
    table.add_column("Disk", style="green")
    table.add_column("RAM", style="green")
    for name in MODELS_LIST:
        disk, ram = MODEL_SIZES.get(name, ("-", "-"))
        table.add_row(name, disk, ram)
    return table


def ask_model(
    prompt: Callable[[str], str] | None = None,
    console: Console | None = None,
    max_attempts: int | None = None,
) -> str | None:
    """Ask for a model name until a valid one is entered.

    Args:
        prompt: Reads one answer (console.input if None)
        console: Rich console for messages
        max_attempts: Give up after this many invalid answers (None: never)

    Returns:
        Model name, or None if the user cancelled

    Raises:
        DownloadError: If max_attempts invalid answers were given
    """
    console = console or Console()
    prompt = prompt or console.input

    attempts = 0
    while max_attempts is None or attempts < max_attempts:
        attempts += 1
        answer = prompt(PROMPT).strip()

        if answer == CANCEL:
            console.print(
                "Exiting model downloader. Run again with: [cyan]whisper-server download[/cyan]"
            )
            return None
        if answer == "":
            console.print(f"Going with {DEFAULT_MODEL}")
            return DEFAULT_MODEL
        if answer in MODELS_LIST:
            return answer

        console.print(
            "\n[red]FAIL: Name not found. Check your spelling OR quit wizard "
            "and use custom model.[/red]"
        )

    raise DownloadError(f"No valid model name after {max_attempts} attempts")


def downloader_script(whisper_dir: Path, platform: str = PLATFORM) -> Path:
    """Path of the whisper.cpp model download script for this platform.

    Raises:
        DownloadError: If the script is missing
    """
    name = "download-ggml-model.cmd" if platform == "win32" else "download-ggml-model.sh"
    script = whisper_dir / MODELS_DIR / name
    if not script.exists():
        raise DownloadError(
            f"Downloader script not found at {script}. "
            "Check that whisper.cpp is checked out completely."
        )
    return script


def download_model(
    model_name: str,
    whisper_dir: Path,
    platform: str = PLATFORM,
) -> int:
    """Run the download script for a model.

    The script's exit code is returned and logged but not acted on.
    """
    script = downloader_script(whisper_dir, platform)
    command = [str(script), model_name] if platform == "win32" else ["sh", str(script), model_name]

    logger.info("Downloading model %s", model_name)
    proc = subprocess.run(command, cwd=whisper_dir / MODELS_DIR)
    if proc.returncode != 0:
        logger.warning("Download script exited with code %s", proc.returncode)
    return proc.returncode


def rebuild_whisper_cpp(whisper_dir: Path, cuda: bool = False) -> int:
    """Run `make clean` and `make -j` in the whisper.cpp directory.

    Args:
        whisper_dir: whisper.cpp directory
        cuda: Build with GGML_CUDA=1

    Returns:
        Exit code of `make -j`

    Raises:
        BuildFailedError: If make is not installed
    """
    make = shutil.which("make")
    if not make:
        raise BuildFailedError("make command not found. Please install build tools.")

    env = os.environ.copy()
    if cuda:
        env["GGML_CUDA"] = "1"

    subprocess.run([make, "clean"], cwd=whisper_dir, env=env)
    proc = subprocess.run([make, "-j"], cwd=whisper_dir, env=env)
    if proc.returncode != 0:
        logger.warning("make exited with code %s", proc.returncode)
    return proc.returncode


def run_wizard(
    whisper_dir: Path | None = None,
    cuda: bool = False,
    prompt: Callable[[str], str] | None = None,
    console: Console | None = None,
    max_attempts: int | None = None,
    platform: str = PLATFORM,
) -> str | None:
    """Show the model table, ask for a model, download it and rebuild.

    Returns:
        Downloaded model name, or None if cancelled
    """
    console = console or Console()
    whisper_dir = find_whisper_cpp_dir(whisper_dir)

    console.print(model_table())
    downloader_script(whisper_dir, platform)

    model_name = ask_model(prompt=prompt, console=console, max_attempts=max_attempts)
    if model_name is None:
        return None

    download_model(model_name, whisper_dir, platform)

    console.print("[dim]Attempting to compile model...[/dim]")
    rebuild_whisper_cpp(whisper_dir, cuda=cuda)
    return model_name
