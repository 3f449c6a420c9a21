"""
whisper_server.shell - whisper.cpp process execution.

Two strategies, both rooted at the whisper.cpp directory:
- run_capture: run to completion and return stdout (one-off transcription)
- run_supervised: spawn a long-lived process and return its handle (server)

The executable is resolved against the working directory rather than PATH.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from asyncio.subprocess import Process
from pathlib import Path
from typing import Callable

from whisper_server.command import PLATFORM, executable_name
from whisper_server.config import ShellOptions
from whisper_server.exceptions import BuildFailedError, ProcessExecutionError
from whisper_server.paths import find_whisper_cpp_dir

logger = logging.getLogger(__name__)

ExitCallback = Callable[[Process, int], None]

# Strong references to exit watchers so they are not garbage collected mid-wait
_watchers: set[asyncio.Task] = set()


def resolve_cwd(options: ShellOptions | None = None) -> Path:
    """Working directory for whisper.cpp processes."""
    if options is not None and options.cwd is not None:
        return options.cwd
    return find_whisper_cpp_dir()


def _executable(command: list[str], cwd: Path) -> str:
    if not command:
        raise ValueError("Empty command")
    return str(cwd / command[0])


async def run_capture(command: list[str], options: ShellOptions | None = None) -> str:
    """Run a command to completion and return its standard output.

    Args:
        command: Argument list; command[0] is relative to the working directory
        options: Working directory and silent mode

    Returns:
        Captured stdout

    Raises:
        ProcessExecutionError: If the process cannot start or exits non-zero
    """
    options = options or ShellOptions()
    cwd = resolve_cwd(options)
    executable = _executable(command, cwd)

    if not options.silent:
        logger.info("Executing: %s %s", executable, " ".join(command[1:]))
        logger.info("Working directory: %s", cwd)

    try:
        process = await asyncio.create_subprocess_exec(
            executable,
            *command[1:],
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ProcessExecutionError(None, str(e)) from e

    stdout, stderr = await process.communicate()
    out_text = stdout.decode("utf-8", errors="replace")
    err_text = stderr.decode("utf-8", errors="replace")

    if process.returncode != 0:
        if not options.silent:
            logger.error("Process exited with code %s", process.returncode)
        raise ProcessExecutionError(process.returncode, err_text)

    if not options.silent:
        logger.info("Process completed successfully")
    return out_text


def watch_process(
    process: Process,
    on_exit: ExitCallback | None = None,
    silent: bool = False,
) -> asyncio.Task:
    """Start a task that waits for process exit, logs it and calls on_exit(process, code)."""
    task = asyncio.get_running_loop().create_task(_watch(process, on_exit, silent))
    _watchers.add(task)
    task.add_done_callback(_watchers.discard)
    return task


async def _watch(process: Process, on_exit: ExitCallback | None, silent: bool) -> None:
    returncode = await process.wait()
    if not silent:
        if returncode == 0:
            logger.info("Process completed successfully")
        else:
            logger.error("Process exited with code %s", returncode)
    if on_exit is not None:
        on_exit(process, returncode)


async def run_supervised(
    command: list[str],
    options: ShellOptions | None = None,
    on_exit: ExitCallback | None = None,
) -> Process:
    """Spawn a long-running process and return immediately.

    Output is inherited from this process, or discarded in silent mode.
    Readiness is not awaited.

    Raises:
        ProcessExecutionError: If the process cannot be started
    """
    options = options or ShellOptions()
    cwd = resolve_cwd(options)
    executable = _executable(command, cwd)

    if not options.silent:
        logger.info("Executing: %s %s", executable, " ".join(command[1:]))
        logger.info("Working directory: %s", cwd)

    stdio = asyncio.subprocess.DEVNULL if options.silent else None
    try:
        process = await asyncio.create_subprocess_exec(
            executable,
            *command[1:],
            cwd=cwd,
            stdout=stdio,
            stderr=stdio,
        )
    except OSError as e:
        logger.error("Process error: %s", e)
        raise ProcessExecutionError(None, str(e)) from e

    watch_process(process, on_exit, options.silent)
    return process


async def ensure_built(whisper_dir: Path | None = None, platform: str = PLATFORM) -> Path:
    """Build whisper.cpp with make if the server executable is missing.

    Returns:
        Path to the server executable

    Raises:
        BuildFailedError: If make is unavailable, fails, or produces no server
    """
    whisper_dir = whisper_dir or find_whisper_cpp_dir()
    server_exe = whisper_dir / executable_name("server", platform)
    if server_exe.exists():
        return server_exe

    make = shutil.which("make")
    if not make:
        raise BuildFailedError("make command not found. Please install build tools.")

    logger.info("whisper.cpp server not built. Running make...")
    process = await asyncio.create_subprocess_exec(make, cwd=whisper_dir)
    returncode = await process.wait()
    if returncode != 0:
        raise BuildFailedError(f"Failed to build whisper.cpp (make exited with code {returncode})")

    if not server_exe.exists():
        raise BuildFailedError(f"Build completed but {server_exe.name} not found")

    logger.info("Successfully built whisper.cpp")
    return server_exe
