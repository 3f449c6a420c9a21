"""
whisper_server.server - whisper.cpp server lifecycle supervision.

A WhisperServer owns at most one running whisper.cpp `server` process:

    stopped -> starting -> running -> stopping -> stopped

Readiness is declared after a fixed grace period; the HTTP endpoint is not
polled. Shutdown sends SIGTERM, waits a bounded time, then SIGKILL.
install_lifecycle_hooks() routes termination signals and uncaught errors
through stop() so the server is never orphaned.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from asyncio.subprocess import Process
from dataclasses import dataclass
from enum import Enum
from types import TracebackType
from typing import Any, Callable

from whisper_server.command import CommandMode, build_command
from whisper_server.config import DEFAULT_PORT, WhisperOptions
from whisper_server.exceptions import ProcessExecutionError
from whisper_server.shell import ensure_built, resolve_cwd, run_supervised

logger = logging.getLogger(__name__)

STARTUP_GRACE_SECONDS = 2.0
SHUTDOWN_TIMEOUT_SECONDS = 5.0


class ServerStatus(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class ServerState:
    """Mutable state of the supervised server process."""

    status: ServerStatus = ServerStatus.STOPPED
    process: Process | None = None
    port: int = DEFAULT_PORT
    model_name: str | None = None
    model_path: str | None = None

    @property
    def is_running(self) -> bool:
        return self.status is ServerStatus.RUNNING


class WhisperServer:
    """Supervisor for a single whisper.cpp server process.

    Args:
        options: Model, flags, port and shell options used by start()
        startup_grace: Seconds to wait after spawn before declaring running
        shutdown_timeout: Seconds to wait after SIGTERM before SIGKILL
    """

    def __init__(
        self,
        options: WhisperOptions | None = None,
        *,
        startup_grace: float = STARTUP_GRACE_SECONDS,
        shutdown_timeout: float = SHUTDOWN_TIMEOUT_SECONDS,
    ) -> None:
        self.options = options or WhisperOptions()
        self.startup_grace = startup_grace
        self.shutdown_timeout = shutdown_timeout
        self.state = ServerState(port=self.options.port)
        self._hooks: LifecycleHooks | None = None

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    @property
    def url(self) -> str:
        """Base URL of the inference server."""
        return self.options.server_url or f"http://localhost:{self.state.port}"

    async def start(self, options: WhisperOptions | None = None) -> None:
        """Build whisper.cpp if needed, spawn the server and wait the grace period.

        Does nothing if a server is already running or starting.

        Raises:
            BuildFailedError: If whisper.cpp cannot be built
            ConfigError: If the model selection is invalid
            ProcessExecutionError: If the server fails to spawn or exits
                during the grace period
        """
        if self.state.status is not ServerStatus.STOPPED:
            logger.info(
                "Server already %s on port %s", self.state.status.value, self.state.port
            )
            return

        if options is not None:
            self.options = options
        opts = self.options
        self.state.status = ServerStatus.STARTING

        try:
            whisper_dir = resolve_cwd(opts.shell)
            await ensure_built(whisper_dir)

            command = build_command(
                CommandMode.SERVER,
                model_name=opts.model_name,
                model_path=opts.model_path,
                flags=opts.flags,
                port=opts.port,
                whisper_dir=whisper_dir,
            )
            logger.info("Starting server with command: %s", " ".join(command))

            shell_options = opts.shell.model_copy(update={"cwd": whisper_dir})
            process = await run_supervised(command, shell_options, on_exit=self._on_exit)
            self.state.process = process
            self.state.port = opts.port
            self.state.model_name = opts.model_name
            self.state.model_path = opts.model_path

            await asyncio.sleep(self.startup_grace)

            if self.state.process is not process:
                raise ProcessExecutionError(process.returncode, "server exited during startup")
        except BaseException as e:
            logger.error("Failed to start server: %s", e)
            self.force_stop()
            raise

        self.state.status = ServerStatus.RUNNING
        logger.info("Server started successfully on port %s", self.state.port)

    def _on_exit(self, process: Process, returncode: int) -> None:
        logger.info("Server process exited with code %s", returncode)
        if self.state.process is process:
            self.state.process = None
            self.state.status = ServerStatus.STOPPED

    async def stop(self) -> None:
        """Stop the server: SIGTERM, bounded wait, then SIGKILL.

        Never raises; errors are logged. State is always reset to stopped.
        """
        process = self.state.process
        if process is None:
            return

        logger.info("Shutting down server...")
        self.state.status = ServerStatus.STOPPING

        try:
            if process.returncode is None:
                process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout=self.shutdown_timeout)
                except asyncio.TimeoutError:
                    logger.warning("Force killing server process...")
                    try:
                        process.kill()
                    except Exception as e:
                        logger.error("Error during force kill: %s", e)
        except Exception as e:
            logger.error("Error during server shutdown: %s", e)
        finally:
            self.state.process = None
            self.state.status = ServerStatus.STOPPED
            logger.info("Server shutdown complete")

    def force_stop(self) -> None:
        """Kill the server immediately without waiting. Safe outside the event loop."""
        process = self.state.process
        try:
            if process is not None and process.returncode is None:
                process.kill()
        except Exception as e:
            logger.error("Error during force kill: %s", e)
        finally:
            self.state.process = None
            self.state.status = ServerStatus.STOPPED

    def install_hooks(self, **kwargs: Any) -> LifecycleHooks:
        """Shortcut for install_lifecycle_hooks(self, ...)."""
        return install_lifecycle_hooks(self, **kwargs)


def termination_signals() -> list[signal.Signals]:
    """Signals that trigger a supervised shutdown on this platform."""
    signals = [signal.SIGINT, signal.SIGTERM]
    if hasattr(signal, "SIGHUP"):
        signals.append(signal.SIGHUP)
    if sys.platform == "win32" and hasattr(signal, "SIGBREAK"):
        signals.append(signal.SIGBREAK)
    return signals


class LifecycleHooks:
    """Installed signal and error handlers that stop a WhisperServer.

    Use remove() (or a with block) to restore the previous handlers.
    """

    def __init__(
        self,
        server: WhisperServer,
        loop: asyncio.AbstractEventLoop,
        exit_func: Callable[[int], Any] = sys.exit,
    ) -> None:
        self.server = server
        self.loop = loop
        self.exit_func = exit_func
        self.shutdown_task: asyncio.Task | None = None
        self._loop_signals: list[signal.Signals] = []
        self._previous_signal_handlers: dict[signal.Signals, Any] = {}
        self._previous_excepthook: Callable[..., Any] | None = None
        self._previous_loop_handler: Callable[..., Any] | None = None
        self._installed = False

    def install(self) -> None:
        if self._installed:
            return

        for sig in termination_signals():
            try:
                self.loop.add_signal_handler(sig, self.handle_signal, sig)
                self._loop_signals.append(sig)
            except NotImplementedError:
                # Windows event loops: fall back to plain signal handlers
                self._previous_signal_handlers[sig] = signal.signal(sig, self._os_signal)

        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook

        self._previous_loop_handler = self.loop.get_exception_handler()
        self.loop.set_exception_handler(self._loop_exception)

        self._installed = True

    def remove(self) -> None:
        if not self._installed:
            return

        for sig in self._loop_signals:
            self.loop.remove_signal_handler(sig)
        self._loop_signals.clear()

        for sig, previous in self._previous_signal_handlers.items():
            signal.signal(sig, previous)
        self._previous_signal_handlers.clear()

        if sys.excepthook == self._excepthook:
            sys.excepthook = self._previous_excepthook or sys.__excepthook__

        self.loop.set_exception_handler(self._previous_loop_handler)

        self._installed = False
        if self.server._hooks is self:
            self.server._hooks = None

    def __enter__(self) -> LifecycleHooks:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.remove()

    def handle_signal(self, sig: int) -> None:
        logger.info("Received %s, shutting down", signal.Signals(sig).name)
        self.shutdown(0)

    def shutdown(self, exit_code: int) -> asyncio.Task:
        """Schedule stop() followed by exit_func(exit_code). Only the first call counts."""
        if self.shutdown_task is None:
            self.shutdown_task = self.loop.create_task(self._shutdown(exit_code))
        return self.shutdown_task

    async def _shutdown(self, exit_code: int) -> None:
        await self.server.stop()
        self.exit_func(exit_code)

    def _os_signal(self, signum: int, frame: Any) -> None:
        self.loop.call_soon_threadsafe(self.handle_signal, signum)

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        logger.error("Uncaught exception, stopping server")
        # A running loop cannot be re-entered from here; kill instead.
        if self.loop.is_running() or self.loop.is_closed():
            self.server.force_stop()
        else:
            try:
                self.loop.run_until_complete(self.server.stop())
            except Exception as e:
                logger.error("Error during server shutdown: %s", e)
                self.server.force_stop()
        previous = self._previous_excepthook or sys.__excepthook__
        previous(exc_type, exc, tb)

    def _loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        if self._previous_loop_handler is not None:
            self._previous_loop_handler(loop, context)
        else:
            loop.default_exception_handler(context)
        logger.error("Unhandled error in event loop, stopping server")
        self.shutdown(1)


def install_lifecycle_hooks(
    server: WhisperServer,
    loop: asyncio.AbstractEventLoop | None = None,
    exit_func: Callable[[int], Any] = sys.exit,
) -> LifecycleHooks:
    """Route termination signals and uncaught errors through server.stop().

    Installing twice for the same server returns the active hooks.

    Args:
        server: Server to stop
        loop: Event loop to run shutdown on (the running loop if None)
        exit_func: Called with the exit code after stop() completes

    Returns:
        The installed hooks; call remove() to uninstall
    """
    if server._hooks is not None:
        return server._hooks

    hooks = LifecycleHooks(server, loop or asyncio.get_running_loop(), exit_func)
    hooks.install()
    server._hooks = hooks
    return hooks
