"""
whisper_server.cli - Typer CLI entry point.

Provides the download, models, transcribe and serve subcommands.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from whisper_server import __version__
from whisper_server.config import WhisperOptions, find_config_file, load_config
from whisper_server.exceptions import WhisperServerError
from whisper_server.io import write_json, write_text
from whisper_server.logging import configure_logging
from whisper_server.models import MODEL_SIZES, MODELS_LIST, model_file
from whisper_server.paths import find_whisper_cpp_dir
from whisper_server.server import WhisperServer, install_lifecycle_hooks
from whisper_server.transcribe import transcribe
from whisper_server.transcript import TranscriptLine, render_text

app = typer.Typer(
    name="whisper-server",
    help="Transcribe audio with whisper.cpp.\n\n"
    "Runs the one-off whisper.cpp binary or supervises a whisper.cpp "
    "inference server and sends audio to it over HTTP.",
    add_completion=False,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"whisper-server {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors"),
) -> None:
    """whisper-server - whisper.cpp transcription from the command line."""
    configure_logging(verbose=verbose, quiet=quiet)


def _load_options(
    config: str | None,
    model: str | None,
    model_path: str | None,
    whisper_dir: str | None,
    port: int | None,
    silent: bool,
    language: str | None = None,
    word_timestamps: bool = False,
    timestamp_size: int | None = None,
    otxt: bool = False,
    osrt: bool = False,
    ovtt: bool = False,
    server_url: str | None = None,
) -> WhisperOptions:
    """Load the config file (explicit or found upwards from cwd) with CLI overrides."""
    config_file = Path(config) if config else find_config_file()
    overrides = {
        "model_name": model,
        "model_path": model_path,
        "port": port,
        "server_url": server_url,
        "flags": {
            "language": language,
            "word_timestamps": True if word_timestamps else None,
            "timestamp_size": timestamp_size,
            "gen_file_txt": True if otxt else None,
            "gen_file_subtitle": True if osrt else None,
            "gen_file_vtt": True if ovtt else None,
        },
        "shell": {
            "cwd": whisper_dir,
            "silent": True if silent else None,
        },
    }
    return load_config(config_file, overrides)


@app.command("download")
def download_cmd(
    whisper_dir: str | None = typer.Option(
        None, "--whisper-dir", "-w", help="whisper.cpp directory"
    ),
    cuda: bool = typer.Option(False, "--cuda", help="Rebuild whisper.cpp with CUDA support"),
) -> None:
    """Download a whisper.cpp model and rebuild whisper.cpp."""
    from whisper_server.download import run_wizard

    try:
        model_name = run_wizard(
            whisper_dir=Path(whisper_dir) if whisper_dir else None,
            cuda=cuda,
            console=console,
        )
    except WhisperServerError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if model_name is None:
        raise typer.Exit(0)
    console.print(f"[green]✓[/green] Downloaded '{model_name}'")


@app.command("models")
def list_models(
    whisper_dir: str | None = typer.Option(
        None, "--whisper-dir", "-w", help="whisper.cpp directory"
    ),
) -> None:
    """List supported models and whether they are downloaded."""
    try:
        base = find_whisper_cpp_dir(Path(whisper_dir) if whisper_dir else None)
    except WhisperServerError:
        base = None

    table = Table(title="whisper.cpp models")
    table.add_column("Model", style="cyan")
    table.add_column("File")
    table.add_column("Disk", style="green")
    table.add_column("RAM", style="green")
    table.add_column("Status", style="yellow")

    for name in MODELS_LIST:
        relative = model_file(name)
        disk, ram = MODEL_SIZES.get(name, ("-", "-"))
        if base is None:
            status = "[dim]unknown[/dim]"
        elif (base / relative).exists():
            status = "[green]✓ Downloaded[/green]"
        else:
            status = "[dim]Not downloaded[/dim]"
        table.add_row(name, relative, disk, ram, status)

    console.print(table)
    if base is None:
        console.print("[yellow]whisper.cpp directory not found; download status unknown[/yellow]")


def _print_transcript(lines: list[TranscriptLine]) -> None:
    table = Table(title="Transcript")
    table.add_column("Start", style="cyan")
    table.add_column("End", style="cyan")
    table.add_column("Speech")
    for line in lines:
        table.add_row(line.start, line.end, line.speech)
    console.print(table)


async def _run_transcribe(
    audio: Path,
    options: WhisperOptions,
    use_server: bool,
) -> list[TranscriptLine]:
    if not use_server:
        return await transcribe(audio, options)

    server = WhisperServer(options)
    with install_lifecycle_hooks(server):
        try:
            await server.start()
            return await transcribe(audio, options, server=server)
        finally:
            await server.stop()


@app.command("transcribe")
def transcribe_cmd(
    audio: str = typer.Argument(..., help="Audio file to transcribe (16kHz WAV)"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model name, e.g. base.en"),
    model_path: str | None = typer.Option(None, "--model-path", help="Path to a model file"),
    language: str | None = typer.Option(None, "--language", "-l", help="Spoken language code"),
    word_timestamps: bool = typer.Option(
        False, "--word-timestamps", help="Word-level timestamps"
    ),
    timestamp_size: int | None = typer.Option(
        None, "--timestamp-size", help="Timestamp size passed to whisper.cpp (-ts)"
    ),
    otxt: bool = typer.Option(False, "--otxt", help="Also write a .txt file next to the audio"),
    osrt: bool = typer.Option(False, "--osrt", help="Also write a .srt file next to the audio"),
    ovtt: bool = typer.Option(False, "--ovtt", help="Also write a .vtt file next to the audio"),
    use_server: bool = typer.Option(
        False, "--server", help="Start a whisper.cpp server for this transcription"
    ),
    port: int | None = typer.Option(None, "--port", "-p", help="Server port"),
    output: str | None = typer.Option(None, "--output", "-o", help="Output file path"),
    output_format: str = typer.Option("json", "--format", "-f", help="Output format: json or text"),
    config: str | None = typer.Option(None, "--config", "-c", help="Path to whisper-server.yaml"),
    whisper_dir: str | None = typer.Option(
        None, "--whisper-dir", "-w", help="whisper.cpp directory"
    ),
    silent: bool = typer.Option(False, "--silent", "-s", help="Hide whisper.cpp process output"),
) -> None:
    """Transcribe an audio file."""
    if output_format not in ("json", "text"):
        console.print(f"[red]Error: Unknown format '{output_format}'. Use 'json' or 'text'.[/red]")
        raise typer.Exit(1)

    try:
        options = _load_options(
            config,
            model,
            model_path,
            whisper_dir,
            port,
            silent,
            language=language,
            word_timestamps=word_timestamps,
            timestamp_size=timestamp_size,
            otxt=otxt,
            osrt=osrt,
            ovtt=ovtt,
        )
        lines = asyncio.run(_run_transcribe(Path(audio), options, use_server))
    except WhisperServerError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if output is None:
        _print_transcript(lines)
        return

    output_path = Path(output)
    if output_format == "json":
        write_json(output_path, [line.model_dump() for line in lines])
    else:
        write_text(output_path, render_text(lines))
    console.print(f"[green]✓[/green] Wrote {len(lines)} line(s) to {output_path}")


async def _serve(options: WhisperOptions) -> int:
    server = WhisperServer(options)
    with install_lifecycle_hooks(server) as hooks:
        try:
            await server.start()
            console.print(f"[green]✓[/green] Server listening on {server.url}")
            console.print("[dim]Press Ctrl+C to stop[/dim]")
            process = server.state.process
            if process is None:
                return 1
            returncode = await process.wait()
            if hooks.shutdown_task is not None:
                return 0
            return returncode
        finally:
            await server.stop()


@app.command("serve")
def serve_cmd(
    model: str | None = typer.Option(None, "--model", "-m", help="Model name, e.g. base.en"),
    model_path: str | None = typer.Option(None, "--model-path", help="Path to a model file"),
    language: str | None = typer.Option(None, "--language", "-l", help="Spoken language code"),
    port: int | None = typer.Option(None, "--port", "-p", help="Server port"),
    config: str | None = typer.Option(None, "--config", "-c", help="Path to whisper-server.yaml"),
    whisper_dir: str | None = typer.Option(
        None, "--whisper-dir", "-w", help="whisper.cpp directory"
    ),
    silent: bool = typer.Option(False, "--silent", "-s", help="Hide whisper.cpp server output"),
) -> None:
    """Run a supervised whisper.cpp server until interrupted."""
    try:
        options = _load_options(
            config, model, model_path, whisper_dir, port, silent, language=language
        )
        returncode = asyncio.run(_serve(options))
    except WhisperServerError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if returncode != 0:
        console.print(f"[red]Error: Server exited with code {returncode}[/red]")
        raise typer.Exit(1)
