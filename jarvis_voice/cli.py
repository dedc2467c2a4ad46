from __future__ import annotations

import asyncio
import sys

import typer

from .app import build_controller
from .audio.speech import SpeechOutput
from .config.settings import Settings, get_settings
from .core.errors import DispatchError, SpeechOutputError
from .core.logger import configure_logging
from .services.api import CommandDispatcher

cli = typer.Typer(name="jarvis-voice", help="Voice command console", no_args_is_help=True)


@cli.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Also log to the console")) -> None:
    """Configure logging before any command runs."""
    configure_logging(get_settings(), console=verbose)


@cli.command()
def run() -> None:
    """Open the desktop window."""
    from .app import run as run_window

    raise typer.Exit(code=run_window(get_settings()))


@cli.command()
def listen() -> None:
    """Headless session: Enter toggles listening, q quits."""
    controller = build_controller(get_settings())
    controller.log.subscribe(lambda entry: typer.echo(controller.log.render(entry)))
    controller.set_status_callback(lambda status: typer.echo(f"[{status.text}]"))
    controller.start()
    typer.echo("Press Enter to toggle listening, q then Enter to quit.")
    try:
        for line in sys.stdin:
            if line.strip().lower() in {"q", "quit", "exit"}:
                break
            controller.request_toggle()
    except KeyboardInterrupt:
        pass
    finally:
        controller.shutdown()
        controller.speech.shutdown()


async def _ask(settings: Settings, command: str) -> str | None:
    dispatcher = CommandDispatcher(settings)
    try:
        reply = await dispatcher.send(command)
    finally:
        await dispatcher.close()
    return reply.response


@cli.command()
def ask(command: str = typer.Argument(..., help="Command text sent to the endpoint")) -> None:
    """Send one command and print the reply."""
    settings = get_settings()
    try:
        response = asyncio.run(_ask(settings, command.strip()))
    except DispatchError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{settings.assistant_name}: {response}" if response else "(no response)")


@cli.command()
def say(
    text: str = typer.Argument(..., help="Text to speak"),
    timeout: float = typer.Option(60.0, help="Seconds to wait for playback"),
) -> None:
    """Speak a sentence with the configured voice."""
    errors: list[SpeechOutputError] = []
    speech = SpeechOutput(get_settings())
    speech.bind_errors(errors.append)
    try:
        speech.speak(text)
        finished = speech.wait(timeout)
    finally:
        speech.shutdown()
    if errors:
        typer.echo(f"Error: {errors[0]}", err=True)
        raise typer.Exit(code=1)
    if not finished:
        typer.echo("Playback still running after timeout.", err=True)


@cli.command()
def devices() -> None:
    """List audio input and output devices."""
    from .audio.microphone import input_devices, output_devices

    typer.echo("Input devices:")
    for name in input_devices():
        typer.echo(f"  {name}")
    typer.echo("Output devices:")
    for name in output_devices():
        typer.echo(f"  {name}")


@cli.command("config")
def show_config() -> None:
    """Print the effective settings."""
    typer.echo(get_settings().model_dump_json(indent=2))


if __name__ == "__main__":  # pragma: no cover
    cli()
