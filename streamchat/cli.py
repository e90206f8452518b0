"""streamchat CLI — Typer + Rich terminal front end.

Commands: ask, chat, config. All output is Rich-powered; the session
controller's events drive the display.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from streamchat import __version__
from streamchat.cli_display import ChatDisplay, render_thought_process
from streamchat.schemas.config import ChatConfig, ModelConfig
from streamchat.session.controller import ChatSessionController
from streamchat.settings import load_chat_config
from streamchat.transport.base import Transport
from streamchat.transport.http import HttpTransport

console = Console()

app = typer.Typer(
    name="streamchat",
    help="Ask questions to a retrieval-augmented chat API from the terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

_RESET_COMMANDS = {"/reset", "/clear"}
_EXIT_COMMANDS = {"/exit", "/quit"}


# ── Version callback ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"streamchat {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log exchange details to stderr.",
    ),
) -> None:
    """streamchat — streaming chat client for retrieval-augmented answers."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


# ── Helpers ──────────────────────────────────────────────────────


def _load_config(config_path: Path | None) -> ChatConfig:
    """Load the chat config, exit on error."""
    try:
        return load_chat_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


def _build_transport(config: ChatConfig, model: str | None) -> Transport:
    """Pick the LiteLLM transport when a model is configured, else HTTP."""
    if model:
        model_config = (config.model or ModelConfig(model=model)).model_copy(
            update={"model": model}
        )
        config.model = model_config
    if config.model is not None:
        from streamchat.transport.litellm_transport import LiteLLMTransport

        return LiteLLMTransport(config.model)
    return HttpTransport()


def _build_controller(
    config: ChatConfig,
    transport: Transport,
    *,
    interaction_model: str,
    url: str | None,
    stream: bool | None,
) -> ChatSessionController:
    controller = ChatSessionController(
        transport,
        config,
        interaction_model=interaction_model,
        use_stream=stream,
        api_url=url,
    )
    display = ChatDisplay(console, config.labels)
    controller.add_listener(display.create_listener())
    return controller


@contextlib.contextmanager
def _cancel_on_interrupt(controller: ChatSessionController):
    """Route Ctrl+C to the running exchange.

    A streaming answer is cancelled through controller.cancel(), which
    keeps the partial text. Before the stream starts, or for a full
    response, the waiting task itself is cancelled.
    """
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()

    def _on_interrupt() -> None:
        if not controller.cancel() and task is not None:
            task.cancel()

    try:
        loop.add_signal_handler(signal.SIGINT, _on_interrupt)
    except (NotImplementedError, RuntimeError):
        # Windows event loops have no signal handler support
        yield
        return
    try:
        yield
    finally:
        loop.remove_signal_handler(signal.SIGINT)


def _print_thought_process(controller: ChatSessionController) -> None:
    if controller.can_show_thought_process:
        console.print(render_thought_process(controller.thoughts, controller.data_points))


# ── Commands ─────────────────────────────────────────────────────


@app.command()
def ask(
    question: str = typer.Argument(..., help="The question to ask."),
    url: str = typer.Option(None, "--url", help="Chat API base URL."),
    stream: bool = typer.Option(None, "--stream/--no-stream", help="Stream the answer."),
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to a TOML config."),
    model: str = typer.Option(None, "--model", "-m", help="Ask a LiteLLM model directly."),
    thoughts: bool = typer.Option(False, "--thoughts", help="Show the thought process."),
) -> None:
    """Ask a single question and print the answer."""
    config = _load_config(config_path)
    transport = _build_transport(config, model)
    controller = _build_controller(
        config, transport, interaction_model="ask", url=url, stream=stream
    )

    async def _run() -> None:
        try:
            with _cancel_on_interrupt(controller):
                accepted = await controller.submit(question)
        except asyncio.CancelledError:
            console.print("[yellow]Cancelled.[/yellow]")
            raise typer.Exit(130) from None
        finally:
            await transport.aclose()
        if not accepted:
            console.print("[yellow]Please enter a question.[/yellow]")
            raise typer.Exit(2)

    asyncio.run(_run())

    if thoughts:
        _print_thought_process(controller)
    if controller.has_api_error:
        raise typer.Exit(1)


@app.command()
def chat(
    url: str = typer.Option(None, "--url", help="Chat API base URL."),
    stream: bool = typer.Option(None, "--stream/--no-stream", help="Stream answers."),
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to a TOML config."),
    model: str = typer.Option(None, "--model", "-m", help="Chat with a LiteLLM model directly."),
) -> None:
    """Start an interactive chat session.

    Type /reset to clear the thread, /thoughts to show the last thought
    process and /exit to quit. Ctrl+C stops a streaming answer.
    """
    config = _load_config(config_path)
    transport = _build_transport(config, model)
    controller = _build_controller(
        config, transport, interaction_model="chat", url=url, stream=stream
    )
    labels = config.labels

    if labels.default_prompts:
        console.print(f"[bold]{labels.default_prompts_heading}[/bold]")
        for prompt in labels.default_prompts:
            console.print(f"  [dim]•[/dim] {prompt}")

    async def _loop() -> None:
        try:
            while True:
                try:
                    line = await asyncio.to_thread(console.input, "[bold cyan]› [/bold cyan]")
                except (EOFError, KeyboardInterrupt):
                    break

                command = line.strip().lower()
                if command in _EXIT_COMMANDS:
                    break
                if command in _RESET_COMMANDS:
                    controller.reset()
                    continue
                if command == "/thoughts":
                    _print_thought_process(controller)
                    continue

                try:
                    with _cancel_on_interrupt(controller):
                        await controller.submit(line)
                except asyncio.CancelledError:
                    asyncio.current_task().uncancel()
                    console.print("[yellow]Request cancelled.[/yellow]")
        finally:
            await transport.aclose()

    asyncio.run(_loop())


@app.command("config")
def show_config(
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to a TOML config."),
) -> None:
    """Show the effective client configuration."""
    config = _load_config(config_path)

    table = Table(title="streamchat configuration", show_header=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("API URL", config.http.url)
    table.add_row("Streaming", "yes" if config.http.stream else "no")
    table.add_row("Interaction model", config.interaction_model)
    for key, value in config.overrides.model_dump(exclude_none=True).items():
        table.add_row(f"override.{key}", str(value))
    if config.model is not None:
        table.add_row("Model", config.model.model)
    table.add_row("Bot name", config.labels.bot_name)

    console.print(table)
