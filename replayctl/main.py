import typer
from pathlib import Path
from typing import Optional

from replayctl.config.loader import CONFIG_TEMPLATE, ConfigError, load_config
from replayctl.infrastructure.logging import setup_logging
from replayctl.infrastructure.event_bus import EventBus
from replayctl.infrastructure.file_scanner import DirectoryScanner, WatchDirectoryError
from replayctl.infrastructure.extractor import ExtractorAdapter
from replayctl.infrastructure.viewer import ViewerStuckError, ViewerSupervisor
from replayctl.infrastructure.web_server import EventRelayServer
from replayctl.infrastructure.chat_relay import ChatRelay
from replayctl.pipeline.resolver import MetadataResolver
from replayctl.pipeline.orchestrator import Orchestrator

VERSION = "0.3.0"

app = typer.Typer(help="replayctl - unattended replay playback with live event relay")


@app.command()
def run(
    config_path: Path = typer.Option(Path("conf/replayctl.yaml"), "--config", "-c", help="Path to YAML config"),
    watch_dir: Optional[Path] = typer.Option(None, "--watch-dir", "-w", help="Override watch directory"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Override event relay port"),
    no_relay: bool = typer.Option(False, "--no-relay", help="Do not start the browser event relay"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (overrides config)"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Watch the queue directory and play replays forever."""
    typer.echo(f"replayctl {VERSION}")
    try:
        config = load_config(config_path)
    except ConfigError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        if e.show_template:
            typer.echo("Expected a configuration like this:\n", err=True)
            typer.echo(CONFIG_TEMPLATE, err=True)
        raise typer.Exit(code=1)

    # Apply CLI overrides
    if watch_dir is not None: config.watch.directory = str(watch_dir)
    if port is not None: config.relay.port = port
    if no_relay: config.relay.enabled = False
    if log_path is not None: config.log_path = str(log_path)
    if debug: config.debug = True

    logger = setup_logging(Path(config.log_path) if config.log_path else None, debug=config.debug)
    logger.info(
        f"Config: dir={config.watch.directory}, capacity={config.watch.capacity}, "
        f"viewer={' '.join(config.viewer.command)}, extractor={' '.join(config.extractor.command)}"
    )

    scanner = DirectoryScanner(Path(config.watch.directory))
    try:
        scanner.ensure_directory()
    except WatchDirectoryError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    bus = EventBus()
    relay = None
    chat = None
    if config.relay.enabled:
        relay = EventRelayServer(
            bus,
            port=config.relay.port,
            host=config.relay.host,
            buffer_size=config.relay.buffer_size,
        )
        relay.start()
    if config.chat.enabled:
        chat = ChatRelay(bus, config.chat)
        chat.start()
    else:
        logger.info("Chat relay disabled (no chat.webhook_url configured)")

    orchestrator = Orchestrator(
        config=config,
        event_bus=bus,
        scanner=scanner,
        resolver=MetadataResolver(
            ExtractorAdapter(command=config.extractor.command, timeout_s=config.extractor.timeout_s)
        ),
        viewer=ViewerSupervisor(
            command=config.viewer.command,
            env_var=config.viewer.env_var,
            timeout_s=config.viewer.timeout_s,
            grace_s=config.viewer.grace_s,
        ),
    )

    try:
        orchestrator.run()
    except KeyboardInterrupt:
        typer.secho("\nStopped by user (Ctrl+C)", fg=typer.colors.YELLOW)
        raise typer.Exit(code=130)
    except (ViewerStuckError, WatchDirectoryError) as e:
        logger.error(f"Fatal: {e}")
        typer.secho(f"Fatal Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    except Exception as e:
        logger.exception("Unexpected error in replay loop")
        typer.secho(f"Fatal Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    finally:
        if chat:
            chat.stop()
        if relay:
            relay.stop()


@app.command()
def template():
    """Print an example configuration file."""
    typer.echo(CONFIG_TEMPLATE)


if __name__ == "__main__":
    app()
