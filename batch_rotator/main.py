from __future__ import annotations

import signal
import sys
from typing import Any, Dict, Optional

import typer

from batch_rotator.config import Settings, get_settings
from batch_rotator.errors import RotationServiceError, StoreConnectionError
from batch_rotator.infrastructure.mongo_store import MongoTokenStore
from batch_rotator.reporter import print_report, print_settings
from batch_rotator.rotation import BatchRotator
from batch_rotator.scheduler import RotationScheduler
from batch_rotator.utils.logging import configure_logging, get_logger

app = typer.Typer(help="Rotate which batch of tokens is active.", add_completion=False)
log = get_logger(__name__)

USAGE = "Usage: batch-rotator [BATCH_NUMBER]"
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def _open_store(settings: Settings) -> MongoTokenStore:
    return MongoTokenStore.from_settings(settings)


def _parse_batch_number(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if value < 1:
        typer.echo(f"{USAGE}\nInvalid batch number: {raw} (must be a positive integer)", err=True)
        raise typer.Exit(code=EXIT_USAGE)
    return value


def _connect_or_exit(settings: Settings) -> MongoTokenStore:
    try:
        return _open_store(settings)
    except StoreConnectionError as exc:
        log.error(f"Failed to connect to MongoDB: {exc}")
        raise typer.Exit(code=EXIT_FAILURE) from exc


def _rotate_once(settings: Settings, batch_number: int) -> None:
    with _connect_or_exit(settings) as store:
        try:
            report = BatchRotator(store).rotate(batch_number)
        except RotationServiceError as exc:
            log.error(f"Transaction failed: {exc}")
            raise typer.Exit(code=EXIT_FAILURE) from exc

    print_report(report)
    log.info("Transaction completed successfully.")


def _install_signal_handlers(scheduler: RotationScheduler) -> Dict[int, Any]:
    def _handle(signum: int, frame: object) -> None:
        del frame
        log.info(f"Shutting down... (signal {signal.Signals(signum).name})")
        scheduler.stop()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handle)
    return previous


def _serve(settings: Settings) -> None:
    with _connect_or_exit(settings) as store:
        scheduler = RotationScheduler(BatchRotator(store), store, settings)
        previous = _install_signal_handlers(scheduler)
        try:
            log.info("Rotate service is running... Press Ctrl+C to exit.")
            scheduler.run_forever()
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)


@app.command()
def run(
    batch_number: Optional[str] = typer.Argument(
        None,
        metavar="BATCH_NUMBER",
        help="Rotate once to this batch and exit. Omit to run the scheduled service.",
        show_default=False,
    ),
    interval: Optional[float] = typer.Option(
        None,
        "--interval",
        "-i",
        min=0.001,
        help="Override ROTATION_INTERVAL_SECONDS for the scheduled service.",
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines."),
    show_config: bool = typer.Option(
        False, "--show-config", help="Show effective configuration and exit."
    ),
) -> None:
    """
    Rotate the active token batch once, or keep rotating on a fixed interval.
    """
    settings = get_settings()
    if interval is not None:
        settings = settings.model_copy(update={"rotation_interval_seconds": interval})
    configure_logging(level=settings.log_level, json_logs=json_logs or settings.log_json)

    if show_config:
        print_settings(settings)
        return

    if batch_number is not None:
        _rotate_once(settings, _parse_batch_number(batch_number))
    else:
        _serve(settings)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    main()
