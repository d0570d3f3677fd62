"""Dump messages from an AMQP queue.

CLI that pulls up to --max-messages messages from a queue and writes each one
to a file (optionally with a JSON file of its properties and headers) or to
an SQLite database.
"""

import os
from typing import Any

import click
from pydantic import ValidationError

from config import DumpOptions, get_settings
from amqp_dump.dump import dump_messages_from_queue
from amqp_dump.errors import ConfigurationError, DumpError
from amqp_dump.logs import configure_logging


def validation_messages(error: ValidationError) -> str:
    """Join the messages of a pydantic validation error into one line."""
    return "; ".join(err["msg"].removeprefix("Value error, ") for err in error.errors())


def build_options(**kwargs: Any) -> DumpOptions:
    """Validate the command line values into DumpOptions.

    Raises:
        ConfigurationError: If the options are invalid (e.g. no queue name).
    """
    try:
        return DumpOptions(**kwargs)
    except ValidationError as e:
        raise ConfigurationError(validation_messages(e)) from e


@click.command()
@click.option("--uri", type=str, default=None, help="AMQP URI, defaults to $AMQP_URI or a local guest broker")
@click.option(
    "--insecure-tls",
    is_flag=True,
    default=False,
    help="Insecure TLS mode: don't check certificates",
)
@click.option("--queue", type=str, default="", help="AMQP queue name")
@click.option("--ack", is_flag=True, default=False, help="Acknowledge messages")
@click.option(
    "--max-messages",
    type=click.IntRange(min=0),
    default=1000,
    show_default=True,
    help="Maximum number of messages to dump or 0 for unlimited",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, dir_okay=True),
    default=".",
    show_default=True,
    help="Directory in which to save the dumped messages",
)
@click.option("--db", is_flag=True, default=False, help="Dump messages to sqlite db")
@click.option("--full", is_flag=True, default=False, help="Dump the message, its properties and headers")
@click.option("--verbose", is_flag=True, default=False, help="Print progress")
def main(**kwargs: Any) -> None:
    """Dump messages from the given queue to files or an SQLite database.

    Messages are fetched one at a time and left unacknowledged unless --ack
    is given. Dumping stops after --max-messages messages or as soon as the
    queue is empty. Each file written is printed on its own line.
    """
    try:
        settings = get_settings()
    except ValidationError as e:
        raise click.ClickException(f"Settings: {validation_messages(e)}") from e
    if not kwargs["uri"]:
        kwargs["uri"] = settings.amqp_uri

    configure_logging(settings.log_level, verbose=kwargs["verbose"])
    try:
        options = build_options(**kwargs)
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e

    try:
        os.makedirs(options.output_dir, exist_ok=True)
    except OSError as e:
        raise click.ClickException(f"Output directory: {e}") from e

    try:
        dump_messages_from_queue(options)
    except DumpError as e:
        raise click.ClickException(str(e)) from e


if __name__ == "__main__":
    main()
