"""Dump messages as plain files.

Each body is written to ``msg-NNNN`` in the output directory. In full mode
the properties and headers go to ``msg-NNNN-headers+properties.json`` next
to it.
"""

import os

import click

from amqp_dump.errors import SinkWriteError
from amqp_dump.message_model_dto import Message
from amqp_dump.persist_base import PersistBase
from amqp_dump.properties import build_envelope, envelope_to_json

EXTRAS_SUFFIX = "-headers+properties.json"


def generate_file_path(output_dir: str, counter: int) -> str:
    """Return the body file path for the given counter."""
    return os.path.normpath(os.path.join(output_dir, f"msg-{counter:04d}"))


class PersistFile(PersistBase):
    """Write each message body (and optionally its metadata) to its own file."""

    def __init__(self, output_dir: str = ".", full: bool = False) -> None:
        """Write into output_dir; with full, also dump properties and headers."""
        self.output_dir = output_dir
        self.full = full

    def save(self, message: Message, counter: int) -> list[str]:
        """Write the body and, in full mode, the properties+headers JSON.

        Raises SinkWriteError when a file cannot be written and
        SerializationError when the metadata cannot be encoded.
        """
        paths = [self.save_body(message.body, counter)]
        if self.full:
            paths.append(self.save_props_and_headers(message, counter))
        return paths

    def save_body(self, body: bytes, counter: int) -> str:
        """Write the raw body to msg-NNNN and return its path."""
        file_path = generate_file_path(self.output_dir, counter)
        self._write(file_path, body, "save message")
        return file_path

    def save_props_and_headers(self, message: Message, counter: int) -> str:
        """Write the properties+headers JSON next to the body file and return its path."""
        data = envelope_to_json(build_envelope(message))
        file_path = generate_file_path(self.output_dir, counter) + EXTRAS_SUFFIX
        self._write(file_path, data.encode("utf-8"), "save props and headers")
        return file_path

    @staticmethod
    def _write(file_path: str, data: bytes, what: str) -> None:
        """Write data to file_path and echo the path. Raises SinkWriteError on failure."""
        try:
            with open(file_path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise SinkWriteError(f"{what}: {e}") from e
        click.echo(file_path)
