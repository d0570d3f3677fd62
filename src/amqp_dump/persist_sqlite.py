"""SQLite-backed message dump.

Stores every message as a row of the ``dump`` table in ``dump.db`` inside the
output directory. The ``headers`` column holds the whole properties+headers
JSON envelope, not only the headers; the name is kept so existing dump
databases stay readable.
"""

import logging
import os
import sqlite3

from amqp_dump.errors import DumpError, StoreError, StoreInitError
from amqp_dump.logs import progress
from amqp_dump.message_model_dto import Message
from amqp_dump.persist_base import PersistBase
from amqp_dump.properties import build_envelope, envelope_to_json

DB_FILENAME = "dump.db"

SCHEMA = """
CREATE TABLE IF NOT EXISTS dump (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    message STRING NOT NULL,
    headers STRING NOT NULL
);
"""

logger = logging.getLogger(__name__)


class PersistSQLite(PersistBase):
    """Insert each message into an SQLite table.

    Failing to insert a message is logged and the run goes on; only failing
    to open the database or create the table is fatal.
    """

    def __init__(self, output_dir: str = ".") -> None:
        """Open dump.db in output_dir and make sure the dump table exists."""
        self.db_path = os.path.join(output_dir, DB_FILENAME)
        self.conn = None
        try:
            self.conn = sqlite3.connect(self.db_path)
            self.conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            self.close()
            raise StoreInitError(f"SQLite: {e}") from e

    def save(self, message: Message, counter: int) -> list[str]:
        """Insert one row; returns its id, or nothing when the insert failed."""
        try:
            row_id = self.insert(message)
        except StoreError as e:
            logger.error("Message %d not stored: %s", counter, e)
            return []
        return [str(row_id)]

    def insert(self, message: Message) -> int:
        """Insert the body and the JSON envelope. Raises StoreError on failure."""
        try:
            data = envelope_to_json(build_envelope(message))
        except DumpError as e:
            raise StoreError(str(e)) from e
        try:
            with self.conn:
                cursor = self.conn.execute(
                    "INSERT INTO dump (message, headers) VALUES (?, ?)",
                    (message.body, data),
                )
        except sqlite3.Error as e:
            raise StoreError(f"DB: {e}") from e
        return cursor.lastrowid

    def close(self) -> None:
        """Close the database connection."""
        if self.conn is not None:
            self.conn.close()
            self.conn = None
            progress.info("DB connection closed")
