"""Connect to the AMQP broker and open a channel for queue operations."""

import ssl
from contextlib import contextmanager
from typing import Iterator

import pika
from pika.adapters.blocking_connection import BlockingChannel
from pika.exceptions import AMQPError

from amqp_dump.errors import BrokerConnectionError
from amqp_dump.logs import progress


def connection_parameters(uri: str, scheme: str, insecure_tls: bool = False) -> pika.URLParameters:
    """Build connection parameters for the URI, whose parsed scheme is given.

    For amqps URIs with insecure_tls set, certificate and hostname checks are
    disabled. Otherwise pika's defaults apply.
    """
    parameters = pika.URLParameters(uri)
    if insecure_tls and scheme == "amqps":
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        parameters.ssl_options = pika.SSLOptions(context, server_hostname=parameters.host)
    return parameters


def dial(uri: str, scheme: str, insecure_tls: bool = False) -> pika.BlockingConnection:
    """Open a blocking connection to the broker."""
    progress.info('Dialing "%s"', uri)
    try:
        return pika.BlockingConnection(connection_parameters(uri, scheme, insecure_tls))
    except (AMQPError, OSError, ValueError) as e:
        raise BrokerConnectionError(f"Dial: {e}") from e


@contextmanager
def open_channel(uri: str, scheme: str, insecure_tls: bool = False) -> Iterator[BlockingChannel]:
    """Yield a channel on a fresh connection; the connection is closed on exit."""
    conn = dial(uri, scheme, insecure_tls)
    try:
        try:
            channel = conn.channel()
        except AMQPError as e:
            raise BrokerConnectionError(f"Channel: {e}") from e
        yield channel
    finally:
        if conn.is_open:
            conn.close()
        progress.info("AMQP connection closed")
