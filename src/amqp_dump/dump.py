"""Pull messages from a queue and persist them one at a time.

The loop fetches with basic_get until the queue reports empty or the message
limit is reached. Every fetched message is handed to the selected backend
together with a zero-based counter.
"""

from pika.adapters.blocking_connection import BlockingChannel
from pika.exceptions import AMQPError

from config import DumpOptions
from amqp_dump.broker import open_channel
from amqp_dump.errors import FetchError
from amqp_dump.logs import progress
from amqp_dump.message_model_dto import Message
from amqp_dump.persist_base import PersistBase
from amqp_dump.persist_file import PersistFile
from amqp_dump.persist_sqlite import PersistSQLite


def get_sink(options: DumpOptions) -> PersistBase:
    """Return the backend selected by the run options."""
    if options.db:
        return PersistSQLite(options.output_dir)
    return PersistFile(options.output_dir, full=options.full)


def dump_messages(channel: BlockingChannel, options: DumpOptions, sink: PersistBase) -> int:
    """Fetch and persist messages until the limit or an empty queue.

    Args:
        channel: Open channel to fetch from.
        options: Run options; queue, ack and max_messages are used here.
        sink: Backend that persists each message.
    Returns:
        Number of messages fetched.

    Raises:
        FetchError: If the broker fails during a fetch.
    """
    progress.info('Pulling messages from queue "%s"', options.queue)
    counter = 0
    while options.max_messages == 0 or counter < options.max_messages:
        try:
            method, properties, body = channel.basic_get(options.queue, auto_ack=options.ack)
        except AMQPError as e:
            raise FetchError(f"Queue get: {e!r}") from e

        if method is None:
            progress.info("No more messages in queue")
            break

        sink.save(Message.from_delivery(method, properties, body), counter)
        counter += 1
    return counter


def dump_messages_from_queue(options: DumpOptions) -> int:
    """Run a whole dump: connect, open the backend, pull messages, clean up.

    The broker connection and the backend are closed on every exit path.
    """
    with open_channel(options.uri, options.scheme, options.insecure_tls) as channel:
        with get_sink(options) as sink:
            count = dump_messages(channel, options, sink)

    progress.info("Dumped %d message(s)", count)
    return count
