"""Tests for the retrieval loop."""

import os
import tempfile
from contextlib import contextmanager
from unittest import TestCase
from unittest.mock import MagicMock, patch

import pika
from pika.exceptions import AMQPError, ChannelClosedByBroker
from pika.spec import Basic

from config import DumpOptions
from amqp_dump.dump import dump_messages, dump_messages_from_queue, get_sink
from amqp_dump.errors import FetchError, SinkWriteError
from amqp_dump.persist_file import PersistFile
from amqp_dump.persist_sqlite import PersistSQLite

EMPTY = (None, None, None)


def delivery(body: bytes, tag: int = 1):
    method = Basic.GetOk(delivery_tag=tag, exchange="events", routing_key="orders")
    return method, pika.BasicProperties(content_type="text/plain"), body


def fake_channel(bodies: list[bytes], end_empty: bool = True) -> MagicMock:
    results = [delivery(body, tag) for tag, body in enumerate(bodies, start=1)]
    if end_empty:
        results.append(EMPTY)
    channel = MagicMock()
    channel.basic_get.side_effect = results
    return channel


class TestDumpMessages(TestCase):
    """Tests for dump_messages."""

    def test_stops_at_max_messages(self):
        channel = fake_channel([b"a", b"b", b"c", b"d"], end_empty=False)
        sink = MagicMock()
        options = DumpOptions(queue="q", max_messages=3)

        count = dump_messages(channel, options, sink)

        self.assertEqual(count, 3)
        self.assertEqual(channel.basic_get.call_count, 3)
        saved = [(call.args[0].body, call.args[1]) for call in sink.save.call_args_list]
        self.assertEqual(saved, [(b"a", 0), (b"b", 1), (b"c", 2)])

    def test_unbounded_consumes_until_empty(self):
        bodies = [str(i).encode() for i in range(25)]
        channel = fake_channel(bodies)
        sink = MagicMock()

        count = dump_messages(channel, DumpOptions(queue="q", max_messages=0), sink)

        self.assertEqual(count, 25)
        self.assertEqual([call.args[1] for call in sink.save.call_args_list], list(range(25)))

    def test_empty_queue_on_first_fetch(self):
        channel = fake_channel([])
        sink = MagicMock()

        self.assertEqual(dump_messages(channel, DumpOptions(queue="q"), sink), 0)
        sink.save.assert_not_called()

    def test_ack_mode_is_passed_to_every_fetch(self):
        for ack in (True, False):
            channel = fake_channel([b"a", b"b"])
            dump_messages(channel, DumpOptions(queue="orders", ack=ack), MagicMock())
            for call in channel.basic_get.call_args_list:
                self.assertEqual(call.args, ("orders",))
                self.assertEqual(call.kwargs, {"auto_ack": ack})

    def test_message_is_built_from_delivery(self):
        channel = fake_channel([b"payload"])
        sink = MagicMock()
        dump_messages(channel, DumpOptions(queue="q"), sink)
        message = sink.save.call_args.args[0]
        self.assertEqual(message.routing_key, "orders")
        self.assertEqual(message.exchange, "events")
        self.assertEqual(message.content_type, "text/plain")

    def test_broker_failure_raises_fetch_error(self):
        channel = MagicMock()
        channel.basic_get.side_effect = [delivery(b"a"), ChannelClosedByBroker(404, "NOT_FOUND - no queue 'q'")]
        sink = MagicMock()

        with self.assertRaises(FetchError) as ctx:
            dump_messages(channel, DumpOptions(queue="q"), sink)
        self.assertIn("Queue get", str(ctx.exception))
        self.assertEqual(sink.save.call_count, 1)

    def test_sink_failure_aborts_loop(self):
        channel = fake_channel([b"a", b"b"])
        sink = MagicMock()
        sink.save.side_effect = SinkWriteError("save message: disk full")

        with self.assertRaises(SinkWriteError):
            dump_messages(channel, DumpOptions(queue="q"), sink)
        self.assertEqual(channel.basic_get.call_count, 1)

    def test_far_future_timestamp_does_not_stop_sqlite_dump(self):
        method = Basic.GetOk(delivery_tag=1, exchange="", routing_key="orders")
        channel = MagicMock()
        channel.basic_get.side_effect = [
            (method, pika.BasicProperties(timestamp=253402300800), b"year 10000"),
            delivery(b"normal", tag=2),
            EMPTY,
        ]
        with tempfile.TemporaryDirectory() as tmp:
            with PersistSQLite(tmp) as sink:
                count = dump_messages(channel, DumpOptions(queue="q"), sink)
                rows = sink.conn.execute("SELECT message FROM dump ORDER BY id").fetchall()

        self.assertEqual(count, 2)
        self.assertEqual([row[0] for row in rows], [b"year 10000", b"normal"])


class TestGetSink(TestCase):
    """Tests for get_sink."""

    def test_file_sink_by_default(self):
        with tempfile.TemporaryDirectory() as tmp:
            sink = get_sink(DumpOptions(queue="q", output_dir=tmp, full=True))
            self.assertIsInstance(sink, PersistFile)
            self.assertTrue(sink.full)
            self.assertFalse(os.path.exists(os.path.join(tmp, "dump.db")))

    def test_sqlite_sink_with_db(self):
        with tempfile.TemporaryDirectory() as tmp:
            sink = get_sink(DumpOptions(queue="q", output_dir=tmp, db=True))
            try:
                self.assertIsInstance(sink, PersistSQLite)
                self.assertTrue(os.path.exists(os.path.join(tmp, "dump.db")))
            finally:
                sink.close()


class TestDumpMessagesFromQueue(TestCase):
    """Tests for dump_messages_from_queue."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.closed = []

    def tearDown(self):
        self.tmp.cleanup()

    def patch_channel(self, channel):
        @contextmanager
        def fake_open_channel(uri, scheme, insecure_tls=False):
            try:
                yield channel
            finally:
                self.closed.append(uri)

        return patch("amqp_dump.dump.open_channel", side_effect=fake_open_channel)

    def test_dumps_to_files(self):
        options = DumpOptions(queue="q", output_dir=self.tmp.name, full=True)
        with self.patch_channel(fake_channel([b"one", b"two"])) as mock_open:
            count = dump_messages_from_queue(options)

        self.assertEqual(count, 2)
        mock_open.assert_called_once_with(options.uri, "amqp", False)
        self.assertEqual(
            sorted(os.listdir(self.tmp.name)),
            [
                "msg-0000",
                "msg-0000-headers+properties.json",
                "msg-0001",
                "msg-0001-headers+properties.json",
            ],
        )
        self.assertEqual(self.closed, [options.uri])

    def test_passes_parsed_scheme_to_connector(self):
        options = DumpOptions(uri="AMQPS://broker:5671/", queue="q", output_dir=self.tmp.name, insecure_tls=True)
        with self.patch_channel(fake_channel([])) as mock_open:
            dump_messages_from_queue(options)
        mock_open.assert_called_once_with("AMQPS://broker:5671/", "amqps", True)

    def test_fetch_error_closes_resources(self):
        channel = MagicMock()
        channel.basic_get.side_effect = AMQPError("connection lost")
        options = DumpOptions(queue="q", output_dir=self.tmp.name, db=True)

        with self.patch_channel(channel), patch("amqp_dump.dump.get_sink") as mock_get_sink:
            sink = MagicMock()
            sink.__enter__.return_value = sink
            mock_get_sink.return_value = sink
            with self.assertRaises(FetchError):
                dump_messages_from_queue(options)

        sink.__exit__.assert_called_once()
        self.assertEqual(self.closed, [options.uri])

