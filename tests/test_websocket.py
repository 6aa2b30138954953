import queue
import threading

from pricefeed.websocket import MAX_RETRIES, Websocket

_CLOSED = object()


class FakeConnection:
    def __init__(self, messages=(), fail_send=False):
        self.inbox = queue.Queue()
        for message in messages:
            self.inbox.put(message)
        self.sent = []
        self.closed = False
        self.fail_send = fail_send

    def recv(self):
        item = self.inbox.get()
        if item is _CLOSED:
            raise ConnectionError("connection closed")
        if isinstance(item, Exception):
            raise item
        return item

    def send_binary(self, data):
        if self.fail_send:
            raise ConnectionError("send failed")
        self.sent.append(data)

    def close(self):
        self.closed = True
        self.inbox.put(_CLOSED)


class Dialer:
    def __init__(self, connections):
        self.connections = list(connections)
        self.urls = []
        self.lock = threading.Lock()

    def __call__(self, url):
        with self.lock:
            self.urls.append(url)
            if not self.connections:
                raise ConnectionRefusedError("refused")
            return self.connections.pop(0)


def test_sends_open_message_and_forwards_messages():
    conn = FakeConnection([b"first", "second"])
    ws = Websocket("ws://localhost/websocket", b"subscribe", connect=Dialer([conn]))
    try:
        assert ws.message().get(timeout=2) == b"first"
        assert ws.message().get(timeout=2) == b"second"
        assert conn.sent == [b"subscribe"]
    finally:
        ws.close()


def test_dials_given_url():
    dialer = Dialer([FakeConnection()])
    ws = Websocket("ws://localhost/websocket", b"subscribe", connect=dialer)
    ws.close()
    assert dialer.urls == ["ws://localhost/websocket"]


def test_reconnects_after_read_error():
    first = FakeConnection([ConnectionResetError("reset")])
    second = FakeConnection([b"hello"])
    dialer = Dialer([first, second])
    ws = Websocket("ws://localhost/websocket", b"subscribe", connect=dialer, retry_delay=0)
    try:
        assert ws.message().get(timeout=2) == b"hello"
        assert first.closed
        assert second.sent == [b"subscribe"]
        assert len(dialer.urls) == 2
    finally:
        ws.close()


def test_failed_open_message_is_retried():
    broken = FakeConnection(fail_send=True)
    good = FakeConnection([b"ok"])
    ws = Websocket("ws://localhost/websocket", b"subscribe", connect=Dialer([broken, good]), retry_delay=0)
    try:
        assert ws.message().get(timeout=2) == b"ok"
        assert broken.closed
    finally:
        ws.close()


def test_gives_up_after_max_retries():
    dialer = Dialer([])
    ws = Websocket("ws://localhost/websocket", b"subscribe", connect=dialer, retry_delay=0)
    assert ws.done.wait(5)
    assert len(dialer.urls) == MAX_RETRIES + 1
    ws.close()


def test_close_interrupts_retry_wait():
    dialer = Dialer([])
    ws = Websocket("ws://localhost/websocket", b"subscribe", connect=dialer, retry_delay=30)
    ws.close()
    assert ws.done.is_set()
    assert len(dialer.urls) == 1


def test_close_closes_connection_and_stops():
    conn = FakeConnection([b"pending", b"dropped"])
    ws = Websocket("ws://localhost/websocket", b"subscribe", connect=Dialer([conn]))
    ws.close()
    ws.close()
    assert conn.closed
    assert ws.done.is_set()