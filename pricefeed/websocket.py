"""A websocket client that forwards messages and reconnects on failure."""

from __future__ import annotations

import contextlib
import logging
import queue
import threading
from typing import Callable, Protocol

import websocket

#: Failed connection attempts tolerated before giving up.
MAX_RETRIES = 10

#: Seconds to wait after the first failed attempt; doubled after each failure.
INITIAL_RETRY_DELAY = 1.0

_POLL = 0.05

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """An open websocket connection."""

    def recv(self) -> bytes | str:
        """Block for the next message."""

    def send_binary(self, data: bytes) -> object:
        """Send a binary message."""

    def close(self) -> None:
        """Close the connection."""


def _default_connect(url: str) -> Connection:
    return websocket.create_connection(url)


class Websocket:
    """Connects to ``url``, sends ``on_open_msg`` on every connect and forwards messages.

    A message waits until it is taken from :meth:`message`. On a read error the
    connection is re-established with exponential backoff; after more than
    :data:`MAX_RETRIES` failed attempts the client gives up.
    """

    def __init__(
        self,
        url: str,
        on_open_msg: bytes,
        connect: Callable[[str], Connection] | None = None,
        retry_delay: float = INITIAL_RETRY_DELAY,
    ) -> None:
        self.url = url
        self.on_open_msg = bytes(on_open_msg)
        self._connect_fn = connect or _default_connect
        self._retry_delay = retry_delay
        self._read: queue.Queue[bytes] = queue.Queue(maxsize=1)
        self._stop = threading.Event()
        self._connection_closed = threading.Event()
        self._connection: Connection | None = None
        self._lock = threading.Lock()
        self.done = threading.Event()
        self._thread = threading.Thread(target=self._run, name="websocket", daemon=True)
        self._thread.start()

    def message(self) -> queue.Queue[bytes]:
        """Queue of received messages."""
        return self._read

    def _dial(self) -> Connection:
        conn = self._connect_fn(self.url)
        try:
            conn.send_binary(self.on_open_msg)
        except Exception:
            with contextlib.suppress(Exception):
                conn.close()
            raise
        return conn

    def _connect(self) -> bool:
        logger.debug("connecting")
        retries = 0
        delay = self._retry_delay
        while not self._stop.is_set():
            try:
                conn = self._dial()
            except Exception as exc:
                logger.error("failed to connect to websocket: %s", exc)
                retries += 1
                if retries > MAX_RETRIES:
                    logger.critical("failed to connect to websocket, giving up")
                    return False
                logger.debug("failed to connect to websocket, retrying (%d)", retries)
                self._stop.wait(delay)
                delay *= 2
                continue
            with self._lock:
                if self._connection_closed.is_set():
                    with contextlib.suppress(Exception):
                        conn.close()
                    return False
                self._connection = conn
            logger.debug("connected to websocket")
            return True
        return False

    def _deliver(self, data: bytes) -> bool:
        while not self._stop.is_set():
            try:
                self._read.put(data, timeout=_POLL)
            except queue.Full:
                continue
            return True
        return False

    def _run(self) -> None:
        try:
            if not self._connect():
                return
            while True:
                conn = self._connection
                try:
                    data = conn.recv()
                except Exception as exc:
                    if self._connection_closed.is_set():
                        return
                    logger.error("disconnected from websocket, attempting to reconnect: %s", exc)
                    with contextlib.suppress(Exception):
                        conn.close()
                    if not self._connect():
                        return
                    continue
                if isinstance(data, str):
                    data = data.encode()
                if not self._deliver(data):
                    logger.warning("message dropped due to shutdown: %r", data)
                    return
                logger.debug("message received: %r", data)
        finally:
            self.done.set()

    def close(self) -> None:
        """Close the connection and wait for the reader to finish."""
        self._stop.set()
        with self._lock:
            already = self._connection_closed.is_set()
            self._connection_closed.set()
            conn = self._connection
        if conn is not None and not already:
            try:
                conn.close()
            except Exception as exc:
                logger.error("close error: %s", exc)
        self._thread.join()