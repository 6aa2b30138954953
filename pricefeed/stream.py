"""Stream of chain events: parameter updates and voting period starts."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Protocol, TypeVar

from pricefeed.tendermint import get_block_height
from pricefeed.types import Params, VotingPeriod
from pricefeed.websocket import Websocket

#: Subscription request for NewBlock events, sent on every websocket connect.
NEW_BLOCK_SUBSCRIBE = (
    b'{"jsonrpc":"2.0","method":"subscribe","id":0,'
    b'"params":{"query":"tm.event=\'NewBlock\'"}}'
)

#: Seconds between parameter refreshes.
PARAMS_INTERVAL = 10.0

_POLL = 0.05

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MessageSource(Protocol):
    """A source of raw websocket messages."""

    def message(self) -> queue.Queue[bytes]:
        """Queue of received messages."""

    def close(self) -> None:
        """Shut the source down."""


class Stream:
    """Signals parameter changes and the start of each voting period.

    Parameters are refreshed with ``fetch_params`` every ``params_interval``
    seconds and published only when they change. A voting period starts at
    every block height that is a multiple of the vote period.
    """

    def __init__(
        self,
        ws: MessageSource,
        fetch_params: Callable[[], Params],
        params_interval: float = PARAMS_INTERVAL,
    ) -> None:
        self._ws = ws
        self._fetch_params = fetch_params
        self._params_interval = params_interval
        self._stop = threading.Event()
        self._voting_periods: queue.Queue[VotingPeriod] = queue.Queue(maxsize=1)
        self._params_updates: queue.Queue[Params] = queue.Queue(maxsize=1)
        self._params: Params | None = None
        self._params_lock = threading.Lock()
        self._threads = [
            threading.Thread(target=self._voting_period_loop, name="voting-period-loop", daemon=True),
            threading.Thread(target=self._params_loop, name="params-loop", daemon=True),
        ]
        for thread in self._threads:
            thread.start()

    @classmethod
    def dial(cls, tendermint_rpc_endpoint: str, fetch_params: Callable[[], Params]) -> Stream:
        """Open a stream on the node's websocket, subscribed to new blocks."""
        return cls(Websocket(tendermint_rpc_endpoint, NEW_BLOCK_SUBSCRIBE), fetch_params)

    def params_update(self) -> queue.Queue[Params]:
        """Queue of parameter updates."""
        return self._params_updates

    def voting_period_started(self) -> queue.Queue[VotingPeriod]:
        """Queue signalling each new voting period."""
        return self._voting_periods

    def _put(self, target: queue.Queue[T], item: T) -> bool:
        while not self._stop.is_set():
            try:
                target.put(item, timeout=_POLL)
            except queue.Full:
                continue
            return True
        return False

    def _voting_period_loop(self) -> None:
        messages = self._ws.message()
        try:
            while not self._stop.is_set():
                try:
                    msg = messages.get(timeout=_POLL)
                except queue.Empty:
                    continue
                logger.debug("received message from websocket: %r", msg)
                try:
                    height = get_block_height(msg)
                except (ValueError, TypeError) as exc:
                    logger.error("could not obtain block height: %s", exc)
                    continue
                if height <= 0:
                    logger.error("invalid block height %d", height)
                    continue
                with self._params_lock:
                    params = self._params
                if params is None:
                    continue
                if params.vote_period_blocks == 0:
                    logger.error("vote period is zero, cannot signal voting periods")
                    continue
                if (height + 1) % params.vote_period_blocks != 0:
                    continue
                logger.debug("signaling new voting period")
                if self._put(self._voting_periods, VotingPeriod(height=height + 1)):
                    logger.debug("signaled new voting period")
                else:
                    logger.warning("dropped voting period signal at height %d", height + 1)
        finally:
            logger.info("exited voting period loop")
            self._ws.close()

    def _params_loop(self) -> None:
        try:
            while not self._stop.wait(self._params_interval):
                try:
                    new_params = self._fetch_params()
                except Exception as exc:
                    logger.error("param update failed: %s", exc)
                    continue
                with self._params_lock:
                    old_params, self._params = self._params, new_params
                if old_params is not None and old_params.equal(new_params):
                    logger.debug(
                        "skipping params update as they're not different from the old ones"
                    )
                    continue
                if self._put(self._params_updates, new_params):
                    logger.info("signaling new params update: %s", new_params)
                else:
                    logger.warning("dropped params update due to shutdown")
        finally:
            logger.info("exited params loop")

    def close(self) -> None:
        """Stop both loops, close the websocket and wait for them to finish."""
        self._stop.set()
        for thread in self._threads:
            thread.join()