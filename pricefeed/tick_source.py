"""A price source that polls a fetch function at a fixed interval."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Iterable

from pricefeed.types import FetchPricesFunc, RawPrice, Symbol

#: Seconds between price updates.
UPDATE_TICK = 8.0

_POLL = 0.05

logger = logging.getLogger(__name__)


class TickSource:
    """Fetches prices for its symbols on every tick and publishes them as a batch.

    A batch waits until it is taken from :meth:`price_updates`; one still waiting
    at shutdown is dropped.
    """

    def __init__(
        self,
        symbols: Iterable[Symbol],
        fetch_prices: FetchPricesFunc,
        update_tick: float = UPDATE_TICK,
    ) -> None:
        self.symbols = frozenset(symbols)
        self._fetch_prices = fetch_prices
        self._update_tick = update_tick
        self._updates: queue.Queue[dict[Symbol, RawPrice]] = queue.Queue(maxsize=1)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="tick-source", daemon=True)
        self._thread.start()

    def price_updates(self) -> queue.Queue[dict[Symbol, RawPrice]]:
        """Queue of price batches keyed by symbol."""
        return self._updates

    def _run(self) -> None:
        while not self._stop.wait(self._update_tick):
            logger.debug("received tick, updating prices")
            try:
                raw_prices = self._fetch_prices(self.symbols)
            except Exception as exc:
                logger.error("failed to update prices: %s", exc)
                continue

            update = {
                symbol: RawPrice(float(price), time.time())
                for symbol, price in raw_prices.items()
            }
            logger.debug("sending price update")
            if not self._deliver(update):
                logger.warning("dropped price update due to shutdown")
                return
            logger.debug("sent price update")

    def _deliver(self, update: dict[Symbol, RawPrice]) -> bool:
        while not self._stop.is_set():
            try:
                self._updates.put(update, timeout=_POLL)
            except queue.Full:
                continue
            return True
        return False

    def close(self) -> None:
        """Stop polling and wait for the worker to finish."""
        self._stop.set()
        self._thread.join()