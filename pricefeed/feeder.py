"""The feeder: reacts to chain events by gathering prices and posting them."""

from __future__ import annotations

import dataclasses
import logging
import queue
import threading

from pricefeed.types import EventStream, Params, Price, PricePoster, PriceProvider, VotingPeriod

#: Seconds to wait for the initial parameters before giving up.
INIT_TIMEOUT = 15.0

_POLL = 0.05

logger = logging.getLogger(__name__)


class Feeder:
    """Posts a price for every whitelisted pair at the start of each voting period."""

    def __init__(
        self,
        event_stream: EventStream,
        price_provider: PriceProvider,
        price_poster: PricePoster,
        init_timeout: float = INIT_TIMEOUT,
    ) -> None:
        self.event_stream = event_stream
        self.price_provider = price_provider
        self.price_poster = price_poster
        self.params = Params()
        self._init_timeout = init_timeout
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._closed = False
        self._close_lock = threading.Lock()

    def run(self) -> None:
        """Wait for the initial parameters, then handle events in the background.

        Raises TimeoutError if no parameters arrive within the init timeout.
        """
        self._init_params()
        self._thread = threading.Thread(target=self._loop, name="feeder", daemon=True)
        self._thread.start()

    def _init_params(self) -> None:
        try:
            params = self.event_stream.params_update().get(timeout=self._init_timeout)
        except queue.Empty:
            raise TimeoutError("init timeout deadline exceeded") from None
        self._handle_params_update(params)

    def _loop(self) -> None:
        params_updates = self.event_stream.params_update()
        voting_periods = self.event_stream.voting_period_started()
        try:
            while not self._stop.is_set():
                handled = False
                try:
                    params = params_updates.get_nowait()
                except queue.Empty:
                    pass
                else:
                    logger.info("params changed: %s", params)
                    self._handle_params_update(params)
                    handled = True
                try:
                    vp = voting_periods.get_nowait()
                except queue.Empty:
                    pass
                else:
                    logger.info("new voting period: %s", vp)
                    self._handle_voting_period(vp)
                    handled = True
                if not handled:
                    self._stop.wait(_POLL)
            logger.debug("stop signal received")
        finally:
            self._close_components()

    def _close_components(self) -> None:
        self.event_stream.close()
        self.price_poster.close()
        self.price_provider.close()

    def _handle_params_update(self, params: Params) -> None:
        self.params = params

    def _handle_voting_period(self, vp: VotingPeriod) -> None:
        prices: list[Price] = []
        for pair in self.params.pairs:
            price = self.price_provider.get_price(pair)
            if not price.valid:
                logger.error("no valid price for %s from source %s", pair, price.source_name)
                price = dataclasses.replace(price, price=0.0)
            prices.append(price)
        self.price_poster.send_prices(vp, prices)

    def close(self) -> None:
        """Stop handling events and close the stream, poster and provider."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        if self._thread is None:
            self._close_components()
            return
        self._stop.set()
        self._thread.join()