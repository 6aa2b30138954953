"""A price provider that maps asset pairs onto one source's symbols."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Mapping

from pricefeed import exchanges, uniswap
from pricefeed.tick_source import TickSource
from pricefeed.types import (
    PRICE_TIMEOUT,
    FetchPricesFunc,
    Pair,
    Price,
    RawPrice,
    Source,
    Symbol,
)

#: Fetch functions of the sources a provider can be built for, by source name.
SOURCE_FETCHERS: dict[str, FetchPricesFunc] = {
    exchanges.BITFINEX: exchanges.bitfinex_price_update,
    exchanges.BINANCE: exchanges.binance_price_update,
    exchanges.OKEX: exchanges.okex_price_update,
    exchanges.GATEIO: exchanges.gateio_price_update,
    exchanges.BYBIT: exchanges.bybit_price_update,
    uniswap.UNISWAP: uniswap.uniswap_price_update,
    exchanges.MEXC: exchanges.mexc_price_update,
    exchanges.ASCENDEX: exchanges.ascendex_price_update,
}

_POLL = 0.05

logger = logging.getLogger(__name__)


def is_valid(price: RawPrice | None, found: bool) -> bool:
    """Report whether a price was found and is younger than the price timeout."""
    return found and price is not None and time.time() - price.update_time < PRICE_TIMEOUT


class PriceProvider:
    """Keeps the latest prices published by a source and serves them by asset pair."""

    def __init__(
        self,
        source: Source,
        source_name: str,
        pair_to_symbol: Mapping[Pair, Symbol],
    ) -> None:
        self.source = source
        self.source_name = source_name
        self.pair_to_symbol = dict(pair_to_symbol)
        self._last_prices: dict[Symbol, RawPrice] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name=f"price-provider-{source_name}", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        updates = self.source.price_updates()
        try:
            while not self._stop.is_set():
                try:
                    batch = updates.get(timeout=_POLL)
                except queue.Empty:
                    continue
                with self._lock:
                    self._last_prices.update(batch)
        finally:
            self.source.close()

    def get_price(self, pair: Pair) -> Price:
        """Return the last price of the pair; invalid if unknown, missing or expired."""
        symbol = self.pair_to_symbol.get(pair)
        if symbol is None:
            logger.debug(
                "pair %s not configured for this pricefeeder (source %s)", pair, self.source_name
            )
            return Price(pair=pair, price=-1.0, source_name=self.source_name, valid=False)

        with self._lock:
            raw = self._last_prices.get(symbol)

        return Price(
            pair=pair,
            price=raw.price if raw is not None else 0.0,
            source_name=self.source_name,
            valid=is_valid(raw, raw is not None),
        )

    def close(self) -> None:
        """Stop consuming updates, close the source and wait for the worker."""
        self._stop.set()
        self._thread.join()


def new_price_provider(source_name: str, pair_to_symbol: Mapping[Pair, Symbol]) -> PriceProvider:
    """Build a provider polling the named source for the mapped symbols.

    Raises ValueError for an unknown source name.
    """
    fetch = SOURCE_FETCHERS.get(source_name)
    if fetch is None:
        raise ValueError(f"unknown price provider: {source_name}")
    source = TickSource(set(pair_to_symbol.values()), fetch)
    return PriceProvider(source, source_name, pair_to_symbol)