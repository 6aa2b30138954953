"""Price fetchers for centralised exchanges with public REST ticker endpoints."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, Set, TypeVar

import requests

from pricefeed.metrics import PRICE_SOURCE_COUNTER
from pricefeed.types import Symbol

ASCENDEX = "ascendex"
BINANCE = "binance"
BITFINEX = "bitfinex"
BYBIT = "bybit"
GATEIO = "gateio"
MEXC = "mexc"
OKEX = "okex"

ASCENDEX_URL = "https://ascendex.com/api/pro/v1/spot/ticker"
BINANCE_URL = "https://api.binance.us/api/v3/ticker/price"
BITFINEX_URL = "https://api-pub.bitfinex.com/v2/tickers"
BYBIT_URL = "https://api.bybit.com/v5/market/tickers?category=spot"
GATEIO_URL = "https://api.gateio.ws/api/v4/spot/tickers"
MEXC_URL = "https://api.mexc.com/api/v3/ticker/price"
OKEX_URL = "https://www.okx.com/api/v5/market/tickers?instType=SPOT"

_BITFINEX_TICKER_SIZE = 11
_BITFINEX_SYMBOL_INDEX = 0
_BITFINEX_LAST_PRICE_INDEX = 7

_TIMEOUT = 30.0

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SourceError(Exception):
    """Raised when prices cannot be fetched or the response cannot be read."""


def _object(value: Any, what: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SourceError(f"{what} must be a JSON object")
    return value


def _array(value: Any, what: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise SourceError(f"{what} must be a JSON array")
    return value


def _string(obj: dict[str, Any], key: str) -> str:
    value = obj.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise SourceError(f"field {key!r} must be a string")
    return value


def _parse_float(text: str) -> float:
    """Parse a decimal price string strictly: no surrounding space, no underscores."""
    if not text or text != text.strip() or "_" in text:
        raise ValueError(f"invalid price: {text!r}")
    return float(text)


def _fetch(source: str, url: str, decode: Callable[[Any], T]) -> T:
    """GET ``url``, parse the JSON body and shape it with ``decode``.

    Every failure counts as an unsuccessful fetch for ``source``.
    """
    try:
        body = requests.get(url, timeout=_TIMEOUT).content
    except requests.RequestException as exc:
        logger.error("failed to fetch prices from %s: %s", source, exc)
        PRICE_SOURCE_COUNTER.inc(source, "false")
        raise SourceError(f"failed to fetch prices from {source}: {exc}") from exc
    try:
        return decode(json.loads(body))
    except (ValueError, SourceError) as exc:
        logger.error("failed to unmarshal response body from %s: %s", source, exc)
        PRICE_SOURCE_COUNTER.inc(source, "false")
        if isinstance(exc, SourceError):
            raise
        raise SourceError(f"failed to unmarshal response body from {source}: {exc}") from exc


def _symbol_price_list(
    doc: Any, what: str, symbol_key: str, price_key: str
) -> list[tuple[str, str]]:
    return [
        (_string(item, symbol_key), _string(item, price_key))
        for item in (_object(entry, f"{what} entry") for entry in _array(doc, what))
    ]


def _collect(
    source: str,
    symbols: Set[Symbol],
    tickers: Iterable[tuple[str, str]],
    filter_first: bool,
) -> dict[Symbol, float]:
    """Parse the ticker prices of the requested symbols.

    Unparseable prices are logged and skipped.
    """
    prices: dict[Symbol, float] = {}
    for symbol, price_text in tickers:
        if filter_first and symbol not in symbols:
            continue
        try:
            price = _parse_float(price_text)
        except ValueError:
            logger.error("failed to parse price for %s on data source %s", symbol, source)
            continue
        if symbol in symbols:
            prices[symbol] = price
    logger.debug("fetched prices for %s on data source %s: %s", sorted(symbols), source, prices)
    PRICE_SOURCE_COUNTER.inc(source, "true")
    return prices


def ascendex_price_update(symbols: Set[Symbol]) -> dict[Symbol, float]:
    """Return the latest Ascendex close prices of the given symbols."""

    def decode(doc: Any) -> list[tuple[str, str]]:
        root = _object(doc, "response")
        code = root.get("code")
        if code is not None and (not isinstance(code, int) or isinstance(code, bool)):
            raise SourceError("field 'code' must be an integer")
        return _symbol_price_list(root.get("data"), "data", "symbol", "close")

    tickers = _fetch(ASCENDEX, ASCENDEX_URL, decode)
    return _collect(ASCENDEX, symbols, tickers, filter_first=False)


def binance_symbol_csv(symbols: Iterable[Symbol]) -> str:
    """URL-encoded, comma separated list of quoted symbols for the Binance query."""
    ordered = sorted(set(symbols))
    if not ordered:
        raise ValueError("at least one symbol is required")
    return ",".join(f"%22{symbol}%22" for symbol in ordered)


def _binance_tickers(doc: Any) -> list[tuple[str, float]]:
    tickers = []
    for entry in _array(doc, "response"):
        item = _object(entry, "ticker")
        raw_price = item.get("price")
        if raw_price is None:
            price = 0.0
        elif isinstance(raw_price, str):
            try:
                price = _parse_float(raw_price)
            except ValueError as exc:
                raise SourceError(f"invalid price {raw_price!r}") from exc
        else:
            raise SourceError("field 'price' must be a quoted number")
        tickers.append((_string(item, "symbol"), price))
    return tickers


def binance_price_update(symbols: Set[Symbol]) -> dict[Symbol, float]:
    """Return the latest Binance prices of the given symbols."""
    url = f"{BINANCE_URL}?symbols=%5B{binance_symbol_csv(symbols)}%5D"
    tickers = _fetch(BINANCE, url, _binance_tickers)
    prices: dict[Symbol, float] = {}
    for symbol, price in tickers:
        prices[symbol] = price
        logger.debug("fetched price for %s on data source %s: %f", symbol, BINANCE, price)
    PRICE_SOURCE_COUNTER.inc(BINANCE, "true")
    return prices


def bitfinex_symbol_csv(symbols: Iterable[Symbol]) -> str:
    """Comma separated list of symbols for the Bitfinex query."""
    ordered = sorted(set(symbols))
    if not ordered:
        raise ValueError("at least one symbol is required")
    return ",".join(ordered)


def bitfinex_price_update(symbols: Set[Symbol]) -> dict[Symbol, float]:
    """Return the latest Bitfinex last prices of the given symbols."""
    url = f"{BITFINEX_URL}?symbols={bitfinex_symbol_csv(symbols)}"
    tickers = _fetch(
        BITFINEX,
        url,
        lambda doc: [_array(entry, "ticker") for entry in _array(doc, "response")],
    )
    prices: dict[Symbol, float] = {}
    for ticker in tickers:
        if len(ticker) != _BITFINEX_TICKER_SIZE:
            raise SourceError(f"impossible to parse ticker size {len(ticker)}, {ticker!r}")
        symbol = ticker[_BITFINEX_SYMBOL_INDEX]
        last_price = ticker[_BITFINEX_LAST_PRICE_INDEX]
        if not isinstance(symbol, str):
            raise SourceError(f"ticker symbol must be a string: {ticker!r}")
        if isinstance(last_price, bool) or not isinstance(last_price, (int, float)):
            raise SourceError(f"ticker last price must be a number: {ticker!r}")
        prices[symbol] = float(last_price)
        logger.debug("fetched price for %s on data source %s: %f", symbol, BITFINEX, last_price)
    PRICE_SOURCE_COUNTER.inc(BITFINEX, "true")
    return prices


def bybit_price_update(symbols: Set[Symbol]) -> dict[Symbol, float]:
    """Return the latest Bybit spot last prices of the given symbols."""

    def decode(doc: Any) -> list[tuple[str, str]]:
        result = _object(_object(doc, "response").get("result"), "result")
        return _symbol_price_list(result.get("list"), "list", "symbol", "lastPrice")

    tickers = _fetch(BYBIT, BYBIT_URL, decode)
    return _collect(BYBIT, symbols, tickers, filter_first=False)


def _gateio_tickers(doc: Any) -> list[dict[str, Any]]:
    return [_object(entry, "ticker") for entry in _array(doc, "response")]


def gateio_price_update(symbols: Set[Symbol]) -> dict[Symbol, float]:
    """Return the latest Gate.io spot last prices of the given symbols."""
    tickers = _fetch(GATEIO, GATEIO_URL, _gateio_tickers)
    prices: dict[Symbol, float] = {}
    for ticker in tickers:
        symbol = ticker.get("currency_pair")
        if not isinstance(symbol, str):
            raise SourceError(f"ticker currency pair must be a string: {ticker!r}")
        if symbol not in symbols:
            continue
        last = ticker.get("last")
        if not isinstance(last, str):
            raise SourceError(f"ticker last price must be a string: {ticker!r}")
        try:
            price = _parse_float(last)
        except ValueError:
            logger.error("failed to parse price for %s on data source %s", symbol, GATEIO)
            continue
        prices[symbol] = price
        logger.debug("fetched price for %s on data source %s: %f", symbol, GATEIO, price)
    PRICE_SOURCE_COUNTER.inc(GATEIO, "true")
    return prices


def mexc_price_update(symbols: Set[Symbol]) -> dict[Symbol, float]:
    """Return the latest MEXC prices of the given symbols."""
    tickers = _fetch(
        MEXC, MEXC_URL, lambda doc: _symbol_price_list(doc, "response", "symbol", "price")
    )
    return _collect(MEXC, symbols, tickers, filter_first=False)


def okex_price_update(symbols: Set[Symbol]) -> dict[Symbol, float]:
    """Return the latest OKX spot last prices of the given symbols."""

    def decode(doc: Any) -> list[tuple[str, str]]:
        return _symbol_price_list(_object(doc, "response").get("data"), "data", "instId", "last")

    tickers = _fetch(OKEX, OKEX_URL, decode)
    return _collect(OKEX, symbols, tickers, filter_first=True)