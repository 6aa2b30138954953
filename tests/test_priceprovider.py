import queue
import time

import pytest

from pricefeed.exchanges import BITFINEX
from pricefeed.priceprovider import PriceProvider, is_valid, new_price_provider
from pricefeed.types import PRICE_TIMEOUT, Pair, RawPrice

BTC = Pair("ubtc", "unusd")
ETH = Pair("ueth", "unusd")


class FakeSource:
    def __init__(self):
        self.updates = queue.Queue()
        self.closed = False

    def price_updates(self):
        return self.updates

    def close(self):
        self.closed = True


def wait_for(condition, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


def test_unknown_source_raises():
    with pytest.raises(ValueError, match="unknown price provider: unknown"):
        new_price_provider("unknown", {})


def test_known_source_starts_without_prices():
    provider = new_price_provider(BITFINEX, {BTC: "tBTCUSD"})
    try:
        price = provider.get_price(BTC)
        assert price.valid is False
        assert price.source_name == BITFINEX
        assert price.pair == BTC
    finally:
        provider.close()


def test_invalid_price_on_unknown_pair():
    provider = PriceProvider(FakeSource(), "test", {})
    try:
        price = provider.get_price(BTC)
        assert price.valid is False
        assert price.price == -1.0
        assert price.pair == BTC
        assert price.source_name == "test"
    finally:
        provider.close()


def test_returns_correct_price():
    source = FakeSource()
    provider = PriceProvider(source, "test", {BTC: "BTC:NUSD"})
    try:
        source.updates.put({"BTC:NUSD": RawPrice(10.0, time.time())})
        assert wait_for(lambda: provider.get_price(BTC).valid)
        price = provider.get_price(BTC)
        assert price.price == 10.0
        assert price.pair == BTC
        assert price.source_name == "test"
    finally:
        provider.close()


def test_later_updates_overwrite_earlier_ones():
    source = FakeSource()
    provider = PriceProvider(source, "test", {BTC: "BTC", ETH: "ETH"})
    try:
        source.updates.put({"BTC": RawPrice(1.0, time.time()), "ETH": RawPrice(2.0, time.time())})
        source.updates.put({"BTC": RawPrice(3.0, time.time())})
        assert wait_for(lambda: provider.get_price(BTC).price == 3.0)
        assert provider.get_price(ETH).price == 2.0
    finally:
        provider.close()


def test_expired_price_is_invalid():
    source = FakeSource()
    provider = PriceProvider(source, "test", {BTC: "BTC"})
    try:
        source.updates.put({"BTC": RawPrice(20.0, time.time() - PRICE_TIMEOUT - 1)})
        assert wait_for(lambda: provider.get_price(BTC).price == 20.0)
        assert provider.get_price(BTC).valid is False
    finally:
        provider.close()


def test_close_closes_source():
    source = FakeSource()
    provider = PriceProvider(source, "test", {})
    provider.close()
    assert source.closed is True


def test_is_valid_ok():
    assert is_valid(RawPrice(10.0, time.time()), True) is True


def test_is_valid_not_found():
    assert is_valid(RawPrice(10.0, time.time()), False) is False


def test_is_valid_expired():
    assert is_valid(RawPrice(20.0, time.time() - 1 - PRICE_TIMEOUT), True) is False


def test_is_valid_missing_price():
    assert is_valid(None, False) is False