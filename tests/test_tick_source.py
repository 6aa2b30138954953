import logging
import queue
import time

from pricefeed.tick_source import TickSource

LOGGER = "pricefeed.tick_source"


def test_delivers_fetched_prices():
    expected_symbols = frozenset({"tBTCUSDT"})
    expected_prices = {"tBTCUSDT": 250_000.56}
    calls = []

    def fetch(symbols):
        calls.append(symbols)
        return expected_prices

    source = TickSource(expected_symbols, fetch, update_tick=0.01)
    try:
        got = source.price_updates().get(timeout=5)
    finally:
        source.close()

    assert calls[0] == expected_symbols
    assert set(got) == set(expected_prices)
    assert got["tBTCUSDT"].price == 250_000.56
    assert time.time() - got["tBTCUSDT"].update_time < 2.0


def test_price_update_dropped_due_to_shutdown(caplog):
    caplog.set_level(logging.DEBUG, logger=LOGGER)
    source = TickSource({"tBTCUSDT"}, lambda symbols: {"tBTCUSDT": 250_000.56}, update_tick=0.01)
    time.sleep(0.3)
    source.close()
    assert "dropped price update due to shutdown" in caplog.text


def test_logs_on_price_update_errors(caplog):
    caplog.set_level(logging.DEBUG, logger=LOGGER)

    def fetch(symbols):
        raise RuntimeError("sentinel error")

    source = TickSource({"tBTCUSDT"}, fetch, update_tick=0.01)
    try:
        time.sleep(0.2)
        updates = source.price_updates()
        try:
            updates.get_nowait()
            got_update = True
        except queue.Empty:
            got_update = False
    finally:
        source.close()

    assert got_update is False
    assert "sentinel error" in caplog.text


def test_no_tick_before_interval():
    calls = []
    source = TickSource({"X"}, lambda symbols: calls.append(symbols) or {}, update_tick=10.0)
    time.sleep(0.1)
    source.close()
    assert calls == []