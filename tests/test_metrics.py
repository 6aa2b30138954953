import threading

import pytest

from pricefeed.metrics import PRICE_SOURCE_COUNTER, CounterVec


def _counter():
    return CounterVec("pricefeeder", "prices_posted_total", "posted", ("success",))


def test_inc_accumulates():
    counter = _counter()
    counter.inc("true")
    counter.inc("true")
    assert counter.value("true") == 2


def test_labels_are_independent():
    counter = _counter()
    counter.inc("true")
    assert counter.value("false") == 0
    assert counter.value("true") == 1


def test_wrong_label_count_raises():
    counter = _counter()
    with pytest.raises(ValueError):
        counter.inc("true", "extra")
    with pytest.raises(ValueError):
        counter.value()


def test_full_name_joins_namespace():
    counter = CounterVec("ns", "things_total", "things", ("kind",))
    counter.inc("a")
    assert counter.full_name == "ns_things_total"
    assert counter.value("a") == 1
    assert PRICE_SOURCE_COUNTER.full_name == "pricefeeder_fetched_prices_total"


def test_price_source_counter_counts_per_source():
    before = PRICE_SOURCE_COUNTER.value("bitfinex", "false")
    PRICE_SOURCE_COUNTER.inc("bitfinex", "false")
    assert PRICE_SOURCE_COUNTER.value("bitfinex", "false") == before + 1


def test_concurrent_increments_are_not_lost():
    counter = _counter()
    threads_count, per_thread = 8, 500

    def work():
        for _ in range(per_thread):
            counter.inc("true")

    threads = [threading.Thread(target=work) for _ in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert counter.value("true") == threads_count * per_thread