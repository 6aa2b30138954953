"""A price provider that consolidates the prices of several providers."""

from __future__ import annotations

import logging
import math
from typing import Iterable, Mapping, Sequence

from pricefeed.metrics import PROMETHEUS_NAMESPACE, CounterVec
from pricefeed.priceprovider import new_price_provider
from pricefeed.types import Pair, Price, PriceProvider, Symbol

AGGREGATE_PRICE_COUNTER = CounterVec(
    PROMETHEUS_NAMESPACE,
    "aggregate_prices_total",
    "The total number prices provided by the aggregate price provider, by pair, source, "
    "and success status",
    ("pair", "source", "success"),
)

logger = logging.getLogger(__name__)


def mean_and_stddev(prices: Sequence[float]) -> tuple[float, float]:
    """Mean and sample standard deviation; raises ValueError for fewer than two values."""
    if len(prices) < 2:
        raise ValueError("at least two prices are required")
    mean = math.fsum(prices) / len(prices)
    variance = math.fsum((p - mean) ** 2 for p in prices) / (len(prices) - 1)
    return mean, math.sqrt(variance)


def remove_outliers(prices: Sequence[float]) -> list[float]:
    """Drop prices further than one standard deviation from the mean."""
    mean, stddev = mean_and_stddev(prices)
    kept = []
    for price in prices:
        if abs(price - mean) <= stddev:
            kept.append(price)
        else:
            logger.warning("outlier price %f (mean %f, stddev %f)", price, mean, stddev)
    return kept


def median(prices: Sequence[float]) -> float:
    """Median of the prices; raises ValueError if there are none."""
    if not prices:
        raise ValueError("median of no prices")
    ordered = sorted(prices)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def _missing(pair: Pair) -> Price:
    return Price(pair=pair, price=-1.0, source_name="missing", valid=False)


def consolidate_prices(prices: Sequence[Price], pair: Pair) -> Price:
    """Combine valid prices: one as is, two averaged, more by median after outlier removal."""
    if not prices:
        return _missing(pair)
    if len(prices) == 1:
        return prices[0]
    if len(prices) == 2:
        average = (prices[0].price + prices[1].price) / 2
        return Price(pair=pair, price=average, source_name="consolidated", valid=True)

    cleaned = remove_outliers([p.price for p in prices])
    if not cleaned:
        return _missing(pair)
    return Price(pair=pair, price=median(cleaned), source_name="consolidated", valid=True)


class AggregatePriceProvider:
    """Asks every wrapped provider for a price and consolidates the valid ones."""

    def __init__(self, providers: Iterable[PriceProvider]) -> None:
        self.providers = list(providers)

    def get_price(self, pair: Pair) -> Price:
        """Consolidated price of the pair, or an invalid ``missing`` price."""
        valid = []
        for provider in self.providers:
            price = provider.get_price(pair)
            if price.valid:
                AGGREGATE_PRICE_COUNTER.inc(str(pair), price.source_name, "true")
                valid.append(price)

        if valid:
            return consolidate_prices(valid, pair)

        logger.warning("no valid price found for pair %s", pair)
        AGGREGATE_PRICE_COUNTER.inc(str(pair), "missing", "false")
        return Price(pair=pair, price=0.0, source_name="missing", valid=False)

    def close(self) -> None:
        """Close every wrapped provider."""
        for provider in self.providers:
            provider.close()


def new_aggregate_price_provider(
    sources_to_pair_symbol_map: Mapping[str, Mapping[Pair, Symbol]],
) -> AggregatePriceProvider:
    """Build one provider per source and aggregate them.

    Raises ValueError for an unknown source name.
    """
    providers: list[PriceProvider] = []
    try:
        for source_name, pair_to_symbol in sources_to_pair_symbol_map.items():
            providers.append(new_price_provider(source_name, pair_to_symbol))
    except ValueError:
        for provider in providers:
            provider.close()
        raise
    return AggregatePriceProvider(providers)