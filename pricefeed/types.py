"""Core value types and component interfaces of the price feeder."""

from __future__ import annotations

import queue
from dataclasses import dataclass
from typing import Callable, Mapping, Protocol, Sequence, Set

#: How long a fetched price stays usable, in seconds.
PRICE_TIMEOUT = 15.0

#: Ticker name used by a third-party data source or exchange.
Symbol = str

#: Fetches the latest prices for the given symbols.
#: Symbols that could not be priced may be left out of the result.
FetchPricesFunc = Callable[[Set[Symbol]], Mapping[Symbol, float]]


@dataclass(frozen=True, order=True)
class Pair:
    """An asset pair such as ``ubtc:uusd``."""

    base: str
    quote: str

    def __post_init__(self) -> None:
        for part in (self.base, self.quote):
            if not part or ":" in part:
                raise ValueError(f"invalid asset pair part: {part!r}")

    def __str__(self) -> str:
        return f"{self.base}:{self.quote}"


def parse_pair(text: str) -> Pair:
    """Parse ``base:quote`` into a :class:`Pair`; raise ValueError if malformed."""
    parts = text.split(":")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"invalid asset pair: {text!r}")
    return Pair(parts[0], parts[1])


@dataclass(frozen=True)
class Params:
    """The oracle parameters needed for price feeding."""

    pairs: tuple[Pair, ...] = ()
    vote_period_blocks: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "pairs", tuple(self.pairs))

    def equal(self, other: Params) -> bool:
        """Report whether both hold the same vote period and the same pairs in order."""
        return (
            self.vote_period_blocks == other.vote_period_blocks
            and self.pairs == tuple(other.pairs)
        )


@dataclass(frozen=True)
class RawPrice:
    """A price as fetched from a source, with the time it was fetched."""

    price: float
    update_time: float


@dataclass(frozen=True)
class Price:
    """The price of a pair as provided by a named source.

    An invalid price results in an abstain vote.
    """

    pair: Pair
    price: float
    source_name: str
    valid: bool


@dataclass(frozen=True)
class VotingPeriod:
    """The voting period that has just started."""

    height: int


class EventStream(Protocol):
    """Stream of chain events the feeder reacts to; handles its own failures."""

    def params_update(self) -> queue.Queue[Params]:
        """Queue of parameter updates; the initial parameters arrive first."""

    def voting_period_started(self) -> queue.Queue[VotingPeriod]:
        """Queue signalling each new voting period."""

    def close(self) -> None:
        """Shut the stream down."""


class PricePoster(Protocol):
    """Client that sends prices to the chain; handles its own failures."""

    def whoami(self) -> str:
        """The validator address prices are sent for."""

    def send_prices(self, vp: VotingPeriod, prices: Sequence[Price]) -> None:
        """Send the given prices for the voting period."""

    def close(self) -> None:
        """Shut the poster down."""


class PriceProvider(Protocol):
    """Provider of prices for asset pairs; handles its own failures."""

    def get_price(self, pair: Pair) -> Price:
        """Return the price of the pair, marked invalid if unavailable."""

    def close(self) -> None:
        """Shut the provider down."""


class Source(Protocol):
    """Source of raw prices keyed by its own symbols."""

    def price_updates(self) -> queue.Queue[dict[Symbol, RawPrice]]:
        """Queue of price batches."""

    def close(self) -> None:
        """Shut the source down."""