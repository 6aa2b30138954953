# pricefeed

`pricefeed` collects spot prices for a set of asset pairs from several
exchanges, consolidates them into one price per pair, and works out when a
chain's price oracle opens a new voting period. A `Feeder` ties these pieces
together and hands the prices of each voting period to a price poster that
you supply.

It is a library; there is no command to run.

## Pieces

| Module | What it does |
| --- | --- |
| `pricefeed.types` | `Pair`, `parse_pair`, `Params`, `RawPrice`, `Price`, `VotingPeriod` and the `EventStream`, `PricePoster`, `PriceProvider` and `Source` protocols |
| `pricefeed.exchanges` | One fetch function per exchange: `ascendex_price_update`, `binance_price_update`, `bitfinex_price_update`, `bybit_price_update`, `gateio_price_update`, `mexc_price_update`, `okex_price_update`; failures raise `SourceError` |
| `pricefeed.uniswap` | `uniswap_price_update`, which returns `ETHUSD` and `VSGUSD` prices read from Uniswap V2 pair reserves over Ethereum JSON-RPC; also `get_price` and `decode_reserves` |
| `pricefeed.tick_source` | `TickSource`, which calls a fetch function every `UPDATE_TICK` (8) seconds and publishes the results |
| `pricefeed.priceprovider` | `PriceProvider`, which maps asset pairs to one source's symbols and serves the latest fresh price; `new_price_provider` builds one by source name |
| `pricefeed.aggregate` | `AggregatePriceProvider`, which asks every provider, drops outliers and takes the median; `new_aggregate_price_provider` builds one from a source → pair → symbol map |
| `pricefeed.tendermint` | `get_block_height`, which reads the height out of a `NewBlock` event |
| `pricefeed.websocket` | `Websocket`, a websocket reader that reconnects with exponential backoff |
| `pricefeed.stream` | `Stream`, which turns new blocks into voting-period signals and refreshes oracle params through a function you pass in |
| `pricefeed.voting` | `float_to_dec` (18-place decimals, extra digits truncated), `new_salt` and the retry helper `try_until_done` |
| `pricefeed.metrics` | `CounterVec`, in-process labelled counters; `PRICE_SOURCE_COUNTER` counts fetches per source |
| `pricefeed.config` | `Config`, `get()` and `must_get()`, reading the environment and an optional `.env` file |
| `pricefeed.feeder` | `Feeder`, which waits for params, then gathers and passes on prices every voting period |

Source names accepted by `new_price_provider`: `bitfinex`, `binance`,
`okex`, `gateio`, `bybit`, `uniswap`, `mexc`, `ascendex`. Any other name
raises `ValueError`.

## Configuration

`pricefeed.config.get()` reads these variables (a `.env` file in the working
directory is loaded first; variables already set win) and raises
`ConfigError` when a required one is missing. `must_get()` does the same, with
the message prefixed by `config error! check the environment:`.

| Variable | Meaning |
| --- | --- |
| `CHAIN_ID` | Chain identifier (required) |
| `GRPC_ENDPOINT` | Chain gRPC endpoint (required) |
| `WEBSOCKET_ENDPOINT` | Tendermint RPC websocket, e.g. `ws://localhost:26657/websocket` (required) |
| `FEEDER_MNEMONIC` | Mnemonic of the feeder account (required) |
| `ENABLE_TLS` | `true` sets `Config.enable_tls` |
| `EXCHANGE_SYMBOLS_MAP` | JSON object overriding the exchange → pair → symbol map |
| `DATASOURCE_CONFIG_MAP` | JSON object of per-exchange options, kept in `Config.data_source_config_map` |
| `VALIDATOR_ADDRESS` | Validator operator address; kept only if it is a valid bech32 `...valoper` address, otherwise `None` |

By default prices are taken from Bitfinex, Gate.io, OKX, Bybit, MEXC and
Ascendex. An override looks like:

```
EXCHANGE_SYMBOLS_MAP={"bitfinex": {"ubtc:uusd": "tBTCUSD", "ueth:uusd": "tETHUSD"}}
```

Each exchange named in the override replaces that exchange's default entry.

## Examples

Fetch prices straight from an exchange:

```python
from pricefeed.exchanges import okex_price_update

prices = okex_price_update({"BTC-USDT", "ETH-USDT"})
print(prices["BTC-USDT"])
```

Serve consolidated prices for configured pairs:

```python
from pricefeed.aggregate import new_aggregate_price_provider
from pricefeed.types import parse_pair

btc = parse_pair("ubtc:uusd")
provider = new_aggregate_price_provider({
    "bitfinex": {btc: "tBTCUSD"},
    "gateio": {btc: "BTC_USDT"},
    "okex": {btc: "BTC-USDT"},
})
try:
    price = provider.get_price(btc)
    if price.valid:
        print(price.price, price.source_name)
finally:
    provider.close()
```

A fetched price counts as valid for `PRICE_TIMEOUT` (15) seconds. A pair
with no fresh price from any provider comes back with `valid` set to `False`
and `source_name` `"missing"`. With two valid prices the aggregate is their
mean; with three or more, prices further than one sample standard deviation
from the mean are dropped and the median of the rest is used.

Run a feeder with your own price poster and params fetcher:

```python
from pricefeed.feeder import Feeder
from pricefeed.stream import Stream
from pricefeed.types import Params, parse_pair

def fetch_params():
    return Params(pairs=(parse_pair("ubtc:uusd"),), vote_period_blocks=10)

class PrintingPoster:
    def whoami(self):
        return "validator"
    def send_prices(self, vp, prices):
        print(vp.height, prices)
    def close(self):
        pass

stream = Stream.dial("ws://localhost:26657/websocket", fetch_params)
feeder = Feeder(stream, provider, PrintingPoster())
feeder.run()  # raises TimeoutError if no params arrive in time
...
feeder.close()
```

`Stream` refreshes params every 10 seconds and publishes them only when they
change; it signals `VotingPeriod(height + 1)` whenever `height + 1` is a
multiple of the vote period. At each voting period the feeder asks the price
provider for every whitelisted pair; invalid prices are passed on with price
`0.0`.

## What the package does not do

- It does not sign or broadcast transactions, keep keys, or derive addresses
  from `FEEDER_MNEMONIC`; prices go to whatever `PricePoster` you supply.
- It does not query the chain over gRPC; `Stream` gets params from the
  function you give it. `GRPC_ENDPOINT` and `ENABLE_TLS` are only read into
  `Config`.
- It does not serve metrics over HTTP; counters live in memory and are read
  with `CounterVec.value`.
- It has no command-line program or daemon.

## Tests

Install the `test` extra and run `pytest`.