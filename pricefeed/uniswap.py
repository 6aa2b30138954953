"""Prices derived from Uniswap V2 pair reserves read over Ethereum JSON-RPC."""

from __future__ import annotations

import logging
from fractions import Fraction
from typing import Any, NamedTuple, Set

import requests

from pricefeed.exchanges import SourceError
from pricefeed.metrics import PRICE_SOURCE_COUNTER
from pricefeed.types import Symbol

UNISWAP = "uniswap"

PUBLIC_NODE_URL = "https://ethereum-rpc.publicnode.com"

#: Function selector of ``getReserves()`` on a Uniswap V2 pair.
GET_RESERVES_SELECTOR = "0x0902f1ac"

ETH_USDT_PAIR_ADDRESS = "0x0d4a11d5EEaaC28EC3F61d100daF4d40471f1852"
ETH_USDC_PAIR_ADDRESS = "0xB4e16d0168e52d35CaCD2c6185b44281Ec28C9Dc"
VSG_ETH_PAIR_ADDRESS = "0x1E9348B71EcBaaa14EFF7B4B6186B78d1A9B9B70"

#: Allowed range of the ETH/USDT to ETH/USDC price ratio.
MAX_DEVIATION_RATIO = 1.25
MIN_DEVIATION_RATIO = 0.8

_WORD = 32
_TIMEOUT = 30.0

logger = logging.getLogger(__name__)


class Reserves(NamedTuple):
    """The output of a pair's ``getReserves()`` call."""

    reserve0: int
    reserve1: int
    block_timestamp_last: int


def decode_reserves(data: bytes | str) -> Reserves:
    """Decode the ABI-encoded output of ``getReserves()``.

    Accepts raw bytes or a hex string with or without a ``0x`` prefix.
    Raises ValueError if the data is malformed.
    """
    if isinstance(data, str):
        text = data[2:] if data[:2].lower() == "0x" else data
        try:
            raw = bytes.fromhex(text)
        except ValueError as exc:
            raise ValueError(f"invalid hex data: {data!r}") from exc
    else:
        raw = bytes(data)
    if not raw:
        raise ValueError("empty output where getReserves values are expected")
    if len(raw) % _WORD:
        raise ValueError("improperly formatted output")
    if len(raw) < 3 * _WORD:
        raise ValueError("output too short for getReserves values")
    reserve0, reserve1, timestamp = (
        int.from_bytes(raw[offset : offset + _WORD], "big") for offset in (0, _WORD, 2 * _WORD)
    )
    return Reserves(reserve0, reserve1, timestamp & 0xFFFFFFFF)


def _eth_call(rpc_url: str, address: str, data: str) -> str:
    payload = {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "eth_call",
        "params": [{"to": address.lower(), "data": data}, "latest"],
    }
    try:
        response = requests.post(rpc_url, json=payload, timeout=_TIMEOUT)
        response.raise_for_status()
        document: Any = response.json()
    except (requests.RequestException, ValueError) as exc:
        raise SourceError(f"failed to call contract: {exc}") from exc
    if not isinstance(document, dict):
        raise SourceError("failed to call contract: malformed response")
    error = document.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else error
        raise SourceError(f"failed to call contract: {message}")
    result = document.get("result")
    if not isinstance(result, str):
        raise SourceError("failed to call contract: missing result")
    return result


def get_price(
    rpc_url: str,
    pair_address: str,
    token0_decimals: int,
    token1_decimals: int,
    reverse: bool,
) -> float:
    """Price of one pair token in the other, adjusted for token decimals.

    Without ``reverse`` the price is reserve1/reserve0, with it reserve0/reserve1.
    Raises SourceError if the call fails or a reserve is zero.
    """
    result = _eth_call(rpc_url, pair_address, GET_RESERVES_SELECTOR)
    try:
        reserves = decode_reserves(result)
    except ValueError as exc:
        raise SourceError(f"failed to unpack result: {exc}") from exc
    logger.debug("fetched reserves: %d, %d", reserves.reserve0, reserves.reserve1)

    if reserves.reserve0 == 0 or reserves.reserve1 == 0:
        raise SourceError("one of the reserves is zero")

    if reverse:
        ratio = Fraction(reserves.reserve0, reserves.reserve1)
    else:
        ratio = Fraction(reserves.reserve1, reserves.reserve0)
    price = ratio / 10**token1_decimals * 10**token0_decimals
    return float(price)


def uniswap_price_update(symbols: Set[Symbol]) -> dict[Symbol, float]:
    """Return ETHUSD and VSGUSD prices derived from Uniswap V2 pools.

    Raises SourceError if a pool cannot be read or the two ETH quotes diverge too much.
    """
    try:
        eth_in_usdt = get_price(PUBLIC_NODE_URL, ETH_USDT_PAIR_ADDRESS, 18, 6, False)
    except SourceError as exc:
        logger.error("failed to fetch price for ETH/USDT: %s", exc)
        raise
    logger.debug("fetched price for ETH/USDT: %f", eth_in_usdt)

    try:
        eth_in_usdc = get_price(PUBLIC_NODE_URL, ETH_USDC_PAIR_ADDRESS, 18, 6, True)
    except SourceError as exc:
        logger.error("failed to fetch price for ETH/USDC: %s", exc)
        raise
    logger.debug("fetched price for ETH/USDC: %f", eth_in_usdc)

    if eth_in_usdc == 0 or not (
        MIN_DEVIATION_RATIO <= eth_in_usdt / eth_in_usdc <= MAX_DEVIATION_RATIO
    ):
        message = f"price deviation too high: {eth_in_usdt:f}/{eth_in_usdc:f}"
        logger.error(message)
        raise SourceError(message)

    eth_in_usd = (eth_in_usdt + eth_in_usdc) / 2

    try:
        vsg_in_eth = get_price(PUBLIC_NODE_URL, VSG_ETH_PAIR_ADDRESS, 18, 18, False)
    except SourceError as exc:
        logger.error("failed to fetch price for VSG/ETH: %s", exc)
        raise
    logger.debug("fetched price for VSG/ETH: %f", vsg_in_eth)

    prices = {"ETHUSD": eth_in_usd, "VSGUSD": vsg_in_eth * eth_in_usd}
    PRICE_SOURCE_COUNTER.inc(UNISWAP, "true")
    return prices