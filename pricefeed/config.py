"""Feeder configuration read from the environment and an optional .env file."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from pricefeed.exchanges import ASCENDEX, BITFINEX, BYBIT, GATEIO, MEXC, OKEX
from pricefeed.types import Pair, Symbol, parse_pair

DEFAULT_EXCHANGE_SYMBOLS: dict[str, dict[str, Symbol]] = {
    BITFINEX: {
        "ubtc:uusd": "tBTCUSD",
        "ueth:uusd": "tETHUSD",
        "uusdc:uusd": "tUDCUSD",
        "uusdt:uusd": "tUSTUSD",
        "uatom:uusd": "tATOUSD",
    },
    GATEIO: {
        "ubtc:uusd": "BTC_USDT",
        "ueth:uusd": "ETH_USDT",
        "uusdc:uusd": "USDC_USDT",
        "uusdt:uusd": "USDT_USD",
        "uatom:uusd": "ATOM_USDT",
    },
    OKEX: {
        "ubtc:uusd": "BTC-USDT",
        "ueth:uusd": "ETH-USDT",
        "uusdc:uusd": "USDC-USDT",
        "uusdt:uusd": "USDT-USDC",
        "uatom:uusd": "ATOM-USDT",
    },
    BYBIT: {
        "ubtc:uusd": "BTCUSDT",
        "ueth:uusd": "ETHUSDT",
        "uusdc:uusd": "USDCUSDT",
        "uatom:uusd": "ATOMUSDT",
    },
    MEXC: {"avsg:ausd": "VSGUSDT"},
    ASCENDEX: {"avsg:ausd": "VSG/USDT"},
}

_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_BECH32_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_BECH32_MAX_LENGTH = 1023


class ConfigError(Exception):
    """Raised when the configuration is missing or malformed."""


@dataclass
class Config:
    """Everything the feeder needs to run."""

    exchanges_to_pair_to_symbol_map: dict[str, dict[Pair, Symbol]] = field(default_factory=dict)
    data_source_config_map: dict[str, Any] = field(default_factory=dict)
    grpc_endpoint: str = ""
    websocket_endpoint: str = ""
    feeder_mnemonic: str = ""
    chain_id: str = ""
    validator_addr: str | None = None
    enable_tls: bool = False

    def validate(self) -> None:
        """Raise ConfigError if a required setting is missing."""
        if not self.chain_id:
            raise ConfigError("no chain id")
        if not self.feeder_mnemonic:
            raise ConfigError("no feeder mnemonic")
        if not self.websocket_endpoint:
            raise ConfigError("no websocket endpoint")
        if not self.grpc_endpoint:
            raise ConfigError("no grpc endpoint")


def _symbol_map(raw: dict[str, dict[str, Symbol]]) -> dict[str, dict[Pair, Symbol]]:
    return {
        exchange: {parse_pair(pair): symbol for pair, symbol in pairs.items()}
        for exchange, pairs in raw.items()
    }


def _parse_exchange_symbols(text: str) -> dict[str, dict[Pair, Symbol]]:
    try:
        document = json.loads(text)
    except ValueError as exc:
        raise ConfigError(f"failed to parse EXCHANGE_SYMBOLS_MAP: {exc}") from exc
    if not isinstance(document, dict) or not all(
        isinstance(pairs, dict) and all(isinstance(s, str) for s in pairs.values())
        for pairs in document.values()
    ):
        raise ConfigError(
            "failed to parse EXCHANGE_SYMBOLS_MAP: expected an object of objects of strings"
        )
    try:
        return _symbol_map(document)
    except ValueError as exc:
        raise ConfigError(f"failed to parse EXCHANGE_SYMBOLS_MAP: {exc}") from exc


def _bech32_polymod(values: list[int]) -> int:
    checksum = 1
    for value in values:
        top = checksum >> 25
        checksum = (checksum & 0x1FFFFFF) << 5 ^ value
        for bit, generator in enumerate(_BECH32_GENERATOR):
            if (top >> bit) & 1:
                checksum ^= generator
    return checksum


def _bech32_decode(text: str) -> tuple[str, list[int]]:
    if len(text) > _BECH32_MAX_LENGTH or text.lower() != text and text.upper() != text:
        raise ValueError("invalid bech32 string")
    text = text.lower()
    hrp, sep, data = text.rpartition("1")
    if not sep or not hrp or len(data) < 6:
        raise ValueError("invalid bech32 separator position")
    if any(ord(char) < 33 or ord(char) > 126 for char in hrp):
        raise ValueError("invalid bech32 prefix")
    if any(char not in _BECH32_CHARSET for char in data):
        raise ValueError("invalid bech32 character")
    values = [_BECH32_CHARSET.index(char) for char in data]
    expanded = [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]
    if _bech32_polymod(expanded + values) != 1:
        raise ValueError("invalid bech32 checksum")
    return hrp, values[:-6]


def _validator_address(text: str) -> str | None:
    """Return the address if it is a bech32 validator operator address, else None."""
    try:
        hrp, data = _bech32_decode(text)
    except ValueError:
        return None
    if not hrp.endswith("valoper") or not data:
        return None
    if (len(data) * 5) % 8 >= 5 or (len(data) * 5) // 8 > 255:
        return None
    return text


def get() -> Config:
    """Load the configuration from the environment.

    A ``.env`` file in the working directory is read first if present; variables
    already set take precedence. Raises ConfigError if the configuration is invalid.
    """
    dotenv = Path.cwd() / ".env"
    if dotenv.is_file():
        load_dotenv(dotenv)

    conf = Config(
        chain_id=os.environ.get("CHAIN_ID", ""),
        grpc_endpoint=os.environ.get("GRPC_ENDPOINT", ""),
        websocket_endpoint=os.environ.get("WEBSOCKET_ENDPOINT", ""),
        feeder_mnemonic=os.environ.get("FEEDER_MNEMONIC", ""),
        enable_tls=os.environ.get("ENABLE_TLS", "") == "true",
        exchanges_to_pair_to_symbol_map=_symbol_map(DEFAULT_EXCHANGE_SYMBOLS),
    )

    override = os.environ.get("EXCHANGE_SYMBOLS_MAP", "")
    if override:
        conf.exchanges_to_pair_to_symbol_map.update(_parse_exchange_symbols(override))

    datasource_text = os.environ.get("DATASOURCE_CONFIG_MAP", "")
    if datasource_text:
        try:
            datasource = json.loads(datasource_text)
        except ValueError as exc:
            raise ConfigError("failed to parse DATASOURCE_CONFIG_MAP: invalid json") from exc
        if not isinstance(datasource, dict):
            raise ConfigError("failed to parse DATASOURCE_CONFIG_MAP: invalid json")
        conf.data_source_config_map = datasource

    validator = os.environ.get("VALIDATOR_ADDRESS", "")
    if validator:
        conf.validator_addr = _validator_address(validator)

    conf.validate()
    return conf


def must_get() -> Config:
    """Like :func:`get`, with the error message pointing at the environment."""
    try:
        return get()
    except ConfigError as exc:
        raise ConfigError(f"config error! check the environment: {exc}") from exc