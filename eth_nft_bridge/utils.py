"""Bunch of random utilities."""

import logging
import os
from pathlib import Path
from typing import Optional

from eth_typing import HexAddress, HexStr
from web3 import Web3


logger = logging.getLogger(__name__)


#: Ethereum 0x0000000000000000000000000000000000000000 address
ZERO_ADDRESS = HexAddress(HexStr("0x0000000000000000000000000000000000000000"))

#: Largest value a Solidity ``uint256`` can hold
UINT256_MAX = 2**256 - 1

#: Largest value a Solidity ``uint32`` can hold
UINT32_MAX = 2**32 - 1


def setup_console_logging(
    default_log_level="warning",
    simplified_logging=False,
    log_file: str | Path = None,
    std_out_log_level: Optional[int] = None,
    clear_log_file=True,
) -> logging.Logger:
    """Set up coloured log output.

    - Helper function to have nicer logging output in simulation scripts.
    - Tune down some noisy dependency library logging

    :param log_file:
        Output both console and this log file.

    :return:
        Root logger
    """

    level = os.environ.get("LOG_LEVEL", default_log_level).upper()
    numeric_level = getattr(logging, level.upper(), None)

    if not std_out_log_level:
        std_out_log_level = numeric_level

    if simplified_logging:
        # Simplified logging format for tutorials
        fmt = "%(message)s"
        date_fmt = "%H:%M:%S"
    else:
        fmt = "%(asctime)s %(name)-44s %(message)s"
        date_fmt = "%H:%M:%S"

    try:
        # Optional dev dependency
        import coloredlogs

        coloredlogs.install(level=std_out_log_level, fmt=fmt, date_fmt=date_fmt)
    except ImportError as e:
        # non-ANSI e.g. Docker

        assert numeric_level, f"No level: {level}"
        logging.basicConfig(level=std_out_log_level, format=fmt, datefmt=date_fmt)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        # When using a file, the file is always logged with INFO level and
        # env var controls only terminal output
        min_level = min(logging.INFO, numeric_level)
        if clear_log_file:
            mode = "w"
        else:
            mode = "a"

        file_handler = logging.FileHandler(log_file, mode=mode, encoding="utf-8")
        file_handler.setLevel(min_level)
        file_handler.setFormatter(logging.Formatter(fmt, date_fmt))

        root = logging.getLogger()
        root.setLevel(min_level)
        root.addHandler(file_handler)

    # Mute noise
    logging.getLogger("web3.providers.HTTPProvider").setLevel(logging.WARNING)
    logging.getLogger("web3.RequestManager").setLevel(logging.WARNING)
    logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)
    return logging.getLogger()


def addr(address: str | HexAddress | HexStr) -> HexAddress:
    """
    Convert various address formats to HexAddress.

    Args:
        address: Can be a string, HexAddress, or HexStr

    Returns:
        HexAddress object
    """
    if isinstance(address, (str, HexStr)):
        return HexAddress(HexStr(address))
    else:
        return address


def to_checksum(address: str | HexAddress) -> HexAddress:
    """Checksum an address coming through a public API.

    All addresses inside the bridge are checksummed, so
    two spellings of the same address always compare equal.

    :raise ValueError:
        If the value is not a 20 bytes hex address.
    """
    if not isinstance(address, str):
        raise ValueError(f"Address must be a hex string, got {type(address)}: {address}")
    if not Web3.is_address(address.lower()):
        raise ValueError(f"Not an Ethereum address: {address}")
    return addr(Web3.to_checksum_address(address.lower()))
