"""eth_nft_bridge package root.

L2 side of a non-custodial ERC-721 bridge: withdrawal initiation,
deposit finalization and the bounce-back path.

See :py:mod:`eth_nft_bridge.l2_bridge` to get started.
"""

import sys


#: Minimum required Python version to run this package
MIN_PYTHON_VERSION = (3, 10)


def _check_python_version():
    """Try early abort if the Python version is too old."""

    # Use Python tuple comparison for version numbers
    # https://stackoverflow.com/a/1093331/315168
    if sys.version_info < MIN_PYTHON_VERSION:
        raise RuntimeError(f"eth-nft-bridge needs Python {MIN_PYTHON_VERSION[0]}.{MIN_PYTHON_VERSION[1]} or later")


_check_python_version()
