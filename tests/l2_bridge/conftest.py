"""Shared fixtures for L2 bridge tests.

Both domains are simulated in-process, see :py:mod:`eth_nft_bridge.l2_bridge.testing`.
"""

import pytest
from eth_typing import HexAddress

from eth_nft_bridge.l2_bridge.bridge import L2ERC721Bridge
from eth_nft_bridge.l2_bridge.messenger import VerifiedOrigin
from eth_nft_bridge.l2_bridge.testing import BridgePairDeployment, create_address, deploy_bridge_pair
from eth_nft_bridge.l2_bridge.token import L2StandardERC721, PlainERC721


@pytest.fixture()
def deployer() -> HexAddress:
    return create_address()


@pytest.fixture()
def alice() -> HexAddress:
    return create_address()


@pytest.fixture()
def bob() -> HexAddress:
    return create_address()


@pytest.fixture()
def pair() -> BridgePairDeployment:
    """L1 and L2 with both bridges wired together."""
    return deploy_bridge_pair()


@pytest.fixture()
def l2_bridge(pair) -> L2ERC721Bridge:
    return pair.l2_bridge


@pytest.fixture()
def token_pair(pair, deployer) -> tuple[PlainERC721, L2StandardERC721]:
    return pair.deploy_token_pair(deployer, "Test Punks", "PUNK")


@pytest.fixture()
def l1_token(token_pair) -> PlainERC721:
    return token_pair[0]


@pytest.fixture()
def l2_token(token_pair) -> L2StandardERC721:
    return token_pair[1]


@pytest.fixture()
def l1_origin(pair) -> VerifiedOrigin:
    """What the L2 messenger gives to the bridge for messages from the L1 bridge."""
    return VerifiedOrigin(sender=pair.l1_bridge.address, messenger=pair.l2_messenger)


@pytest.fixture()
def alice_item(l2_bridge, l2_token, alice) -> int:
    """Alice holds item 42 on L2."""
    l2_token.mint(l2_bridge.address, alice, 42)
    return 42
