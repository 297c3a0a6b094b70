"""Read-only on-chain pairing check.

To run the live chain test in this module:

.. code-block:: shell

    export JSON_RPC_OPTIMISM=...
    export OPTIMISM_L2_ERC721_TOKEN=0x...
    pytest -k test_fetch_bridged_token_pairing_live

"""

import os

import pytest
from web3 import Web3
from web3.exceptions import ContractLogicError

from eth_nft_bridge.l2_bridge import onchain
from eth_nft_bridge.l2_bridge.constants import ERC165_INTERFACE_ID, INVALID_INTERFACE_ID, L2_STANDARD_ERC721_INTERFACE_ID
from eth_nft_bridge.l2_bridge.onchain import BridgedTokenPairing, fetch_bridged_token_pairing, get_l2_standard_erc721
from eth_nft_bridge.l2_bridge.testing import create_address


def test_get_l2_standard_erc721():
    """Contract proxy can be built without a connection."""
    web3 = Web3()
    address = create_address()
    contract = get_l2_standard_erc721(web3, address.lower())
    assert contract.address == address
    assert hasattr(contract.functions, "l1Token")
    assert hasattr(contract.functions, "supportsInterface")


def test_pairing_matches():
    l1_token = create_address()
    pairing = BridgedTokenPairing(l2_token=create_address(), supports_bridged_interface=True, l1_token=l1_token)
    assert pairing.matches(l1_token)
    assert pairing.matches(l1_token.lower())
    assert not pairing.matches(create_address())


def test_pairing_not_bridged():
    l1_token = create_address()
    pairing = BridgedTokenPairing(l2_token=create_address(), supports_bridged_interface=False, l1_token=None)
    assert not pairing.matches(l1_token)


class StubCall:
    """Stands in for a bound contract function."""

    def __init__(self, result):
        self.result = result

    def call(self):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class StubFunctions:
    """``contract.functions`` of a deployed token, answering from a fixed table."""

    def __init__(self, interfaces: dict[bytes, bool | Exception], l1_token: str | None):
        self.interfaces = interfaces
        self.l1_token = l1_token
        self.queried = []

    def supportsInterface(self, interface_id: bytes) -> StubCall:
        self.queried.append(interface_id)
        return StubCall(self.interfaces.get(interface_id, False))

    def l1Token(self) -> StubCall:
        assert self.l1_token is not None, "l1Token() should not be read from a non-bridged token"
        return StubCall(self.l1_token)


class StubContract:
    def __init__(self, address: str, functions: StubFunctions):
        self.address = address
        self.functions = functions


@pytest.fixture()
def stub_token(monkeypatch):
    """Route fetch_bridged_token_pairing() to a stubbed contract."""

    def _deploy(interfaces: dict[bytes, bool | Exception], l1_token: str | None = None) -> StubContract:
        contract = StubContract(create_address(), StubFunctions(interfaces, l1_token))
        monkeypatch.setattr(onchain, "get_l2_standard_erc721", lambda web3, address: contract)
        return contract

    return _deploy


def test_fetch_pairing_bridged_token(stub_token):
    l1_token = create_address()
    contract = stub_token(
        {
            ERC165_INTERFACE_ID: True,
            INVALID_INTERFACE_ID: False,
            L2_STANDARD_ERC721_INTERFACE_ID: True,
        },
        l1_token=l1_token.lower(),
    )

    pairing = fetch_bridged_token_pairing(Web3(), contract.address)

    assert pairing.supports_bridged_interface
    assert pairing.l1_token == l1_token
    assert pairing.l2_token == contract.address
    assert pairing.matches(l1_token)
    # ERC165Checker order: ERC-165 itself, the invalid id, then the interface
    assert contract.functions.queried == [ERC165_INTERFACE_ID, INVALID_INTERFACE_ID, L2_STANDARD_ERC721_INTERFACE_ID]


def test_fetch_pairing_plain_erc721(stub_token):
    """ERC-165 capable token without the bridged interface."""
    contract = stub_token({ERC165_INTERFACE_ID: True})

    pairing = fetch_bridged_token_pairing(Web3(), contract.address)

    assert not pairing.supports_bridged_interface
    assert pairing.l1_token is None
    assert not pairing.matches(create_address())


def test_fetch_pairing_claims_everything(stub_token):
    """Token answering true to 0xffffffff is not trusted."""
    contract = stub_token(
        {
            ERC165_INTERFACE_ID: True,
            INVALID_INTERFACE_ID: True,
            L2_STANDARD_ERC721_INTERFACE_ID: True,
        },
    )

    pairing = fetch_bridged_token_pairing(Web3(), contract.address)

    assert not pairing.supports_bridged_interface
    assert contract.functions.queried == [ERC165_INTERFACE_ID, INVALID_INTERFACE_ID]


def test_fetch_pairing_reverting_token(stub_token):
    """supportsInterface() reverts: reported as not bridged instead of raising."""
    contract = stub_token({ERC165_INTERFACE_ID: ContractLogicError("execution reverted")})

    pairing = fetch_bridged_token_pairing(Web3(), contract.address)

    assert not pairing.supports_bridged_interface
    assert pairing.l1_token is None
    assert contract.functions.queried == [ERC165_INTERFACE_ID]


@pytest.mark.skipif(
    not (os.environ.get("JSON_RPC_OPTIMISM") and os.environ.get("OPTIMISM_L2_ERC721_TOKEN")),
    reason="Set JSON_RPC_OPTIMISM and OPTIMISM_L2_ERC721_TOKEN to run this test",
)
def test_fetch_bridged_token_pairing_live():
    web3 = Web3(Web3.HTTPProvider(os.environ["JSON_RPC_OPTIMISM"]))
    pairing = fetch_bridged_token_pairing(web3, os.environ["OPTIMISM_L2_ERC721_TOKEN"])
    assert pairing.supports_bridged_interface
    assert pairing.l1_token.startswith("0x")
    assert pairing.matches(pairing.l1_token)
