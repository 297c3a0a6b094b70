"""Read bridged token pairing from a live chain.

Relayers and operators can check a deposit before submitting it:
does the L2 token implement the bridged token interface, and is it
paired with the L1 token the deposit is for. These are the same checks
:py:class:`~eth_nft_bridge.l2_bridge.bridge.L2ERC721Bridge` does before minting.

Example::

    from eth_nft_bridge.l2_bridge.onchain import fetch_bridged_token_pairing

    pairing = fetch_bridged_token_pairing(web3, l2_token_address)
    if not pairing.matches(l1_token_address):
        logger.warning("Deposit would bounce: %s", pairing)
"""

import logging
from dataclasses import dataclass

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from eth_nft_bridge.abi import get_deployed_contract
from eth_nft_bridge.l2_bridge.constants import ERC165_INTERFACE_ID, INVALID_INTERFACE_ID, L2_STANDARD_ERC721_INTERFACE_ID

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BridgedTokenPairing:
    """On-chain bridge capabilities of an L2 token."""

    #: L2 token address
    l2_token: HexAddress

    #: ERC-165 check for ``IL2StandardERC721`` passed
    supports_bridged_interface: bool

    #: ``l1Token()`` result, ``None`` if the token is not bridged
    l1_token: HexAddress | None

    def matches(self, l1_token: HexAddress | str) -> bool:
        """Would a deposit of ``l1_token`` mint this token."""
        if not self.supports_bridged_interface or self.l1_token is None:
            return False
        return self.l1_token == Web3.to_checksum_address(l1_token)


def get_l2_standard_erc721(web3: Web3, address: HexAddress | str) -> Contract:
    """Get a contract proxy for a bridged ERC-721 on L2."""
    return get_deployed_contract(web3, "IL2StandardERC721.json", address)


def _call_supports_interface(contract: Contract, interface_id: bytes) -> bool:
    try:
        return contract.functions.supportsInterface(interface_id).call()
    except (ContractLogicError, BadFunctionCallOutput) as e:
        # Reverts, or no code at the address
        logger.info("supportsInterface(0x%s) failed on %s: %s", interface_id.hex(), contract.address, e)
        return False


def fetch_bridged_token_pairing(web3: Web3, address: HexAddress | str) -> BridgedTokenPairing:
    """Probe an L2 token the way ERC165Checker does and read its pairing.

    :param web3:
        Web3 connected to L2

    :param address:
        L2 token address

    :return:
        Pairing info. Tokens not implementing the interface
        get ``supports_bridged_interface=False``.
    """
    contract = get_l2_standard_erc721(web3, address)

    supported = (
        _call_supports_interface(contract, ERC165_INTERFACE_ID)
        and not _call_supports_interface(contract, INVALID_INTERFACE_ID)
        and _call_supports_interface(contract, L2_STANDARD_ERC721_INTERFACE_ID)
    )

    l1_token = None
    if supported:
        l1_token = Web3.to_checksum_address(contract.functions.l1Token().call())

    pairing = BridgedTokenPairing(
        l2_token=contract.address,
        supports_bridged_interface=supported,
        l1_token=l1_token,
    )
    logger.info("Fetched pairing %s", pairing)
    return pairing
