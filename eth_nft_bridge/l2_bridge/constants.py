"""L2 ERC-721 bridge constants.

Function and event signatures used on the wire between the L2 bridge
and its L1 counterpart.

The messages are plain Solidity calldata: the sending bridge encodes
a call to the receiving bridge and the cross-domain messenger relays it.

- `Optimism ERC-721 bridge <https://github.com/ethereum-optimism/optimism/tree/develop/packages/contracts-bedrock/src/L2>`__
- `ERC-165 <https://eips.ethereum.org/EIPS/eip-165>`__
- `ERC-721 <https://eips.ethereum.org/EIPS/eip-721>`__
"""

from eth_nft_bridge.abi import calculate_interface_id, get_function_selector_from_signature

#: L2 -> L1 message, called on the L1 bridge
FINALIZE_WITHDRAWAL_SIGNATURE = "finalizeERC721Withdrawal(address,address,address,address,uint256,bytes)"

#: L1 -> L2 message, called on the L2 bridge
FINALIZE_DEPOSIT_SIGNATURE = "finalizeDeposit(address,address,address,address,uint256,bytes)"

#: Functions declared by ``IL2StandardERC721`` itself.
#:
#: ERC-721 functions are inherited and thus not part of the interface id.
L2_STANDARD_ERC721_FUNCTIONS = (
    "l1Token()",
    "mint(address,uint256)",
    "burn(address,uint256)",
)

#: ``type(IL2StandardERC721).interfaceId``
L2_STANDARD_ERC721_INTERFACE_ID: bytes = calculate_interface_id(L2_STANDARD_ERC721_FUNCTIONS)

#: ``type(IERC165).interfaceId``
ERC165_INTERFACE_ID: bytes = get_function_selector_from_signature("supportsInterface(bytes4)")

#: ERC-165 says no contract may claim this
INVALID_INTERFACE_ID = b"\xff\xff\xff\xff"

#: ``type(IERC721).interfaceId``
ERC721_INTERFACE_ID: bytes = calculate_interface_id(
    (
        "balanceOf(address)",
        "ownerOf(uint256)",
        "safeTransferFrom(address,address,uint256,bytes)",
        "safeTransferFrom(address,address,uint256)",
        "transferFrom(address,address,uint256)",
        "approve(address,uint256)",
        "setApprovalForAll(address,bool)",
        "getApproved(uint256)",
        "isApprovedForAll(address,address)",
    )
)

#: Return value of ``IERC721Receiver.onERC721Received``
ERC721_RECEIVED_SELECTOR: bytes = get_function_selector_from_signature("onERC721Received(address,address,uint256,bytes)")

#: Gas limit value telling the messenger to use its own default.
#:
#: Used for bounce-back messages.
DEFAULT_GAS_HINT = 0

#: Default L1 gas the in-memory messenger reports for messages without a hint
DEFAULT_MESSENGER_GAS_LIMIT = 1_920_000
