"""ABI loading and encoding helpers.

Provides functions to load the bundled ABI files and construct :py:class:`web3.contract.Contract` types.
The results are cached for the speedup.

We also provide helper functions to deal with ABI encode/decode of cross-domain
bridge messages without a live chain connection:

- :py:func:`encode_with_signature` mimics Solidity ``abi.encodeWithSignature()``

- :py:func:`decode_with_signature` is its inverse

- :py:func:`calculate_interface_id` computes ERC-165 ``type(I).interfaceId``

`See bundled ABI files <https://github.com/tradingstrategy-ai/web3-ethereum-defi/tree/master/eth_defi/abi>`_
for the format, which follows Etherscan copy-pasted ABI or solc artifacts.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Sequence, Type, Union

import eth_abi
from eth_abi.exceptions import DecodingError
from eth_typing import HexAddress
from eth_utils import function_abi_to_4byte_selector
from eth_utils.abi import event_abi_to_log_topic
from hexbytes import HexBytes
from web3 import Web3
from web3.contract.contract import Contract

# How big are our ABI and contract caches
_CACHE_SIZE = 512

#: Length of the Solidity function selector in bytes
SELECTOR_LENGTH = 4


@lru_cache(maxsize=_CACHE_SIZE)
def get_abi_by_filename(fname: str) -> dict | list:
    """Reads a embedded ABI file and returns it.

    Example::

        abi = get_abi_by_filename("IL2StandardERC721.json")

    Loaded ABI files are cache in in-process memory to speed up future loading.

    :param fname:
        JSON filename relative to ``eth_nft_bridge/abi``.

    :return:
        Full contract interface.
        Either a list (Etherscan format) or a dict with ``abi`` key (solc artifact).
    """

    here = Path(__file__).resolve().parent
    abi_path = here / "abi" / Path(fname)
    with open(abi_path, "rt", encoding="utf-8") as f:
        abi = json.load(f)
    return abi


def get_abi_entries(fname: str) -> list[dict]:
    """Get the list of ABI entries from a bundled file, whatever its format."""
    contract_interface = get_abi_by_filename(fname)
    if type(contract_interface) == list:
        # Etherscan
        return contract_interface
    # Solc output
    return contract_interface["abi"]


@lru_cache(maxsize=_CACHE_SIZE)
def get_contract(
    web3: Web3,
    fname: str | Path,
) -> Type[Contract]:
    """Get Contract proxy class from ABI JSON file.

    Any results are cached. Web3 connection is part of the cache key.

    Example:

    .. code-block:: python

        IL2StandardERC721 = get_contract(web3, "IL2StandardERC721.json")

    :param web3:
        Web3 instance

    :param fname:
        JSON filename relative to ``eth_nft_bridge/abi``.

    :return:
        Contract proxy class
    """
    abi = get_abi_entries(str(fname))
    Contract = web3.eth.contract(abi=abi)
    return Contract


def get_deployed_contract(
    web3: Web3,
    fname: str | Path,
    address: Union[HexAddress, str],
) -> Contract:
    """Get a Contract proxy object for a contract deployed at a specific address.

    :param web3:
        Web3 instance

    :param fname:
        JSON filename relative to ``eth_nft_bridge/abi``.

    :param address:
        Ethereum address of the deployed contract

    :return:
        `web3.contract.Contract` proxy
    """
    assert isinstance(web3, Web3), f"Got {type(web3)} instead of Web3"
    assert address, f"get_deployed_contract() address was None"

    address = Web3.to_checksum_address(address)

    Contract = get_contract(web3, fname)
    return Contract(address)


def _get_argument_types(function_signature: str) -> list[str]:
    selector_text = function_signature[function_signature.find("(") + 1 : function_signature.rfind(")")]
    if not selector_text:
        return []
    return selector_text.split(",")


def get_function_selector_from_signature(function_signature: str) -> bytes:
    """Get Solidity function selector for a human-readable signature.

    Example:

    .. code-block:: python

        selector = get_function_selector_from_signature("supportsInterface(bytes4)")
        assert selector.hex() == "01ffc9a7"

    :param function_signature:
        Canonical signature, no spaces, e.g. ``transfer(address,uint256)``

    :return:
        First 32-bit (4 bytes) keccak hash.
    """
    assert " " not in function_signature, f"Signature must be in canonical form: {function_signature}"
    return bytes(Web3.keccak(text=function_signature)[0:SELECTOR_LENGTH])


def encode_with_signature(function_signature: str, args: Sequence) -> bytes:
    """Mimic Solidity's abi.encodeWithSignature() in Python.

    This is a Python equivalent for `abi.encodeWithSignature()`.

    Example:

    .. code-block:: python

            payload = encode_with_signature("init(address)", [my_address])
            assert type(payload) == bytes

    :param function_signature:
        Solidity function signature that can be hashed to a selector.

        ABI fill be extractd from this signature.

    :param args:
        Argument values to be encoded.
    """

    assert type(args) in (tuple, list)

    function_selector = get_function_selector_from_signature(function_signature)
    arg_types = _get_argument_types(function_signature)
    encoded_args = eth_abi.encode(arg_types, args)
    return function_selector + encoded_args


def decode_with_signature(function_signature: str, payload: bytes) -> tuple:
    """Decode calldata created with :py:func:`encode_with_signature`.

    :param function_signature:
        The expected Solidity function signature.

    :param payload:
        Selector + ABI encoded arguments.

    :return:
        Decoded argument values, in the signature order.

    :raise ValueError:
        If the payload is for some other function or cannot be decoded.
    """
    payload = bytes(payload)

    if len(payload) < SELECTOR_LENGTH:
        raise ValueError(f"Payload too short to contain a function selector: {payload.hex()}")

    expected = get_function_selector_from_signature(function_signature)
    selector = payload[0:SELECTOR_LENGTH]
    if selector != expected:
        raise ValueError(f"Selector mismatch for {function_signature}: expected {expected.hex()}, got {selector.hex()}")

    arg_types = _get_argument_types(function_signature)
    try:
        return eth_abi.decode(arg_types, payload[SELECTOR_LENGTH:])
    except DecodingError as e:
        raise ValueError(f"Could not decode arguments for {function_signature}") from e


def calculate_interface_id(function_signatures: Iterable[str]) -> bytes:
    """Calculate ERC-165 interface id.

    Solidity ``type(I).interfaceId`` is the XOR of all function selectors
    declared in the interface itself, not including inherited functions.

    - `ERC-165 <https://eips.ethereum.org/EIPS/eip-165>`__

    :param function_signatures:
        Canonical function signatures of the interface

    :return:
        4 bytes interface id
    """
    interface_id = 0
    for signature in function_signatures:
        interface_id ^= int.from_bytes(get_function_selector_from_signature(signature), "big")
    return interface_id.to_bytes(SELECTOR_LENGTH, "big")


def get_function_abi_by_name(abi: list[dict], function_name: str) -> dict | None:
    return next((a for a in abi if a.get("type") == "function" and a.get("name") == function_name), None)


def get_function_selector_by_name(abi: list[dict], function_name: str) -> bytes:
    """Get Solidity function selector from ABI description.

    Does not support multiple Solidity functions with the same name, but
    different arguments. On multiple functions use one first declared in ABI.
    """
    fn_abi = get_function_abi_by_name(abi, function_name)
    assert fn_abi, f"Could not find function {function_name} in ABI"
    return function_abi_to_4byte_selector(fn_abi)  # type: ignore


def get_event_topic_by_name(abi: list[dict], event_name: str) -> HexBytes:
    """Get topic signature for an event in ABI description.

    :return:
        32 bytes keccak of the event signature
    """
    event_abi = next((a for a in abi if a.get("type") == "event" and a.get("name") == event_name), None)
    assert event_abi, f"Could not find event {event_name} in ABI"
    return HexBytes(event_abi_to_log_topic(event_abi))  # type: ignore
