"""Cross-domain bridge messages.

The two bridges talk to each other with Solidity calldata relayed
by the cross-domain messenger:

- L2 bridge sends :py:class:`FinalizeWithdrawalMessage` to the L1 bridge
  after burning the item

- L1 bridge sends :py:class:`FinalizeDepositMessage` to the L2 bridge
  after escrowing the item

Both share the argument layout ``(l1Token, l2Token, from, to, tokenId, data)``.

Example::

    message = FinalizeWithdrawalMessage(
        l1_token=l1_token,
        l2_token=l2_token,
        from_=alice,
        to=alice,
        item_id=42,
        data=b"",
    )
    payload = message.encode()
    assert decode_bridge_message(payload) == message
"""

from dataclasses import dataclass
from typing import ClassVar, Type

from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3

from eth_nft_bridge.abi import SELECTOR_LENGTH, decode_with_signature, encode_with_signature, get_function_selector_from_signature
from eth_nft_bridge.l2_bridge.constants import FINALIZE_DEPOSIT_SIGNATURE, FINALIZE_WITHDRAWAL_SIGNATURE
from eth_nft_bridge.l2_bridge.errors import MessageDecodeError
from eth_nft_bridge.utils import UINT256_MAX, to_checksum


@dataclass(frozen=True, slots=True)
class BridgeMessage:
    """Common layout of the finalize messages."""

    #: Solidity function this message calls on the receiving bridge
    signature: ClassVar[str]

    #: Token address on L1
    l1_token: HexAddress

    #: Token address on L2
    l2_token: HexAddress

    #: Item holder on the sending domain
    from_: HexAddress

    #: Item receiver on the receiving domain
    to: HexAddress

    #: ERC-721 token id
    item_id: int

    #: Opaque extra data, carried as is
    data: bytes = b""

    def __post_init__(self):
        # Frozen dataclass, so normalise through object.__setattr__
        for name in ("l1_token", "l2_token", "from_", "to"):
            object.__setattr__(self, name, to_checksum(getattr(self, name)))

        if type(self.item_id) != int or not (0 <= self.item_id <= UINT256_MAX):
            raise ValueError(f"item_id must fit uint256, got {self.item_id!r}")

        if not isinstance(self.data, (bytes, bytearray)):
            raise ValueError(f"data must be bytes, got {type(self.data)}")
        object.__setattr__(self, "data", bytes(self.data))

    @classmethod
    def get_selector(cls) -> bytes:
        return get_function_selector_from_signature(cls.signature)

    def as_args(self) -> tuple:
        """Arguments in the Solidity call order."""
        return (
            self.l1_token,
            self.l2_token,
            self.from_,
            self.to,
            self.item_id,
            self.data,
        )

    def encode(self) -> bytes:
        """Encode as calldata for the receiving bridge."""
        return encode_with_signature(self.signature, self.as_args())

    @classmethod
    def decode(cls, payload: bytes) -> "BridgeMessage":
        """Decode calldata created by :py:meth:`encode`.

        :raise MessageDecodeError:
            Wrong selector or garbage arguments
        """
        try:
            l1_token, l2_token, from_, to, item_id, data = decode_with_signature(cls.signature, payload)
        except ValueError as e:
            raise MessageDecodeError(f"Not a {cls.__name__} payload: {e}") from e

        return cls(
            l1_token=l1_token,
            l2_token=l2_token,
            from_=from_,
            to=to,
            item_id=item_id,
            data=data,
        )


@dataclass(frozen=True, slots=True)
class FinalizeWithdrawalMessage(BridgeMessage):
    """L2 -> L1: release the escrowed item on L1.

    Also used as the bounce-back for a deposit that could not be finalized.
    """

    signature: ClassVar[str] = FINALIZE_WITHDRAWAL_SIGNATURE


@dataclass(frozen=True, slots=True)
class FinalizeDepositMessage(BridgeMessage):
    """L1 -> L2: mint the item on L2."""

    signature: ClassVar[str] = FINALIZE_DEPOSIT_SIGNATURE

    def bounce(self) -> FinalizeWithdrawalMessage:
        """Create the reversing message for a deposit we cannot finalize.

        Same tokens, item and data, but ``from`` and ``to`` are swapped,
        so the L1 bridge returns the item to the original depositor.
        """
        return FinalizeWithdrawalMessage(
            l1_token=self.l1_token,
            l2_token=self.l2_token,
            from_=self.to,
            to=self.from_,
            item_id=self.item_id,
            data=self.data,
        )


#: Selector -> message class
MESSAGE_TYPES: dict[bytes, Type[BridgeMessage]] = {
    FinalizeWithdrawalMessage.get_selector(): FinalizeWithdrawalMessage,
    FinalizeDepositMessage.get_selector(): FinalizeDepositMessage,
}


def decode_bridge_message(payload: bytes) -> BridgeMessage:
    """Decode any bridge message by its function selector.

    :raise MessageDecodeError:
        Unknown selector or bad payload
    """
    payload = bytes(payload)
    selector = payload[0:SELECTOR_LENGTH]
    message_class = MESSAGE_TYPES.get(selector)
    if message_class is None:
        raise MessageDecodeError(f"Unknown bridge message selector: 0x{selector.hex()}")
    return message_class.decode(payload)


def get_message_hash(payload: bytes) -> HexBytes:
    """Identify an encoded message for relayers and receipts."""
    return HexBytes(Web3.keccak(payload))
