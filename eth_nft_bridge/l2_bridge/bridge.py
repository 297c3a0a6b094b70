"""L2 ERC-721 bridge endpoint.

Moves ERC-721 items between L1 and L2 without custody on L2:

- **Withdrawal**: burn the item on L2, then tell the L1 bridge to release
  the escrowed original with :py:class:`~eth_nft_bridge.l2_bridge.messages.FinalizeWithdrawalMessage`

- **Deposit**: the L1 bridge escrowed an item and sent
  :py:class:`~eth_nft_bridge.l2_bridge.messages.FinalizeDepositMessage`.
  If the local token checks out, mint. Otherwise bounce the item back to L1.

The bridge has no mutable state. Every effect is a function of the call
arguments, the token ledger state and the verified message origin.

Example of a withdrawal::

    config = L2BridgeConfig(
        address=l2_bridge_address,
        l1_bridge=l1_bridge_address,
        messenger=l2_messenger,
    )
    bridge = L2ERC721Bridge(l2_domain, config)

    receipt = bridge.withdraw(alice, l2_token.address, item_id=42, l1_gas=200_000)
    logger.info("Withdrawal message %s", receipt.message_hash.hex())

Deposits arrive through the messenger calling :py:meth:`L2ERC721Bridge.receive_message`.
"""

import enum
import logging
import os
from dataclasses import dataclass
from typing import Mapping

from eth_typing import HexAddress
from hexbytes import HexBytes

from eth_nft_bridge.l2_bridge.constants import DEFAULT_GAS_HINT, ERC721_RECEIVED_SELECTOR, L2_STANDARD_ERC721_INTERFACE_ID
from eth_nft_bridge.l2_bridge.errors import AuthorizationError, CapabilityMismatchError, MessageDecodeError, TransportError
from eth_nft_bridge.l2_bridge.events import DepositFailed, DepositFinalized, WithdrawalInitiated
from eth_nft_bridge.l2_bridge.messages import FinalizeDepositMessage, FinalizeWithdrawalMessage, decode_bridge_message
from eth_nft_bridge.l2_bridge.messenger import CrossDomainMessenger, SentMessage, VerifiedOrigin
from eth_nft_bridge.l2_bridge.token import BridgedToken, Domain, Token, supports_erc165_interface
from eth_nft_bridge.utils import UINT32_MAX, ZERO_ADDRESS, to_checksum

logger = logging.getLogger(__name__)


class DepositOutcome(enum.Enum):
    """What happened to a deposit message."""

    #: Item was minted on L2
    finalized = "finalized"

    #: Item was sent back to L1
    bounced = "bounced"


@dataclass(frozen=True, slots=True)
class L2BridgeConfig:
    """Deployment configuration of the L2 bridge.

    Immutable for the life of the deployment.
    """

    #: Address of this bridge on L2
    address: HexAddress

    #: The counterpart bridge on L1.
    #:
    #: The only origin whose messages can mint.
    l1_bridge: HexAddress

    #: Messenger to L1
    messenger: CrossDomainMessenger

    def __post_init__(self):
        object.__setattr__(self, "address", to_checksum(self.address))
        object.__setattr__(self, "l1_bridge", to_checksum(self.l1_bridge))
        assert isinstance(self.messenger, CrossDomainMessenger), f"Not a messenger: {self.messenger}"
        if self.l1_bridge == ZERO_ADDRESS:
            raise ValueError("L1 bridge cannot be the zero address")
        if self.address == self.l1_bridge:
            raise ValueError(f"L2 bridge and L1 bridge cannot share the address {self.address}")

    @classmethod
    def from_env(
        cls,
        messenger: CrossDomainMessenger,
        environ: Mapping[str, str] | None = None,
    ) -> "L2BridgeConfig":
        """Read bridge addresses from environment variables.

        - ``L2_BRIDGE_ADDRESS``: this bridge

        - ``L1_BRIDGE_ADDRESS``: the counterpart bridge

        :raise ValueError:
            Variable missing or not an address
        """
        if environ is None:
            environ = os.environ

        values = {}
        for name in ("L2_BRIDGE_ADDRESS", "L1_BRIDGE_ADDRESS"):
            value = environ.get(name)
            if not value:
                raise ValueError(f"Environment variable {name} is not set")
            values[name] = value

        return cls(
            address=values["L2_BRIDGE_ADDRESS"],
            l1_bridge=values["L1_BRIDGE_ADDRESS"],
            messenger=messenger,
        )


@dataclass(slots=True)
class WithdrawalReceipt:
    """Everything needed to resubmit a withdrawal message to L1.

    The item is already burnt when the receipt exists.
    If the messenger drops the message, an operator can send
    :py:attr:`payload` again to :py:attr:`target`.
    """

    message: FinalizeWithdrawalMessage

    #: Encoded calldata for the L1 bridge
    payload: bytes

    message_hash: HexBytes

    #: The L1 bridge
    target: HexAddress

    #: L1 gas limit the messenger applied
    gas_limit: int

    sent: SentMessage


class L2ERC721Bridge:
    """L2 side of the ERC-721 bridge."""

    def __init__(self, domain: Domain, config: L2BridgeConfig):
        assert isinstance(domain, Domain), f"Not a domain: {domain}"
        assert isinstance(config, L2BridgeConfig), f"Not a config: {config}"
        self._domain = domain
        self._config = config

    def __repr__(self):
        return f"<L2ERC721Bridge at {self.address} on {self._domain.name}, L1 bridge {self._config.l1_bridge}>"

    @property
    def config(self) -> L2BridgeConfig:
        return self._config

    @property
    def domain(self) -> Domain:
        return self._domain

    @property
    def address(self) -> HexAddress:
        return self._config.address

    def withdraw(
        self,
        caller: HexAddress | str,
        l2_token: HexAddress | str,
        item_id: int,
        l1_gas: int,
        data: bytes = b"",
    ) -> WithdrawalReceipt:
        """Withdraw an item to the caller's account on L1.

        :param caller:
            Holder of the item

        :param l2_token:
            Address of the bridged token on L2

        :param item_id:
            ERC-721 token id

        :param l1_gas:
            Gas for finalizing on L1. Passed to the messenger as is.

        :param data:
            Opaque data forwarded to L1

        :raise AuthorizationError:
            Caller does not hold the item
        """
        return self._initiate_withdrawal(caller, l2_token, caller, caller, item_id, l1_gas, data)

    def withdraw_to(
        self,
        caller: HexAddress | str,
        l2_token: HexAddress | str,
        to: HexAddress | str,
        item_id: int,
        l1_gas: int,
        data: bytes = b"",
    ) -> WithdrawalReceipt:
        """Withdraw an item to any account on L1.

        See :py:meth:`withdraw`.

        :param to:
            Receiver on L1
        """
        return self._initiate_withdrawal(caller, l2_token, caller, to, item_id, l1_gas, data)

    def _initiate_withdrawal(
        self,
        caller: HexAddress | str,
        l2_token: HexAddress | str,
        from_: HexAddress | str,
        to: HexAddress | str,
        item_id: int,
        l1_gas: int,
        data: bytes,
    ) -> WithdrawalReceipt:
        from_ = to_checksum(from_)
        to = to_checksum(to)
        assert to_checksum(caller) == from_, "Withdrawals are always from the caller"

        if to == ZERO_ADDRESS:
            raise ValueError("Cannot withdraw to the zero address")

        if type(l1_gas) != int or not (0 <= l1_gas <= UINT32_MAX):
            raise ValueError(f"l1_gas must fit uint32, got {l1_gas!r}")

        if not isinstance(data, (bytes, bytearray)):
            raise ValueError(f"data must be bytes, got {type(data)}")

        token = self._domain.get_token(l2_token)
        match token:
            case BridgedToken():
                pass
            case _:
                raise CapabilityMismatchError(f"Token {token.address} cannot be withdrawn through the bridge: {token}")

        approved = token.get_approved(item_id)

        # Burn before anything is announced,
        # so there is never a withdrawal message for an item that still exists
        token.burn(self.address, from_, item_id)

        # Counterpart comes from the token, never from the caller
        message = FinalizeWithdrawalMessage(
            l1_token=token.l1_token,
            l2_token=token.address,
            from_=from_,
            to=to,
            item_id=item_id,
            data=bytes(data),
        )
        payload = message.encode()

        try:
            sent = self._config.messenger.send_message(self.address, self._config.l1_bridge, payload, l1_gas)
        except TransportError:
            # Revert the burn: the call fails as a whole
            logger.warning("Messenger refused withdrawal of %s #%d, restoring the item to %s", token.symbol, item_id, from_)
            token.restore(self.address, from_, item_id, approved)
            raise

        self._domain.events.emit(
            WithdrawalInitiated(
                l1_token=message.l1_token,
                l2_token=message.l2_token,
                from_=message.from_,
                to=message.to,
                item_id=message.item_id,
                data=message.data,
            )
        )

        logger.info(
            "Withdrawal initiated: %s #%d from %s to %s on L1, message %s",
            token.symbol,
            item_id,
            from_,
            to,
            sent.message_hash.hex(),
        )

        return WithdrawalReceipt(
            message=message,
            payload=payload,
            message_hash=sent.message_hash,
            target=sent.target,
            gas_limit=sent.gas_limit,
            sent=sent,
        )

    def _require_counterpart_origin(self, origin: VerifiedOrigin):
        """Only the L1 bridge, through our messenger, can finalize deposits."""
        if not isinstance(origin, VerifiedOrigin):
            raise AuthorizationError(f"Deposit finalization needs a messenger verified origin, got {type(origin)}")

        if origin.messenger is not self._config.messenger:
            raise AuthorizationError(f"Message was not relayed by the bridge messenger: {origin.messenger}")

        if origin.sender != self._config.l1_bridge:
            raise AuthorizationError(f"Message origin {origin.sender} is not the L1 bridge {self._config.l1_bridge}")

    def receive_message(self, origin: VerifiedOrigin, message: bytes) -> DepositOutcome:
        """Messenger delivery hook.

        :raise AuthorizationError:
            Message is not from the L1 bridge

        :raise MessageDecodeError:
            Payload is not a deposit message
        """
        self._require_counterpart_origin(origin)

        decoded = decode_bridge_message(message)
        if not isinstance(decoded, FinalizeDepositMessage):
            raise MessageDecodeError(f"L2 bridge only accepts deposits, got {decoded.__class__.__name__}")

        return self._finalize(decoded)

    def finalize_deposit(
        self,
        origin: VerifiedOrigin,
        l1_token: HexAddress | str,
        l2_token: HexAddress | str,
        from_: HexAddress | str,
        to: HexAddress | str,
        item_id: int,
        data: bytes = b"",
    ) -> DepositOutcome:
        """Complete a deposit started on L1.

        Either mints exactly once or bounces exactly once.

        :param origin:
            Verified sender, as given by the messenger

        :raise AuthorizationError:
            Origin is not the L1 bridge. Nothing happens.

        :return:
            Whether the item was minted or sent back
        """
        self._require_counterpart_origin(origin)

        message = FinalizeDepositMessage(
            l1_token=l1_token,
            l2_token=l2_token,
            from_=from_,
            to=to,
            item_id=item_id,
            data=data,
        )
        return self._finalize(message)

    def _validate_deposit(self, token: Token, l1_token: HexAddress) -> BridgedToken:
        match token:
            case BridgedToken() if supports_erc165_interface(token, L2_STANDARD_ERC721_INTERFACE_ID):
                if token.l1_token != l1_token:
                    raise CapabilityMismatchError(f"Token {token.address} is paired with {token.l1_token}, deposit was for {l1_token}")
                return token
            case _:
                raise CapabilityMismatchError(f"Token {token.address} does not support the bridged token interface")

    def _finalize(self, message: FinalizeDepositMessage) -> DepositOutcome:
        token = self._domain.get_token(message.l2_token)

        try:
            token = self._validate_deposit(token, message.l1_token)
        except CapabilityMismatchError as e:
            return self._bounce(message, e)

        token.mint(self.address, message.to, message.item_id)

        self._domain.events.emit(
            DepositFinalized(
                l1_token=message.l1_token,
                l2_token=message.l2_token,
                from_=message.from_,
                to=message.to,
                item_id=message.item_id,
                data=message.data,
            )
        )

        logger.info(
            "Deposit finalized: %s #%d to %s",
            token.symbol,
            message.item_id,
            message.to,
        )
        return DepositOutcome.finalized

    def _bounce(self, message: FinalizeDepositMessage, reason: CapabilityMismatchError) -> DepositOutcome:
        logger.warning("Bouncing deposit of %s #%d back to %s: %s", message.l2_token, message.item_id, message.from_, reason)

        bounce = message.bounce()
        self._config.messenger.send_message(self.address, self._config.l1_bridge, bounce.encode(), DEFAULT_GAS_HINT)

        # Original argument order, for audit
        self._domain.events.emit(
            DepositFailed(
                l1_token=message.l1_token,
                l2_token=message.l2_token,
                from_=message.from_,
                to=message.to,
                item_id=message.item_id,
                data=message.data,
            )
        )
        return DepositOutcome.bounced

    def on_erc721_received(
        self,
        operator: HexAddress | str,
        from_: HexAddress | str,
        item_id: int,
        data: bytes = b"",
    ) -> bytes:
        """``IERC721Receiver.onERC721Received``.

        Makes the bridge a legal ``safeTransferFrom()`` target.
        Has no effect and is not an authorization gate for anything.
        """
        return ERC721_RECEIVED_SELECTOR
