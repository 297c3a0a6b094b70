"""ERC-721 token ledgers.

A small polymorphic token model for the bridge:

- :py:class:`Token` - anything living at an address, can answer ERC-165 queries

- :py:class:`PlainERC721` - ordinary ERC-721, not bridgeable

- :py:class:`BridgedToken` - ERC-721 whose mint and burn belong to the bridge
  and which knows its counterpart token on L1, see :py:class:`L2StandardERC721`

- :py:class:`MissingToken` - address without a token behind it

The ledger is the sole owner of item ownership. The bridge never holds items,
it only asks the ledger to burn and mint.

:py:class:`Domain` holds the tokens of one execution environment.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from eth_typing import HexAddress

from eth_nft_bridge.l2_bridge.constants import (
    ERC165_INTERFACE_ID,
    ERC721_INTERFACE_ID,
    INVALID_INTERFACE_ID,
    L2_STANDARD_ERC721_INTERFACE_ID,
)
from eth_nft_bridge.l2_bridge.errors import AuthorizationError, LedgerError
from eth_nft_bridge.l2_bridge.events import EventLog
from eth_nft_bridge.utils import UINT256_MAX, ZERO_ADDRESS, to_checksum

logger = logging.getLogger(__name__)


class Token(ABC):
    """Anything deployed at an address."""

    def __init__(self, address: HexAddress | str):
        self.address = to_checksum(address)

    def __repr__(self):
        return f"<{self.__class__.__name__} at {self.address}>"

    @abstractmethod
    def supports_interface(self, interface_id: bytes) -> bool:
        """ERC-165 ``supportsInterface(bytes4)``."""


class MissingToken(Token):
    """An address with no token code.

    Calls to ``supportsInterface()`` on such address fail,
    so ERC-165 checks report no support.
    """

    def supports_interface(self, interface_id: bytes) -> bool:
        return False


def _check_item_id(item_id: int):
    if type(item_id) != int or not (0 <= item_id <= UINT256_MAX):
        raise ValueError(f"item_id must fit uint256, got {item_id!r}")


class ERC721Ledger(Token):
    """Per-item ownership table with ERC-721 transfer rules."""

    def __init__(self, address: HexAddress | str, name: str, symbol: str):
        super().__init__(address)
        self.name = name
        self.symbol = symbol
        self._owners: dict[int, HexAddress] = {}
        self._balances: dict[HexAddress, int] = {}
        self._approvals: dict[int, HexAddress] = {}
        self._operators: set[tuple[HexAddress, HexAddress]] = set()

    def __repr__(self):
        return f"<{self.name} ({self.symbol}) {self.__class__.__name__} at {self.address}, {len(self._owners)} items>"

    def supports_interface(self, interface_id: bytes) -> bool:
        return interface_id in (ERC165_INTERFACE_ID, ERC721_INTERFACE_ID)

    def exists(self, item_id: int) -> bool:
        return item_id in self._owners

    def owner_of(self, item_id: int) -> HexAddress:
        """ERC-721 ``ownerOf()``.

        :raise LedgerError:
            Item does not exist
        """
        owner = self._owners.get(item_id)
        if owner is None:
            raise LedgerError(f"{self.symbol}: item {item_id} does not exist")
        return owner

    def balance_of(self, owner: HexAddress | str) -> int:
        return self._balances.get(to_checksum(owner), 0)

    def get_approved(self, item_id: int) -> HexAddress | None:
        return self._approvals.get(item_id)

    def is_approved_for_all(self, owner: HexAddress | str, operator: HexAddress | str) -> bool:
        return (to_checksum(owner), to_checksum(operator)) in self._operators

    def approve(self, caller: HexAddress | str, spender: HexAddress | str, item_id: int):
        caller = to_checksum(caller)
        owner = self.owner_of(item_id)
        if caller != owner and not self.is_approved_for_all(owner, caller):
            raise AuthorizationError(f"{self.symbol}: {caller} cannot approve item {item_id}")
        self._approvals[item_id] = to_checksum(spender)

    def set_approval_for_all(self, caller: HexAddress | str, operator: HexAddress | str, approved: bool):
        key = (to_checksum(caller), to_checksum(operator))
        if approved:
            self._operators.add(key)
        else:
            self._operators.discard(key)

    def _is_approved_or_owner(self, spender: HexAddress, item_id: int) -> bool:
        owner = self.owner_of(item_id)
        return spender == owner or self.get_approved(item_id) == spender or self.is_approved_for_all(owner, spender)

    def transfer_from(self, caller: HexAddress | str, from_: HexAddress | str, to: HexAddress | str, item_id: int):
        """ERC-721 ``transferFrom()``.

        :raise AuthorizationError:
            Caller is not owner or approved, or ``from_`` is not the owner
        """
        caller = to_checksum(caller)
        from_ = to_checksum(from_)
        to = to_checksum(to)

        if not self._is_approved_or_owner(caller, item_id):
            raise AuthorizationError(f"{self.symbol}: {caller} is not owner nor approved for item {item_id}")

        if self.owner_of(item_id) != from_:
            raise AuthorizationError(f"{self.symbol}: transfer of item {item_id} from incorrect owner {from_}")

        if to == ZERO_ADDRESS:
            raise ValueError(f"{self.symbol}: transfer to the zero address")

        self._remove(from_, item_id)
        self._add(to, item_id)

    def _add(self, to: HexAddress, item_id: int):
        _check_item_id(item_id)
        if item_id in self._owners:
            raise LedgerError(f"{self.symbol}: item {item_id} already minted")
        if to == ZERO_ADDRESS:
            raise ValueError(f"{self.symbol}: mint to the zero address")
        self._owners[item_id] = to
        self._balances[to] = self._balances.get(to, 0) + 1

    def _remove(self, owner: HexAddress, item_id: int):
        del self._owners[item_id]
        self._approvals.pop(item_id, None)
        self._balances[owner] -= 1


class PlainERC721(ERC721Ledger):
    """ERC-721 without the bridged token surface.

    The deployer can mint. Used for L1 tokens and
    to test that the bridge refuses non-bridged tokens.
    """

    def __init__(self, address: HexAddress | str, name: str, symbol: str, minter: HexAddress | str):
        super().__init__(address, name, symbol)
        self.minter = to_checksum(minter)

    def mint(self, caller: HexAddress | str, to: HexAddress | str, item_id: int):
        if to_checksum(caller) != self.minter:
            raise AuthorizationError(f"{self.symbol}: only {self.minter} can mint")
        self._add(to_checksum(to), item_id)


class BridgedToken(ERC721Ledger):
    """ERC-721 that can be minted and burnt by the bridge only.

    Knows its counterpart token on L1. Does not advertise
    the bridged token interface on its own, see :py:class:`L2StandardERC721`.
    """

    def __init__(self, address: HexAddress | str, name: str, symbol: str, bridge: HexAddress | str, l1_token: HexAddress | str):
        super().__init__(address, name, symbol)
        self.bridge = to_checksum(bridge)
        self._l1_token = to_checksum(l1_token)

    @property
    def l1_token(self) -> HexAddress:
        """Counterpart token on L1.

        Fixed at deployment.
        """
        return self._l1_token

    def _only_bridge(self, caller: HexAddress | str):
        if to_checksum(caller) != self.bridge:
            raise AuthorizationError(f"{self.symbol}: only bridge {self.bridge} can mint and burn, got {caller}")

    def mint(self, caller: HexAddress | str, to: HexAddress | str, item_id: int):
        """Mint a new item.

        :raise AuthorizationError:
            Caller is not the bridge

        :raise LedgerError:
            Item already has an owner
        """
        self._only_bridge(caller)
        to = to_checksum(to)
        self._add(to, item_id)
        logger.debug("%s: minted %d to %s", self.symbol, item_id, to)

    def burn(self, caller: HexAddress | str, from_: HexAddress | str, item_id: int):
        """Burn an item held by ``from_``.

        :raise AuthorizationError:
            Caller is not the bridge, or ``from_`` does not hold the item
        """
        self._only_bridge(caller)
        from_ = to_checksum(from_)
        _check_item_id(item_id)
        owner = self._owners.get(item_id)
        if owner != from_:
            raise AuthorizationError(f"{self.symbol}: {from_} does not own item {item_id}")
        self._remove(from_, item_id)
        logger.debug("%s: burnt %d from %s", self.symbol, item_id, from_)

    def restore(self, caller: HexAddress | str, to: HexAddress | str, item_id: int, approved: HexAddress | None = None):
        """Undo a burn whose withdrawal could not be sent.

        Mints the item back to its holder and puts back
        the per-item approval the burn cleared.

        :raise AuthorizationError:
            Caller is not the bridge
        """
        self.mint(caller, to, item_id)
        if approved is not None:
            self._approvals[item_id] = to_checksum(approved)


class L2StandardERC721(BridgedToken):
    """Standard L2 representation of an L1 ERC-721.

    Advertises :py:data:`~eth_nft_bridge.l2_bridge.constants.L2_STANDARD_ERC721_INTERFACE_ID`.
    """

    def supports_interface(self, interface_id: bytes) -> bool:
        return interface_id == L2_STANDARD_ERC721_INTERFACE_ID or super().supports_interface(interface_id)


def supports_erc165_interface(token: Token, interface_id: bytes) -> bool:
    """Check a token interface the way OpenZeppelin ``ERC165Checker`` does.

    - Token must claim ERC-165 itself

    - Token must deny ``0xffffffff``

    - Token must claim ``interface_id``

    The answer depends only on the token code, so repeated
    calls return the same result.
    """
    assert len(interface_id) == 4, f"Bad interface id: {interface_id!r}"
    return (
        token.supports_interface(ERC165_INTERFACE_ID)
        and not token.supports_interface(INVALID_INTERFACE_ID)
        and token.supports_interface(interface_id)
    )


@dataclass
class Domain:
    """One execution environment, L1 or L2.

    Holds deployed tokens and the event log of the domain.
    """

    #: Human readable name, e.g. ``optimism``
    name: str

    #: EVM chain id
    chain_id: int

    tokens: dict[HexAddress, Token] = field(default_factory=dict)

    events: EventLog = field(default_factory=EventLog)

    def __repr__(self):
        return f"<Domain {self.name} ({self.chain_id}), {len(self.tokens)} tokens>"

    def deploy(self, token: Token) -> Token:
        """Register a token at its address."""
        assert isinstance(token, Token), f"Not a token: {token}"
        if token.address in self.tokens:
            raise ValueError(f"Address {token.address} already has a token on {self.name}")
        self.tokens[token.address] = token
        logger.info("Deployed %s on %s", token, self.name)
        return token

    def get_token(self, address: HexAddress | str) -> Token:
        """Resolve a token by address.

        :return:
            :py:class:`MissingToken` if nothing is deployed there
        """
        address = to_checksum(address)
        return self.tokens.get(address) or MissingToken(address)
