"""Bridge simulation helpers.

Utilities for testing the L2 bridge without live chains:

1. Create two domains with linked :py:class:`~eth_nft_bridge.l2_bridge.messenger.InMemoryMessenger` instances
2. Deploy the L2 bridge and a minimal escrow :py:class:`L1ERC721Bridge` as its counterpart
3. Deploy token pairs, deposit and withdraw, relay messages in any order

Example::

    from eth_nft_bridge.l2_bridge.testing import deploy_bridge_pair

    pair = deploy_bridge_pair()
    l1_token, l2_token = pair.deploy_token_pair(deployer, "Punks", "PUNK")

    l1_token.mint(deployer, alice, 42)
    l1_token.approve(alice, pair.l1_bridge.address, 42)
    pair.l1_bridge.deposit(alice, l1_token.address, l2_token.address, 42, l2_gas=200_000)
    pair.relay_to_l2()

    assert l2_token.owner_of(42) == alice
"""

import logging
from dataclasses import dataclass

from eth_account import Account
from eth_typing import HexAddress

from eth_nft_bridge.l2_bridge.bridge import L2BridgeConfig, L2ERC721Bridge
from eth_nft_bridge.l2_bridge.errors import AuthorizationError, LedgerError, MessageDecodeError
from eth_nft_bridge.l2_bridge.messages import FinalizeDepositMessage, FinalizeWithdrawalMessage, decode_bridge_message
from eth_nft_bridge.l2_bridge.messenger import InMemoryMessenger, SentMessage, VerifiedOrigin
from eth_nft_bridge.l2_bridge.token import Domain, ERC721Ledger, L2StandardERC721, PlainERC721
from eth_nft_bridge.utils import ZERO_ADDRESS, to_checksum

logger = logging.getLogger(__name__)


#: Chain id used for the simulated L1
SIMULATED_L1_CHAIN_ID = 1

#: Chain id used for the simulated L2
SIMULATED_L2_CHAIN_ID = 10


def create_address() -> HexAddress:
    """Random address for a simulated contract or account."""
    return to_checksum(Account.create().address)


class L1ERC721Bridge:
    """Escrow half of the bridge, living on L1.

    - ``deposit()`` takes the item into escrow and sends
      :py:class:`FinalizeDepositMessage` to L2

    - Incoming :py:class:`FinalizeWithdrawalMessage` releases
      the escrowed item, both for withdrawals and bounce-backs
    """

    def __init__(self, domain: Domain, address: HexAddress | str, l2_bridge: HexAddress | str, messenger: InMemoryMessenger):
        self.domain = domain
        self.address = to_checksum(address)
        self.l2_bridge = to_checksum(l2_bridge)
        self.messenger = messenger

        #: (l1 token, l2 token, item id) -> escrowed
        self.deposits: dict[tuple[HexAddress, HexAddress, int], bool] = {}

    def __repr__(self):
        return f"<L1ERC721Bridge at {self.address}, {len(self.deposits)} escrowed>"

    def _get_ledger(self, l1_token: HexAddress) -> ERC721Ledger:
        token = self.domain.get_token(l1_token)
        if not isinstance(token, ERC721Ledger):
            raise LedgerError(f"No ERC-721 at {l1_token} on {self.domain.name}")
        return token

    def deposit(
        self,
        caller: HexAddress | str,
        l1_token: HexAddress | str,
        l2_token: HexAddress | str,
        item_id: int,
        l2_gas: int,
        data: bytes = b"",
    ) -> SentMessage:
        return self.deposit_to(caller, l1_token, l2_token, caller, item_id, l2_gas, data)

    def deposit_to(
        self,
        caller: HexAddress | str,
        l1_token: HexAddress | str,
        l2_token: HexAddress | str,
        to: HexAddress | str,
        item_id: int,
        l2_gas: int,
        data: bytes = b"",
    ) -> SentMessage:
        """Escrow an L1 item and ask L2 to mint it.

        The bridge must be approved for the item.

        :param l2_token:
            Claimed L2 counterpart. Not checked on L1,
            a wrong token makes the L2 bridge bounce the deposit.
        """
        caller = to_checksum(caller)
        to = to_checksum(to)
        if to == ZERO_ADDRESS:
            raise ValueError("Cannot deposit to the zero address")

        message = FinalizeDepositMessage(
            l1_token=l1_token,
            l2_token=l2_token,
            from_=caller,
            to=to,
            item_id=item_id,
            data=data,
        )

        ledger = self._get_ledger(message.l1_token)
        ledger.transfer_from(self.address, caller, self.address, item_id)
        self.deposits[(message.l1_token, message.l2_token, item_id)] = True

        logger.info("L1 deposit: %s #%d from %s to %s", ledger.symbol, item_id, caller, to)
        return self.messenger.send_message(self.address, self.l2_bridge, message.encode(), l2_gas)

    def receive_message(self, origin: VerifiedOrigin, message: bytes):
        """Release an escrowed item to the receiver of a withdrawal."""
        if not isinstance(origin, VerifiedOrigin) or origin.messenger is not self.messenger or origin.sender != self.l2_bridge:
            raise AuthorizationError(f"L1 bridge only accepts messages from {self.l2_bridge}, got {origin}")

        decoded = decode_bridge_message(message)
        if not isinstance(decoded, FinalizeWithdrawalMessage):
            raise MessageDecodeError(f"L1 bridge only accepts withdrawals, got {decoded.__class__.__name__}")

        key = (decoded.l1_token, decoded.l2_token, decoded.item_id)
        if not self.deposits.get(key):
            raise LedgerError(f"Item {decoded.item_id} of {decoded.l1_token} was not deposited to {decoded.l2_token}")

        del self.deposits[key]
        ledger = self._get_ledger(decoded.l1_token)
        ledger.transfer_from(self.address, self.address, decoded.to, decoded.item_id)
        logger.info("L1 release: %s #%d to %s", ledger.symbol, decoded.item_id, decoded.to)


@dataclass
class BridgePairDeployment:
    """Both halves of a simulated bridge."""

    l1_domain: Domain

    l2_domain: Domain

    l1_messenger: InMemoryMessenger

    l2_messenger: InMemoryMessenger

    l1_bridge: L1ERC721Bridge

    l2_bridge: L2ERC721Bridge

    def deploy_token_pair(self, deployer: HexAddress | str, name: str, symbol: str) -> tuple[PlainERC721, L2StandardERC721]:
        """Deploy an L1 token and its standard L2 representation."""
        l1_token = PlainERC721(create_address(), name, symbol, minter=deployer)
        l2_token = L2StandardERC721(
            create_address(),
            f"L2 {name}",
            symbol,
            bridge=self.l2_bridge.address,
            l1_token=l1_token.address,
        )
        self.l1_domain.deploy(l1_token)
        self.l2_domain.deploy(l2_token)
        return l1_token, l2_token

    def relay_to_l2(self, reverse=False) -> list[SentMessage]:
        """Deliver everything pending on L2."""
        return self.l2_messenger.relay_all(reverse=reverse)

    def relay_to_l1(self, reverse=False) -> list[SentMessage]:
        """Deliver everything pending on L1."""
        return self.l1_messenger.relay_all(reverse=reverse)

    def count_outstanding(self, l1_token: ERC721Ledger, l2_token: ERC721Ledger, item_id: int) -> int:
        """How many usable instances of an item exist across both domains.

        Escrowed items on L1 do not count.
        """
        count = 0
        if l1_token.exists(item_id) and l1_token.owner_of(item_id) != self.l1_bridge.address:
            count += 1
        if l2_token.exists(item_id):
            count += 1
        return count


def deploy_bridge_pair(
    l1_chain_id: int = SIMULATED_L1_CHAIN_ID,
    l2_chain_id: int = SIMULATED_L2_CHAIN_ID,
) -> BridgePairDeployment:
    """Wire up two domains, their messengers and both bridges."""
    l1_domain = Domain("l1", l1_chain_id)
    l2_domain = Domain("l2", l2_chain_id)

    l1_messenger = InMemoryMessenger("l1")
    l2_messenger = InMemoryMessenger("l2")
    l1_messenger.link(l2_messenger)

    l1_bridge_address = create_address()
    l2_bridge_address = create_address()

    config = L2BridgeConfig(
        address=l2_bridge_address,
        l1_bridge=l1_bridge_address,
        messenger=l2_messenger,
    )
    l2_bridge = L2ERC721Bridge(l2_domain, config)
    l1_bridge = L1ERC721Bridge(l1_domain, l1_bridge_address, l2_bridge_address, l1_messenger)

    l2_messenger.register_receiver(l2_bridge_address, l2_bridge)
    l1_messenger.register_receiver(l1_bridge_address, l1_bridge)

    logger.info("Deployed bridge pair: %s <-> %s", l1_bridge, l2_bridge)

    return BridgePairDeployment(
        l1_domain=l1_domain,
        l2_domain=l2_domain,
        l1_messenger=l1_messenger,
        l2_messenger=l2_messenger,
        l1_bridge=l1_bridge,
        l2_bridge=l2_bridge,
    )
