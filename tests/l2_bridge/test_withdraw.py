"""Withdrawal initiation on L2."""

import pytest

from eth_nft_bridge.l2_bridge.bridge import L2BridgeConfig, L2ERC721Bridge
from eth_nft_bridge.l2_bridge.constants import DEFAULT_MESSENGER_GAS_LIMIT
from eth_nft_bridge.l2_bridge.errors import AuthorizationError, CapabilityMismatchError, TransportError
from eth_nft_bridge.l2_bridge.events import WithdrawalInitiated
from eth_nft_bridge.l2_bridge.messages import FinalizeWithdrawalMessage, decode_bridge_message, get_message_hash
from eth_nft_bridge.l2_bridge.messenger import CrossDomainMessenger, SentMessage
from eth_nft_bridge.l2_bridge.testing import create_address
from eth_nft_bridge.l2_bridge.token import PlainERC721
from eth_nft_bridge.utils import ZERO_ADDRESS


def test_withdraw(pair, l2_bridge, l1_token, l2_token, alice, alice_item):
    """Alice withdraws item 42 to herself."""
    receipt = l2_bridge.withdraw(alice, l2_token.address, alice_item, 200_000, b"")

    # Burnt on L2
    assert not l2_token.exists(42)
    assert l2_token.balance_of(alice) == 0

    events = pair.l2_domain.events.get_events(WithdrawalInitiated)
    assert events == [
        WithdrawalInitiated(
            l1_token=l1_token.address,
            l2_token=l2_token.address,
            from_=alice,
            to=alice,
            item_id=42,
            data=b"",
        )
    ]

    # Waiting for relay on L1
    assert len(pair.l1_messenger.inbox) == 1
    sent = pair.l1_messenger.inbox[0]
    assert sent.sender == l2_bridge.address
    assert sent.target == pair.l1_bridge.address
    assert sent.gas_limit == 200_000
    assert decode_bridge_message(sent.message) == FinalizeWithdrawalMessage(
        l1_token=l1_token.address,
        l2_token=l2_token.address,
        from_=alice,
        to=alice,
        item_id=42,
        data=b"",
    )

    assert receipt.payload == sent.message
    assert receipt.message_hash == get_message_hash(sent.message)
    assert receipt.target == pair.l1_bridge.address
    assert receipt.message.item_id == 42


def test_withdraw_to(pair, l2_bridge, l2_token, alice, bob, alice_item):
    """Alice withdraws to Bob's L1 account with extra data."""
    receipt = l2_bridge.withdraw_to(alice, l2_token.address, bob, alice_item, 100_000, b"\x01\x02")

    message = decode_bridge_message(receipt.payload)
    assert message.from_ == alice
    assert message.to == bob
    assert message.data == b"\x01\x02"

    event = pair.l2_domain.events.get_events(WithdrawalInitiated)[0]
    assert event.from_ == alice
    assert event.to == bob


def test_withdraw_lowercase_addresses(pair, l2_bridge, l2_token, alice, alice_item):
    """Address spelling does not matter."""
    receipt = l2_bridge.withdraw(alice.lower(), l2_token.address.lower(), alice_item, 0)
    assert receipt.message.from_ == alice
    assert receipt.message.l2_token == l2_token.address


def test_withdraw_default_gas(pair, l2_bridge, l2_token, alice, alice_item):
    """Zero gas hint is left to the messenger."""
    receipt = l2_bridge.withdraw(alice, l2_token.address, alice_item, 0)
    assert receipt.gas_limit == DEFAULT_MESSENGER_GAS_LIMIT


def test_withdraw_not_owner(pair, l2_bridge, l2_token, bob, alice, alice_item):
    """Bob cannot withdraw Alice's item."""
    with pytest.raises(AuthorizationError):
        l2_bridge.withdraw(bob, l2_token.address, alice_item, 200_000)

    assert l2_token.owner_of(42) == alice
    assert pair.l1_messenger.inbox == []
    assert len(pair.l2_domain.events) == 0


def test_withdraw_non_existing_item(pair, l2_bridge, l2_token, alice):
    with pytest.raises(AuthorizationError):
        l2_bridge.withdraw(alice, l2_token.address, 999, 200_000)
    assert pair.l1_messenger.inbox == []


def test_withdraw_non_bridged_token(pair, l2_bridge, deployer, alice):
    """Plain ERC-721 cannot be withdrawn."""
    plain = PlainERC721(create_address(), "Plain", "PLN", minter=deployer)
    pair.l2_domain.deploy(plain)
    plain.mint(deployer, alice, 1)

    with pytest.raises(CapabilityMismatchError):
        l2_bridge.withdraw(alice, plain.address, 1, 200_000)

    assert plain.owner_of(1) == alice
    assert pair.l1_messenger.inbox == []


def test_withdraw_missing_token(pair, l2_bridge, alice):
    with pytest.raises(CapabilityMismatchError):
        l2_bridge.withdraw(alice, create_address(), 1, 200_000)


def test_withdraw_to_zero_address(pair, l2_bridge, l2_token, alice, alice_item):
    with pytest.raises(ValueError):
        l2_bridge.withdraw_to(alice, l2_token.address, ZERO_ADDRESS, alice_item, 200_000)
    assert l2_token.owner_of(42) == alice


@pytest.mark.parametrize("l1_gas", [-1, 2**32, "200000"])
def test_withdraw_bad_gas(pair, l2_bridge, l2_token, alice, alice_item, l1_gas):
    with pytest.raises(ValueError):
        l2_bridge.withdraw(alice, l2_token.address, alice_item, l1_gas)
    assert l2_token.owner_of(42) == alice


def test_withdraw_transport_failure(pair, l2_bridge, l2_token, alice, alice_item):
    """Messenger refuses: the whole call fails, item is still Alice's."""
    pair.l2_messenger.pause()

    with pytest.raises(TransportError):
        l2_bridge.withdraw(alice, l2_token.address, alice_item, 200_000)

    assert l2_token.owner_of(42) == alice
    assert pair.l1_messenger.inbox == []
    assert len(pair.l2_domain.events) == 0

    # Works again when the transport is back
    pair.l2_messenger.unpause()
    l2_bridge.withdraw(alice, l2_token.address, alice_item, 200_000)
    assert not l2_token.exists(42)


class RecordingMessenger(CrossDomainMessenger):
    """Checks the ledger state at the moment a message is sent."""

    def __init__(self, check):
        self.check = check
        self.observed = []

    def send_message(self, sender, target, message, gas_limit) -> SentMessage:
        self.observed.append(self.check())
        return SentMessage(
            nonce=len(self.observed),
            sender=sender,
            target=target,
            message=message,
            gas_limit=gas_limit,
            message_hash=get_message_hash(message),
        )


def test_burn_before_send(pair, l2_token, alice, alice_item):
    """The withdrawal message is never observable while the item still exists."""
    messenger = RecordingMessenger(lambda: l2_token.exists(42))
    config = L2BridgeConfig(
        address=l2_token.bridge,
        l1_bridge=pair.l1_bridge.address,
        messenger=messenger,
    )
    bridge = L2ERC721Bridge(pair.l2_domain, config)

    bridge.withdraw(alice, l2_token.address, alice_item, 200_000)
    assert messenger.observed == [False]


def test_withdraw_twice(pair, l2_bridge, l2_token, alice, alice_item):
    """Second withdrawal of the same item fails, the item is gone."""
    l2_bridge.withdraw(alice, l2_token.address, alice_item, 200_000)
    with pytest.raises(AuthorizationError):
        l2_bridge.withdraw(alice, l2_token.address, alice_item, 200_000)
    assert len(pair.l1_messenger.inbox) == 1


def test_event_listener(pair, l2_bridge, l2_token, alice, alice_item):
    """Relayers can follow withdrawals as they happen."""
    seen = []
    pair.l2_domain.events.subscribe(seen.append)

    receipt = l2_bridge.withdraw(alice, l2_token.address, alice_item, 200_000)

    assert len(seen) == 1
    assert isinstance(seen[0], WithdrawalInitiated)
    assert seen[0].item_id == receipt.message.item_id


def test_failing_listener_does_not_fail_withdraw(pair, l2_bridge, l2_token, alice, alice_item, caplog):
    """A broken listener is logged, the withdrawal still goes through once."""

    def broken_listener(event):
        raise RuntimeError("Indexer down")

    pair.l2_domain.events.subscribe(broken_listener)

    receipt = l2_bridge.withdraw(alice, l2_token.address, alice_item, 200_000)

    assert not l2_token.exists(42)
    assert pair.l1_messenger.inbox == [receipt.sent]
    assert len(pair.l2_domain.events.get_events(WithdrawalInitiated)) == 1
    assert "Indexer down" in caplog.text


def test_transport_failure_keeps_approval(pair, l2_bridge, l2_token, alice, bob, alice_item):
    """Rolled back withdrawal leaves the per-item approval in place."""
    l2_token.approve(alice, bob, alice_item)
    pair.l2_messenger.pause()

    with pytest.raises(TransportError):
        l2_bridge.withdraw(alice, l2_token.address, alice_item, 200_000)

    assert l2_token.owner_of(alice_item) == alice
    assert l2_token.get_approved(alice_item) == bob
