"""Simulate an ERC-721 round trip through the L2 bridge.

Deposits an item from L1, withdraws it back, and then deposits
to a wrongly paired L2 token to show the bounce-back.

Example output::

    L1 owner after deposit: 0x4E4b... (L1 bridge escrow)
    L2 owner after relay: 0x9a1C... (alice)
    L1 owner after withdrawal: 0x9a1C... (alice)
    Deposit to wrong token bounced, L1 owner: 0x9a1C... (alice)

Run with ``LOG_LEVEL=info`` to see the bridge log lines.
"""

from eth_nft_bridge.l2_bridge.events import DepositFailed
from eth_nft_bridge.l2_bridge.testing import create_address, deploy_bridge_pair
from eth_nft_bridge.l2_bridge.token import L2StandardERC721
from eth_nft_bridge.utils import setup_console_logging

setup_console_logging(default_log_level="INFO")

pair = deploy_bridge_pair()
deployer = create_address()
alice = create_address()

l1_token, l2_token = pair.deploy_token_pair(deployer, "Simulated Punks", "SPUNK")
l1_token.mint(deployer, alice, 42)

# L1 -> L2
l1_token.approve(alice, pair.l1_bridge.address, 42)
pair.l1_bridge.deposit(alice, l1_token.address, l2_token.address, 42, l2_gas=200_000)
print(f"L1 owner after deposit: {l1_token.owner_of(42)} (L1 bridge escrow)")

pair.relay_to_l2()
print(f"L2 owner after relay: {l2_token.owner_of(42)} (alice)")

# L2 -> L1
receipt = pair.l2_bridge.withdraw(alice, l2_token.address, 42, l1_gas=200_000)
print(f"Withdrawal message hash: {receipt.message_hash.hex()}")
pair.relay_to_l1()
print(f"L1 owner after withdrawal: {l1_token.owner_of(42)} (alice)")

# Deposit to an L2 token paired with some other L1 token
wrong = L2StandardERC721(create_address(), "Wrong", "WRONG", bridge=pair.l2_bridge.address, l1_token=create_address())
pair.l2_domain.deploy(wrong)
l1_token.approve(alice, pair.l1_bridge.address, 42)
pair.l1_bridge.deposit(alice, l1_token.address, wrong.address, 42, l2_gas=200_000)
pair.relay_to_l2()
pair.relay_to_l1()

failed = pair.l2_domain.events.get_events(DepositFailed)
assert len(failed) == 1
print(f"Deposit to wrong token bounced, L1 owner: {l1_token.owner_of(42)} (alice)")
