"""L2 side of the ERC-721 bridge.

- :py:mod:`eth_nft_bridge.l2_bridge.bridge` - the bridge endpoint

- :py:mod:`eth_nft_bridge.l2_bridge.messages` - wire format between the bridges

- :py:mod:`eth_nft_bridge.l2_bridge.testing` - simulate both domains in-process
"""
