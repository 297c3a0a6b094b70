"""Bridge error taxonomy.

- :py:class:`AuthorizationError` and :py:class:`TransportError` are fatal to the call

- :py:class:`CapabilityMismatchError` never escapes deposit finalization,
  it is turned into a bounce-back message
"""


class BridgeError(Exception):
    """Base class for all bridge errors."""


class AuthorizationError(BridgeError):
    """The caller or the message origin is not allowed to do this.

    - Withdrawing an item the caller does not own

    - Mint or burn from someone else than the token's bridge

    - Inbound message from an origin other than the trusted counterpart bridge
    """


class CapabilityMismatchError(BridgeError):
    """The local token cannot be credited for this deposit.

    Either the token does not implement the bridged token interface,
    or its counterpart token does not match the one in the message.
    """


class TransportError(BridgeError):
    """The cross-domain messenger did not accept the message."""


class LedgerError(BridgeError):
    """Token ledger rejected the operation for a non-authorization reason.

    E.g. minting an item that already has an owner.
    """


class MessageDecodeError(BridgeError, ValueError):
    """Inbound payload is not a well-formed bridge message."""
