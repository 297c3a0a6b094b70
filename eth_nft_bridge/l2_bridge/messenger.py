"""Cross-domain messenger.

The messenger is the only asynchronous boundary of the bridge:

- ``send_message()`` queues a payload for the other domain and returns immediately

- The receiving side relays the payload to the target later, in any order,
  possibly more than once

- On relay the target gets a :py:class:`VerifiedOrigin` telling who sent the message.
  The bridge trusts this and nothing in the payload.

:py:class:`InMemoryMessenger` is an in-process transport used in tests
and simulations. Example::

    l1_messenger = InMemoryMessenger("ethereum")
    l2_messenger = InMemoryMessenger("optimism")
    l1_messenger.link(l2_messenger)

    l2_messenger.register_receiver(l2_bridge_address, l2_bridge)
    l1_messenger.send_message(l1_bridge_address, l2_bridge_address, payload, 0)

    # Deliver on the L2 side
    l2_messenger.relay_all()
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Protocol

from eth_typing import HexAddress
from hexbytes import HexBytes

from eth_nft_bridge.l2_bridge.constants import DEFAULT_MESSENGER_GAS_LIMIT
from eth_nft_bridge.l2_bridge.errors import TransportError
from eth_nft_bridge.l2_bridge.messages import get_message_hash
from eth_nft_bridge.utils import UINT32_MAX, to_checksum

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VerifiedOrigin:
    """Transport-verified sender of a relayed message.

    - Created only by a messenger when it relays a message

    - A distinct type from a plain address: message payload
      cannot claim to be a verified origin
    """

    #: Address that called ``send_message()`` on the other domain
    sender: HexAddress

    #: The messenger that relayed the message on this domain
    messenger: "CrossDomainMessenger" = field(compare=False, repr=False)


@dataclass(slots=True)
class SentMessage:
    """A message accepted by a messenger."""

    #: Sequence number on the sending messenger
    nonce: int

    sender: HexAddress

    target: HexAddress

    #: Encoded calldata
    message: bytes

    #: Gas limit on the destination, after the default was applied
    gas_limit: int

    #: Keccak of the calldata
    message_hash: HexBytes


class MessageReceiver(Protocol):
    """Anything that can take relayed messages."""

    def receive_message(self, origin: VerifiedOrigin, message: bytes): ...


class CrossDomainMessenger(ABC):
    """Authenticated, at-least-once message channel to the other domain."""

    @abstractmethod
    def send_message(
        self,
        sender: HexAddress,
        target: HexAddress,
        message: bytes,
        gas_limit: int,
    ) -> SentMessage:
        """Queue a message for the other domain.

        :param sender:
            Calling contract on this domain.
            Becomes :py:attr:`VerifiedOrigin.sender` on relay.

        :param target:
            Receiving contract on the other domain

        :param message:
            Opaque payload

        :param gas_limit:
            Gas for executing the message on the other domain.
            ``0`` means use the messenger default.

        :raise TransportError:
            Message was not accepted
        """


class InMemoryMessenger(CrossDomainMessenger):
    """In-process messenger for tests and simulations.

    - Two messengers are linked, one per domain

    - Sent messages land in the inbox of the linked messenger

    - Nothing is delivered until :py:meth:`relay_next` or :py:meth:`relay_all`
      is called on the receiving side
    """

    def __init__(self, name: str, default_gas_limit: int = DEFAULT_MESSENGER_GAS_LIMIT):
        self.name = name
        self.default_gas_limit = default_gas_limit
        self.counterpart: InMemoryMessenger | None = None
        self.receivers: dict[HexAddress, MessageReceiver] = {}

        #: Messages sent from this domain
        self.sent: list[SentMessage] = []

        #: Messages waiting to be relayed on this domain
        self.inbox: list[SentMessage] = []

        #: Messages relayed successfully on this domain
        self.relayed: list[SentMessage] = []

        #: Messages whose target raised on relay, can be replayed
        self.failed: list[SentMessage] = []

        self.paused = False
        self._nonce = 0

    def __repr__(self):
        return f"<InMemoryMessenger {self.name}, {len(self.inbox)} pending>"

    def link(self, other: "InMemoryMessenger"):
        """Pair this messenger with the messenger of the other domain."""
        assert isinstance(other, InMemoryMessenger)
        assert other is not self, "Cannot link messenger to itself"
        self.counterpart = other
        other.counterpart = self

    def register_receiver(self, address: HexAddress | str, receiver: MessageReceiver):
        """Make a contract on this domain reachable for relayed messages."""
        address = to_checksum(address)
        assert address not in self.receivers, f"Receiver already registered at {address}"
        self.receivers[address] = receiver

    def pause(self):
        """Simulate unreachable transport."""
        self.paused = True

    def unpause(self):
        self.paused = False

    def send_message(
        self,
        sender: HexAddress,
        target: HexAddress,
        message: bytes,
        gas_limit: int,
    ) -> SentMessage:
        if self.paused:
            raise TransportError(f"Messenger {self.name} is paused")

        if self.counterpart is None:
            raise TransportError(f"Messenger {self.name} is not linked to another domain")

        if type(gas_limit) != int or not (0 <= gas_limit <= UINT32_MAX):
            raise TransportError(f"Gas limit must fit uint32, got {gas_limit!r}")

        if gas_limit == 0:
            gas_limit = self.default_gas_limit

        message = bytes(message)
        sent = SentMessage(
            nonce=self._nonce,
            sender=to_checksum(sender),
            target=to_checksum(target),
            message=message,
            gas_limit=gas_limit,
            message_hash=get_message_hash(message),
        )
        self._nonce += 1

        self.sent.append(sent)
        self.counterpart.inbox.append(sent)

        logger.info(
            "Messenger %s queued message #%d %s -> %s, gas %d, hash %s",
            self.name,
            sent.nonce,
            sent.sender,
            sent.target,
            sent.gas_limit,
            sent.message_hash.hex(),
        )
        return sent

    def relay_next(self, index: int = 0) -> SentMessage:
        """Deliver one pending message.

        :param index:
            Which pending message to deliver.
            Anything else than ``0`` simulates reordering.

        :return:
            The delivered message
        """
        assert self.inbox, f"No pending messages on {self.name}"
        sent = self.inbox.pop(index)
        self._deliver(sent)
        return sent

    def relay_all(self, reverse=False) -> list[SentMessage]:
        """Deliver all pending messages.

        :param reverse:
            Deliver newest first
        """
        delivered = []
        while self.inbox:
            index = len(self.inbox) - 1 if reverse else 0
            delivered.append(self.relay_next(index))
        return delivered

    def replay(self, sent: SentMessage):
        """Deliver an already relayed or failed message again.

        At-least-once delivery means targets must tolerate this.
        """
        if sent in self.failed:
            self.failed.remove(sent)
        self._deliver(sent)

    def _deliver(self, sent: SentMessage):
        receiver = self.receivers.get(sent.target)
        if receiver is None:
            logger.warning("Messenger %s: no receiver at %s for message #%d", self.name, sent.target, sent.nonce)
            self.failed.append(sent)
            return

        origin = VerifiedOrigin(sender=sent.sender, messenger=self)

        try:
            receiver.receive_message(origin, sent.message)
        except Exception as e:
            # The relay itself succeeds, the message stays replayable
            logger.warning(
                "Messenger %s: message #%d to %s failed: %s",
                self.name,
                sent.nonce,
                sent.target,
                e,
                exc_info=True,
            )
            self.failed.append(sent)
            return

        self.relayed.append(sent)
