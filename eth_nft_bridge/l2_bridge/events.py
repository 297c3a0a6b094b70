"""Bridge events.

Observable output of the bridge for off-chain indexers and relayers.
Events are not consumed by the bridge itself.

Each event carries the Solidity event signature the on-chain bridge uses,
so :py:attr:`BridgeEvent.topic` matches what a log filter would use.
"""

import logging
from dataclasses import dataclass
from typing import Callable, ClassVar, Type, TypeVar

from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BridgeEvent:
    """Common payload of all bridge events."""

    #: Solidity event signature
    event_signature: ClassVar[str]

    l1_token: HexAddress

    l2_token: HexAddress

    from_: HexAddress

    to: HexAddress

    item_id: int

    data: bytes

    @property
    def topic(self) -> HexBytes:
        """Log topic 0 of this event."""
        return HexBytes(Web3.keccak(text=self.event_signature))

    @property
    def name(self) -> str:
        return self.__class__.__name__


@dataclass(frozen=True, slots=True)
class WithdrawalInitiated(BridgeEvent):
    """Item was burnt on L2 and the finalize message sent to L1."""

    event_signature: ClassVar[str] = "WithdrawalInitiated(address,address,address,address,uint256,bytes)"


@dataclass(frozen=True, slots=True)
class DepositFinalized(BridgeEvent):
    """Item was minted on L2."""

    event_signature: ClassVar[str] = "DepositFinalized(address,address,address,address,uint256,bytes)"


@dataclass(frozen=True, slots=True)
class DepositFailed(BridgeEvent):
    """Deposit could not be finalized and was bounced back to L1.

    Arguments are in the original, non-swapped, order.
    """

    event_signature: ClassVar[str] = "DepositFailed(address,address,address,address,uint256,bytes)"


EventType = TypeVar("EventType", bound=BridgeEvent)

#: Event listener callback
EventListener = Callable[[BridgeEvent], None]


class EventLog:
    """Append-only event log of one domain.

    - Keeps all emitted events in order

    - Listeners get called synchronously on emit. A failing listener
      is logged and skipped, the emitting call still succeeds
    """

    def __init__(self):
        self._events: list[BridgeEvent] = []
        self._listeners: list[EventListener] = []

    def __len__(self):
        return len(self._events)

    def __repr__(self):
        return f"<EventLog with {len(self._events)} events>"

    def subscribe(self, listener: EventListener):
        """Add a callback for all future events."""
        assert callable(listener), f"Not callable: {listener}"
        self._listeners.append(listener)

    def emit(self, event: BridgeEvent):
        assert isinstance(event, BridgeEvent), f"Not an event: {event}"
        logger.debug("Event %s: %s", event.name, event)
        self._events.append(event)
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener %s failed on %s", listener, event.name)

    def get_events(self, event_type: Type[EventType] | None = None) -> list[EventType]:
        """Get emitted events.

        :param event_type:
            Only return events of this type.
            If not given, return all events.
        """
        if event_type is None:
            return list(self._events)
        return [e for e in self._events if isinstance(e, event_type)]
