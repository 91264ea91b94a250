"""
Connection registry for the inspection queue.

Maps participant identity to status and transport address, and tracks the set
of moderator observers. Insertion order is join order; a re-join moves the
participant to the back.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from tools.logger import log_debug, log_info


class ParticipantStatus(str, Enum):
    WAITING = "waiting"
    INSPECTING = "inspecting"
    ADMITTED = "admitted"
    REMOVED = "removed"


ALLOWED_TRANSITIONS = {
    ParticipantStatus.WAITING: {ParticipantStatus.INSPECTING},
    ParticipantStatus.INSPECTING: {
        ParticipantStatus.ADMITTED,
        ParticipantStatus.REMOVED,
        ParticipantStatus.WAITING,
    },
    ParticipantStatus.ADMITTED: set(),
    ParticipantStatus.REMOVED: set(),
}

TERMINAL_STATUSES = {ParticipantStatus.ADMITTED, ParticipantStatus.REMOVED}


class RegistryChange(str, Enum):
    JOINED = "joined"
    STATUS = "status"
    LEFT = "left"
    MODERATOR_ADDED = "moderator_added"
    MODERATOR_REMOVED = "moderator_removed"


class InvalidTransitionError(Exception):
    """Raised when a status change does not follow an allowed edge."""

    def __init__(self, identity: str, current, requested):
        self.identity = identity
        self.current = current
        self.requested = requested
        super().__init__(
            f"Participant {identity} cannot move from {current.value} to {requested.value}"
        )


@dataclass
class Participant:
    identity: str
    display_name: str
    transport_address: str
    browser: str = ""
    os: str = ""
    device_type: str = ""
    status: ParticipantStatus = ParticipantStatus.WAITING
    inspected_by: Optional[str] = None
    joined_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "id": self.identity,
            "name": self.display_name,
            "browser": self.browser,
            "os": self.os,
            "device_type": self.device_type,
            "status": self.status.value,
        }


class ConnectionRegistry:
    """
    Owned, in-memory registry of participants and moderator observers.

    Every mutation notifies the registered change listeners synchronously with
    (change, subject) where subject is a Participant or a moderator address.
    """

    def __init__(self):
        self._participants: "OrderedDict[str, Participant]" = OrderedDict()
        self._moderators: Set[str] = set()
        self._listeners: List[Callable] = []

    def on_change(self, callback: Callable) -> None:
        """Register a listener called as callback(change, subject)."""
        self._listeners.append(callback)

    def _notify(self, change: RegistryChange, subject) -> None:
        for listener in self._listeners:
            listener(change, subject)

    def register(
        self,
        identity: str,
        display_name: str,
        transport_address: str,
        browser: str = "",
        os: str = "",
        device_type: str = "",
    ) -> Participant:
        """
        Insert or replace a participant with status=waiting.

        A re-join of an existing identity is a fresh join: the old record is
        dropped and the new one goes to the back of the queue.
        """
        previous = self._participants.pop(identity, None)
        if previous:
            log_info(
                f"Participant {identity} re-joined (was {previous.status.value}), moving to back of queue"
            )

        participant = Participant(
            identity=identity,
            display_name=display_name,
            transport_address=transport_address,
            browser=browser,
            os=os,
            device_type=device_type,
        )
        self._participants[identity] = participant
        log_info(f"Participant joined: {display_name} ({identity})")
        self._notify(RegistryChange.JOINED, participant)
        return participant

    def register_moderator(self, address: str) -> bool:
        """Add a moderator observer. Returns False if it was already present."""
        if address in self._moderators:
            log_debug(f"Moderator {address} already registered")
            return False
        self._moderators.add(address)
        log_info(f"Moderator connected: {address}")
        self._notify(RegistryChange.MODERATOR_ADDED, address)
        return True

    def unregister_moderator(self, address: str) -> bool:
        if address not in self._moderators:
            return False
        self._moderators.discard(address)
        log_info(f"Moderator disconnected: {address}")
        self._notify(RegistryChange.MODERATOR_REMOVED, address)
        return True

    def lookup(self, identity: str) -> Optional[Participant]:
        return self._participants.get(identity)

    def lookup_by_transport(self, address: str) -> Optional[Participant]:
        for participant in self._participants.values():
            if participant.transport_address == address:
                return participant
        return None

    def remove(self, identity: str) -> Optional[Participant]:
        participant = self._participants.pop(identity, None)
        if participant:
            log_info(f"Participant left: {participant.display_name} ({identity})")
            self._notify(RegistryChange.LEFT, participant)
        return participant

    def remove_by_transport(self, address: str) -> Optional[Participant]:
        """Remove the (at most one) participant bound to the address."""
        participant = self.lookup_by_transport(address)
        if participant is None:
            return None
        return self.remove(participant.identity)

    def update_status(
        self,
        identity: str,
        status: ParticipantStatus,
        inspected_by: Optional[str] = None,
    ) -> Optional[Participant]:
        """
        Move a participant along an allowed status edge.

        Returns None when the identity is absent. Raises InvalidTransitionError
        when the edge is not allowed.
        """
        participant = self._participants.get(identity)
        if participant is None:
            return None

        if status not in ALLOWED_TRANSITIONS[participant.status]:
            raise InvalidTransitionError(identity, participant.status, status)

        previous = participant.status
        participant.status = status
        participant.inspected_by = (
            inspected_by if status == ParticipantStatus.INSPECTING else None
        )
        log_debug(f"Participant {identity} status: {previous.value} -> {status.value}")
        self._notify(RegistryChange.STATUS, participant)
        return participant

    def participants(self) -> List[Participant]:
        """All participants in join order."""
        return list(self._participants.values())

    def held_by(self, moderator_address: str) -> List[Participant]:
        """Participants currently inspected by the given moderator."""
        return [
            participant
            for participant in self._participants.values()
            if participant.status == ParticipantStatus.INSPECTING
            and participant.inspected_by == moderator_address
        ]

    @property
    def moderators(self) -> Set[str]:
        return set(self._moderators)

    def counts(self) -> Dict[str, int]:
        return {
            "participants": len(self._participants),
            "moderators": len(self._moderators),
        }

    def clear(self) -> None:
        """Drop every record and listener (application teardown)."""
        self._participants.clear()
        self._moderators.clear()
        self._listeners.clear()
        log_info("Connection registry cleared")
