"""
Queue coordinator.

Owns every participant status change. Each operation mutates the registry
synchronously before its first await, then issues its sends; registry change
notifications are coalesced into one queue:update broadcast per operation.
"""

from typing import List, Optional

from tools.logger import log_debug, log_info, log_warning
from tools.protocol import Topic
from .connection_registry import (
    ConnectionRegistry,
    InvalidTransitionError,
    Participant,
    ParticipantStatus,
    RegistryChange,
    TERMINAL_STATUSES,
)

PARTICIPANT_CHANGES = {RegistryChange.JOINED, RegistryChange.STATUS, RegistryChange.LEFT}


class QueueCoordinator:

    def __init__(self, registry: ConnectionRegistry, transport):
        self.registry = registry
        self.transport = transport
        self._dirty = False
        registry.on_change(self._on_registry_change)

    def _on_registry_change(self, change, subject) -> None:
        if change in PARTICIPANT_CHANGES:
            self._dirty = True

    async def _flush_broadcast(self) -> None:
        """Send one queue:update to every moderator if the registry changed."""
        if not self._dirty:
            return
        self._dirty = False
        snapshot = self.snapshot()
        for moderator in sorted(self.registry.moderators):
            await self.transport.send(moderator, Topic.QUEUE_UPDATE.value, snapshot)

    def snapshot(self) -> List[dict]:
        """Full ordered registry image, every status included."""
        return [participant.to_dict() for participant in self.registry.participants()]

    def waiting_snapshot(self) -> List[dict]:
        return [
            participant.to_dict()
            for participant in self.registry.participants()
            if participant.status == ParticipantStatus.WAITING
        ]

    def next_candidate(self) -> Optional[dict]:
        waiting = self.waiting_snapshot()
        return waiting[0] if waiting else None

    async def join(
        self,
        address: str,
        identity: str,
        display_name: str,
        browser: str = "",
        os: str = "",
        device_type: str = "",
    ) -> Participant:
        participant = self.registry.register(
            identity, display_name, address, browser, os, device_type
        )

        entry = participant.to_dict()
        for moderator in sorted(self.registry.moderators):
            await self.transport.send(moderator, Topic.PARTICIPANT_JOINED.value, entry)
        await self.transport.send(address, Topic.QUEUE_UPDATE.value, self.snapshot())
        await self._flush_broadcast()
        return participant

    async def connect_moderator(self, address: str) -> None:
        self.registry.register_moderator(address)
        await self.send_snapshot(address)

    async def send_snapshot(self, address: str) -> None:
        await self.transport.send(address, Topic.QUEUE_UPDATE.value, self.snapshot())

    async def start_inspection(self, moderator_address: str, identity: str) -> bool:
        participant = self.registry.lookup(identity)
        if participant is None:
            log_warning(f"Cannot start inspection, participant {identity} not found")
            return False

        if participant.status == ParticipantStatus.INSPECTING:
            if participant.inspected_by != moderator_address:
                log_warning(
                    f"Participant {identity} is already held by moderator {participant.inspected_by}"
                )
                return False
            log_debug(f"Repeated inspection start for {identity}, re-sending addresses")
        else:
            try:
                self.registry.update_status(
                    identity, ParticipantStatus.INSPECTING, inspected_by=moderator_address
                )
            except InvalidTransitionError as e:
                log_warning(f"Cannot start inspection: {e}")
                return False

        await self.transport.send(
            participant.transport_address,
            Topic.INSPECTION_STARTED.value,
            {"moderator_sid": moderator_address},
        )
        await self.transport.send(
            moderator_address,
            Topic.INSPECTION_READY.value,
            {"participant_sid": participant.transport_address},
        )
        log_info(f"Inspection started for: {participant.display_name}")
        await self._flush_broadcast()
        return True

    async def admit(self, moderator_address: str, identity: str) -> bool:
        return await self._conclude(
            moderator_address, identity, ParticipantStatus.ADMITTED, Topic.PARTICIPANT_ADMITTED
        )

    async def remove(self, moderator_address: str, identity: str) -> bool:
        return await self._conclude(
            moderator_address, identity, ParticipantStatus.REMOVED, Topic.PARTICIPANT_REMOVED
        )

    def _held_by_requester(self, participant: Participant, moderator_address: str) -> bool:
        if participant.inspected_by != moderator_address:
            log_warning(
                f"Moderator {moderator_address} does not hold the inspection of {participant.identity}"
            )
            return False
        return True

    async def _conclude(self, moderator_address, identity, status, topic) -> bool:
        """
        Apply a terminal status, then notify the participant, hand the next
        waiting candidate to the requesting moderator and broadcast.
        """
        participant = self.registry.lookup(identity)
        if participant is None:
            log_warning(f"Participant {identity} not found, ignoring {status.value}")
            return False
        if not self._held_by_requester(participant, moderator_address):
            return False

        try:
            self.registry.update_status(identity, status)
        except InvalidTransitionError as e:
            log_warning(f"Cannot conclude inspection: {e}")
            return False

        next_candidate = self.next_candidate()

        await self.transport.send(participant.transport_address, topic.value)
        log_info(f"Participant {status.value}: {participant.display_name}")
        await self.transport.send(moderator_address, Topic.QUEUE_NEXT.value, next_candidate)
        await self._flush_broadcast()
        return True

    async def cancel_inspection(self, moderator_address: str, identity: str) -> bool:
        participant = self.registry.lookup(identity)
        if participant is None:
            log_warning(f"Participant {identity} not found, ignoring cancel")
            return False
        if not self._held_by_requester(participant, moderator_address):
            return False

        try:
            self.registry.update_status(identity, ParticipantStatus.WAITING)
        except InvalidTransitionError as e:
            log_warning(f"Cannot cancel inspection: {e}")
            return False

        await self.transport.send(
            participant.transport_address, Topic.INSPECTION_CANCELLED.value
        )
        log_info(f"Inspection cancelled for: {participant.display_name}")
        await self._flush_broadcast()
        return True

    async def leave(self, address: str) -> bool:
        """Terminal-state acknowledgement from a participant's transport."""
        participant = self.registry.lookup_by_transport(address)
        if participant is None:
            log_debug(f"No participant bound to {address}, ignoring leave")
            return False
        if participant.status not in TERMINAL_STATUSES:
            log_warning(
                f"Participant {participant.identity} sent leave while {participant.status.value}"
            )
            return False

        self.registry.remove(participant.identity)
        await self._flush_broadcast()
        return True

    async def handle_disconnect(self, address: str) -> Optional[Participant]:
        """
        Purge everything bound to a closed transport.

        A departing moderator releases the participants it was inspecting back
        to waiting; a departing participant is removed whatever its status.
        """
        released = []
        if self.registry.unregister_moderator(address):
            for participant in self.registry.held_by(address):
                self.registry.update_status(participant.identity, ParticipantStatus.WAITING)
                released.append(participant)

        removed = self.registry.remove_by_transport(address)

        for participant in released:
            log_info(f"Moderator left, releasing {participant.display_name} back to the queue")
            await self.transport.send(
                participant.transport_address, Topic.INSPECTION_CANCELLED.value
            )
        await self._flush_broadcast()
        return removed
