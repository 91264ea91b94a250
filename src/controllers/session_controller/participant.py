"""
Participant lifecycle controller.

waiting -> inspecting (inspection:started) -> admitted | removed (terminal,
followed by a delayed teardown and a leave acknowledgement); inspecting ->
waiting on inspection:cancelled.
"""

import asyncio
from enum import Enum
from typing import Callable, List, Optional

from tools import config
from tools.contract_validation import (
    BooleanType,
    NonEmptyStringType,
    StringType,
    validate_contract_with_error_response,
)
from tools.logger import log_debug, log_error, log_info, log_warning
from tools.protocol import Topic
from tools.system_info import get_client_info
from use_cases.media_capture import AUDIO_INPUT, MediaAcquisitionError, MediaCapture
from controllers.webrtc_controller import (
    ConnectionPhase,
    PeerNegotiationEngine,
    SignalingPhase,
    TERMINAL_PHASES,
)
from controllers.webrtc_controller.signaling import initialize_signaling


class ParticipantState(Enum):
    WAITING = "waiting"
    INSPECTING = "inspecting"
    ADMITTED = "admitted"
    REMOVED = "removed"


INSPECTION_STARTED_CONTRACT = {"moderator_sid": NonEmptyStringType}

DEVICE_SUGGESTION_CONTRACT = {
    "from": NonEmptyStringType,
    "device_id": NonEmptyStringType,
    "device_label": StringType,
}

MUTE_REQUEST_CONTRACT = {
    "from": NonEmptyStringType,
    "mute": BooleanType,
}


class ParticipantSession:

    def __init__(
        self,
        signaling,
        identity: str,
        display_name: str,
        media: Optional[MediaCapture] = None,
        user_info: Optional[dict] = None,
        peer_connection_factory: Optional[Callable] = None,
        teardown_delay: float = None,
    ):
        self.signaling = signaling
        self.identity = identity
        self.display_name = display_name
        self.media = media or MediaCapture()
        self.user_info = user_info or get_client_info()
        self._peer_connection_factory = peer_connection_factory
        self.teardown_delay = config.TEARDOWN_DELAY_SECONDS if teardown_delay is None else teardown_delay

        self.state = ParticipantState.WAITING
        self.moderator_address: Optional[str] = None
        self.engine: Optional[PeerNegotiationEngine] = None
        self.media_error: Optional[MediaAcquisitionError] = None
        self.pending_suggestion: Optional[dict] = None
        self.queue_position: Optional[int] = None
        self._shared_with: Optional[str] = None
        self._teardown_task: Optional[asyncio.Task] = None
        self._listeners: List[Callable] = []

    def add_listener(self, callback: Callable) -> None:
        """Register callback(event_name, data) for the presentation layer."""
        self._listeners.append(callback)

    def _notify(self, event: str, **data) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, data)
            except Exception as e:
                log_error(f"Error in participant listener for {event}: {e}")

    def _set_state(self, state: ParticipantState) -> None:
        if state != self.state:
            log_info(f"Participant {self.identity}: {self.state.value} -> {state.value}")
            self.state = state
            self._notify("state", state=state)

    def _capture_media(self) -> list:
        """Start capture if needed; a failure is surfaced, never retried."""
        try:
            tracks = self.media.capture()
            self.media_error = None
            return tracks
        except MediaAcquisitionError as e:
            self.media_error = e
            self._notify("media_error", reason=e.reason, message=e.message)
            return []

    async def start(self) -> None:
        """Capture local media, take the device inventory and join the queue."""
        self._capture_media()
        self.media.refresh_devices()
        self._shared_with = None
        self._set_state(ParticipantState.WAITING)
        await self.signaling.join(self.identity, self.display_name, self.user_info)

    # Engine ownership

    def current_engine(self) -> Optional[PeerNegotiationEngine]:
        return self.engine

    def _new_engine(self) -> PeerNegotiationEngine:
        tracks = self._capture_media() if not self.media.is_live else list(self.media.tracks.values())
        engine = PeerNegotiationEngine(
            self.signaling,
            local_tracks=tracks,
            peer_connection_factory=self._peer_connection_factory,
        )
        engine.observe_connection_phase(self._on_connection_phase)
        self.engine = engine
        return engine

    async def engine_for_offer(self, from_address: str) -> Optional[PeerNegotiationEngine]:
        """
        The engine that should answer an offer. A new offer after a completed,
        abandoned or dead cycle starts a fresh pairing.
        """
        if self.state in (ParticipantState.ADMITTED, ParticipantState.REMOVED):
            log_warning(f"Ignoring offer from {from_address}, session is {self.state.value}")
            return None

        engine = self.engine
        if engine is not None and (
            engine.is_closed
            or engine.signaling_phase == SignalingPhase.STABLE
            or (engine.signaling_phase == SignalingPhase.HAVE_REMOTE_OFFER and not engine.offer_in_progress)
            or engine.connection_phase in TERMINAL_PHASES
        ):
            log_info(f"Starting a fresh negotiation cycle with {from_address}")
            await self._close_engine()
            engine = None
        return engine or self._new_engine()

    async def engine_for_candidate(self, from_address: str) -> Optional[PeerNegotiationEngine]:
        if self.state in (ParticipantState.ADMITTED, ParticipantState.REMOVED):
            return None
        if self.engine is None or self.engine.is_closed:
            return self._new_engine()
        return self.engine

    def _on_connection_phase(self, phase: ConnectionPhase) -> None:
        self._notify("connection", phase=phase)

    async def _close_engine(self) -> None:
        engine, self.engine = self.engine, None
        if engine is not None:
            await engine.close()

    async def teardown(self) -> None:
        """Stop local capture and close the pairing."""
        self.media.stop()
        await self._close_engine()

    # Lifecycle events

    async def on_inspection_started(self, moderator_address: str) -> None:
        self.moderator_address = moderator_address
        self._set_state(ParticipantState.INSPECTING)

        if self._shared_with == moderator_address:
            log_debug(f"Inventory already shared with {moderator_address}")
            return
        self._shared_with = moderator_address
        devices = [device.to_dict() for device in self.media.devices]
        await self.signaling.share_devices(moderator_address, devices)
        await self.signaling.send_participant_info(moderator_address, self.user_info)
        await self.signaling.send_mute_status(moderator_address, self.media.muted)
        log_info(f"Shared {len(devices)} device(s) with moderator {moderator_address}")

    def on_queue_update(self, snapshot: list) -> None:
        waiting = [entry["id"] for entry in snapshot if entry.get("status") == "waiting"]
        if self.identity in waiting:
            self.queue_position = waiting.index(self.identity) + 1
            log_debug(f"Queue position: {self.queue_position} of {len(waiting)}")
        else:
            self.queue_position = None
        self._notify("queue", position=self.queue_position, waiting=len(waiting))

    async def on_cancelled(self) -> None:
        self._set_state(ParticipantState.WAITING)
        self.pending_suggestion = None
        self._shared_with = None
        await self._close_engine()

    async def on_admitted(self) -> None:
        self._conclude(ParticipantState.ADMITTED)

    async def on_removed(self) -> None:
        self._conclude(ParticipantState.REMOVED)

    def _conclude(self, state: ParticipantState) -> None:
        self._set_state(state)
        self.pending_suggestion = None
        if self._teardown_task is None or self._teardown_task.done():
            self._teardown_task = asyncio.create_task(self._delayed_teardown())

    async def _delayed_teardown(self) -> None:
        """Leave time for final feedback, then release media and acknowledge."""
        await asyncio.sleep(self.teardown_delay)
        await self.teardown()
        await self.signaling.leave()
        self._notify("finished", state=self.state)

    # Mute

    async def set_muted(self, muted: bool) -> bool:
        muted = self.media.set_muted(muted)
        if self.state == ParticipantState.INSPECTING and self.moderator_address:
            await self.signaling.send_mute_status(self.moderator_address, muted)
        self._notify("mute", is_muted=muted)
        return muted

    async def toggle_mute(self) -> bool:
        return await self.set_muted(not self.media.muted)

    async def on_mute_request(self, from_address: str, mute: bool) -> None:
        log_info(f"Mute request from {from_address}: {mute}")
        muted = self.media.set_muted(mute)
        await self.signaling.send_mute_status(from_address, muted)
        self._notify("mute", is_muted=muted)

    # Device switching

    def on_device_suggestion(self, device_id: str, device_label: str) -> None:
        self.pending_suggestion = {"device_id": device_id, "device_label": device_label}
        self._notify("device_suggestion", **self.pending_suggestion)

    def decline_suggestion(self) -> None:
        self.pending_suggestion = None

    async def accept_suggestion(self) -> bool:
        suggestion, self.pending_suggestion = self.pending_suggestion, None
        if suggestion is None:
            return False
        return await self.switch_device(suggestion["device_id"])

    async def switch_device(self, device_id: str) -> bool:
        """
        Capture from another device and swap the outgoing track of that kind
        only; the other kind keeps flowing untouched.
        """
        device = self.media.find_device(device_id)
        if device is None:
            log_warning(f"Unknown device {device_id}, cannot switch")
            return False

        try:
            track = self.media.open_device(device.kind, device_id)
        except MediaAcquisitionError as e:
            log_error(f"Failed to switch device ({e.reason}): {e.message}")
            self._notify("media_error", reason=e.reason, message=e.message)
            return False

        media_kind = "audio" if device.kind == AUDIO_INPUT else "video"
        if self.engine is not None and not self.engine.is_closed:
            await self.engine.replace_outgoing_track(track, media_kind)
        self.media.replace_track(device.kind, track)
        log_info(f"Switched {media_kind} to {device.label}")
        self._notify("device", kind=device.kind, device_id=device_id)
        return True


def init(client, session: ParticipantSession):
    """
    Register the participant's lifecycle and signaling topics on the client.
    """
    initialize_signaling(client, session)

    log_info("Registering participant lifecycle topics")

    @client.on(Topic.CONNECT.value)
    async def on_connect():
        log_info("Connected to coordinator, joining queue")
        await session.start()

    @client.on(Topic.DISCONNECT.value)
    async def on_disconnect(*args):
        log_warning("Connection to coordinator lost")
        await session.teardown()

    @client.on(Topic.INSPECTION_STARTED.value)
    async def on_inspection_started(message):
        is_valid, error_response = validate_contract_with_error_response(
            INSPECTION_STARTED_CONTRACT, message
        )
        if not is_valid:
            return error_response
        await session.on_inspection_started(message["moderator_sid"])

    @client.on(Topic.INSPECTION_CANCELLED.value)
    async def on_cancelled(*args):
        await session.on_cancelled()

    @client.on(Topic.PARTICIPANT_ADMITTED.value)
    async def on_admitted(*args):
        await session.on_admitted()

    @client.on(Topic.PARTICIPANT_REMOVED.value)
    async def on_removed(*args):
        await session.on_removed()

    @client.on(Topic.MUTE_REQUEST.value)
    async def on_mute_request(message):
        is_valid, error_response = validate_contract_with_error_response(
            MUTE_REQUEST_CONTRACT, message
        )
        if not is_valid:
            return error_response
        await session.on_mute_request(message["from"], message["mute"])

    @client.on(Topic.DEVICE_SUGGESTION.value)
    async def on_device_suggestion(message):
        is_valid, error_response = validate_contract_with_error_response(
            DEVICE_SUGGESTION_CONTRACT, message
        )
        if not is_valid:
            return error_response
        session.on_device_suggestion(message["device_id"], message["device_label"])

    @client.on(Topic.QUEUE_UPDATE.value)
    async def on_queue_update(snapshot=None):
        session.on_queue_update(snapshot or [])
