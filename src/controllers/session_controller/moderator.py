"""
Moderator lifecycle controller.

Runs at most one inspection at a time: inspect -> (inspection:ready) offer ->
live media -> admit / remove / cancel -> next candidate or back to the
dashboard.
"""

import asyncio
from enum import Enum
from typing import Callable, List, Optional

from tools import config
from tools.contract_validation import (
    BooleanType,
    DEVICE,
    ListType,
    NonEmptyStringType,
    USER_INFO,
    validate_contract_with_error_response,
)
from tools.logger import log_debug, log_error, log_info, log_warning
from tools.protocol import Topic
from controllers.webrtc_controller import ConnectionPhase, PeerNegotiationEngine
from controllers.webrtc_controller.signaling import initialize_signaling


class ModeratorState(Enum):
    DASHBOARD = "dashboard"
    INSPECTING = "inspecting"


INSPECTION_READY_CONTRACT = {"participant_sid": NonEmptyStringType}

DEVICES_LIST_CONTRACT = {
    "from": NonEmptyStringType,
    "devices": ListType(DEVICE),
}

PARTICIPANT_INFO_CONTRACT = {
    "from": NonEmptyStringType,
    "user_info": USER_INFO,
}

MUTE_STATUS_CONTRACT = {
    "from": NonEmptyStringType,
    "is_muted": BooleanType,
}


class ModeratorSession:

    def __init__(
        self,
        signaling,
        peer_connection_factory: Optional[Callable] = None,
        next_candidate_timeout: float = None,
        ready_timeout: float = None,
        return_delay: float = None,
        max_renegotiation_attempts: int = None,
    ):
        self.signaling = signaling
        self._peer_connection_factory = peer_connection_factory
        self.next_candidate_timeout = (
            config.NEXT_CANDIDATE_TIMEOUT_SECONDS if next_candidate_timeout is None else next_candidate_timeout
        )
        self.ready_timeout = (
            config.INSPECTION_READY_TIMEOUT_SECONDS if ready_timeout is None else ready_timeout
        )
        self.return_delay = (
            config.RETURN_TO_DASHBOARD_DELAY_SECONDS if return_delay is None else return_delay
        )
        self.max_renegotiation_attempts = (
            config.MAX_RENEGOTIATION_ATTEMPTS if max_renegotiation_attempts is None else max_renegotiation_attempts
        )

        self.state = ModeratorState.DASHBOARD
        self.queue: List[dict] = []
        self.participant_id: Optional[str] = None
        self.participant_address: Optional[str] = None
        self.engine: Optional[PeerNegotiationEngine] = None
        self.remote_tracks: dict = {}
        self.devices: List[dict] = []
        self.participant_info: Optional[dict] = None
        self.participant_muted = False
        self.stalled = False
        self._pending_next: Optional[asyncio.Future] = None
        self._ready_watch: Optional[asyncio.Task] = None
        self._renegotiation_attempts = 0
        self._tasks = set()
        self._listeners: List[Callable] = []

    def add_listener(self, callback: Callable) -> None:
        """Register callback(event_name, data) for the presentation layer."""
        self._listeners.append(callback)

    def _notify(self, event: str, **data) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, data)
            except Exception as e:
                log_error(f"Error in moderator listener for {event}: {e}")

    def _spawn(self, coroutine) -> asyncio.Task:
        task = asyncio.create_task(coroutine)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _set_state(self, state: ModeratorState) -> None:
        if state != self.state:
            log_info(f"Moderator: {self.state.value} -> {state.value}")
            self.state = state
            self._notify("state", state=state, participant_id=self.participant_id)

    def waiting(self) -> List[dict]:
        return [entry for entry in self.queue if entry.get("status") == "waiting"]

    async def start(self) -> None:
        await self.signaling.connect_as_moderator()

    # Engine ownership

    def current_engine(self) -> Optional[PeerNegotiationEngine]:
        return self.engine

    async def engine_for_offer(self, from_address: str) -> Optional[PeerNegotiationEngine]:
        if self.engine is None or from_address != self.participant_address:
            return None
        return self.engine

    async def engine_for_candidate(self, from_address: str) -> Optional[PeerNegotiationEngine]:
        if from_address != self.participant_address:
            return None
        return self.engine

    async def _close_engine(self) -> None:
        engine, self.engine = self.engine, None
        if engine is not None:
            await engine.close()

    async def close(self) -> None:
        """Drop the current pairing and any pending waits."""
        if self._pending_next is not None and not self._pending_next.done():
            self._pending_next.cancel()
        self._cancel_ready_watch()
        await self._close_engine()

    async def _negotiate(self) -> bool:
        """Start a fresh offer cycle against the inspected participant."""
        await self._close_engine()
        engine = PeerNegotiationEngine(
            self.signaling, peer_connection_factory=self._peer_connection_factory
        )
        engine.observe_connection_phase(lambda phase: self._on_connection_phase(engine, phase))
        engine.observe_remote_tracks(self._on_remote_tracks)
        self.engine = engine
        log_info(f"Creating offer to {self.participant_address}")
        return await engine.create_offer(self.participant_address)

    def _on_remote_tracks(self, tracks: dict) -> None:
        self.remote_tracks = tracks
        self._notify("remote_media", kinds=sorted(tracks))

    def _on_connection_phase(self, engine: PeerNegotiationEngine, phase: ConnectionPhase) -> None:
        self._notify("connection", phase=phase)
        if phase == ConnectionPhase.CONNECTED and engine is self.engine:
            self._renegotiation_attempts = 0
        if phase == ConnectionPhase.FAILED and engine is self.engine:
            self._spawn(self._recover(engine))

    async def _recover(self, engine: PeerNegotiationEngine) -> None:
        """A failed pairing is torn down and rebuilt with a fresh offer."""
        if engine is not self.engine or self.state != ModeratorState.INSPECTING:
            return
        if self._renegotiation_attempts >= self.max_renegotiation_attempts:
            log_error(
                f"Connection to {self.participant_id} failed {self._renegotiation_attempts} time(s), giving up"
            )
            await self.return_to_dashboard()
            return
        self._renegotiation_attempts += 1
        log_warning(
            f"Connection to {self.participant_id} failed, renegotiating "
            f"(attempt {self._renegotiation_attempts}/{self.max_renegotiation_attempts})"
        )
        await self._negotiate()

    # Inspection lifecycle

    def _reset_participant(self) -> None:
        self._cancel_ready_watch()
        self.participant_id = None
        self.participant_address = None
        self.remote_tracks = {}
        self.devices = []
        self.participant_info = None
        self.participant_muted = False
        self._renegotiation_attempts = 0

    async def inspect(self, participant_id: str) -> None:
        await self._close_engine()
        self._reset_participant()
        self.stalled = False
        self.participant_id = participant_id
        self._set_state(ModeratorState.INSPECTING)
        self._ready_watch = self._spawn(self._await_ready(participant_id))
        await self.signaling.start_inspection(participant_id)

    def _cancel_ready_watch(self) -> None:
        watch, self._ready_watch = self._ready_watch, None
        if watch is not None and watch is not asyncio.current_task():
            watch.cancel()
            self._tasks.discard(watch)

    async def _await_ready(self, participant_id: str) -> None:
        """A start the coordinator refused or lost gets no inspection:ready."""
        await asyncio.sleep(self.ready_timeout)
        if self.participant_id != participant_id or self.participant_address is not None:
            return
        self._ready_watch = None
        log_warning(f"No inspection:ready for {participant_id}, coordinator stalled or refused")
        await self._report_stall("start")

    async def _report_stall(self, action: str) -> None:
        self.stalled = True
        self._notify("stalled", action=action, participant_id=self.participant_id)
        await self.return_to_dashboard()

    async def on_inspection_ready(self, participant_address: str) -> None:
        if self.state != ModeratorState.INSPECTING:
            log_warning(f"Unexpected inspection:ready for {participant_address}, not inspecting")
            return
        self._cancel_ready_watch()
        self.participant_address = participant_address
        await self._negotiate()

    async def admit(self) -> Optional[dict]:
        return await self._conclude(self.signaling.admit, "admit")

    async def remove(self) -> Optional[dict]:
        return await self._conclude(self.signaling.remove, "remove")

    async def _conclude(self, action: Callable, verb: str) -> Optional[dict]:
        """
        Issue admit/remove and wait for the coordinator's next candidate, then
        either inspect it or return to the dashboard.
        """
        if self.state != ModeratorState.INSPECTING or self.participant_id is None:
            log_warning(f"Nothing to {verb}, no inspection in progress")
            return None

        self._pending_next = asyncio.get_running_loop().create_future()
        await action(self.participant_id)
        try:
            next_candidate = await asyncio.wait_for(self._pending_next, self.next_candidate_timeout)
        except asyncio.TimeoutError:
            log_warning(f"No next candidate after {verb} of {self.participant_id}, coordinator stalled")
            await self._report_stall(verb)
            return None
        finally:
            self._pending_next = None

        if next_candidate:
            log_info(f"Advancing to next participant: {next_candidate.get('name')}")
            await self.inspect(next_candidate["id"])
        else:
            await self.return_to_dashboard()
        return next_candidate

    def on_queue_next(self, next_candidate: Optional[dict]) -> None:
        if self._pending_next is None or self._pending_next.done():
            log_debug("Unsolicited queue:next, ignoring")
            return
        self._pending_next.set_result(next_candidate)

    async def cancel(self) -> bool:
        if self.state != ModeratorState.INSPECTING or self.participant_id is None:
            log_warning("Nothing to cancel, no inspection in progress")
            return False
        await self.signaling.cancel_inspection(self.participant_id)
        await self.return_to_dashboard()
        return True

    async def return_to_dashboard(self) -> None:
        """Drop the current inspection locally and ask for a fresh snapshot."""
        await self._close_engine()
        self._reset_participant()
        self._set_state(ModeratorState.DASHBOARD)
        await self.signaling.request_queue()

    async def _return_after_delay(self, participant_id: str) -> None:
        await asyncio.sleep(self.return_delay)
        if self.participant_id == participant_id:
            await self.return_to_dashboard()

    async def on_queue_update(self, snapshot: list) -> None:
        self.queue = snapshot
        self._notify("queue", waiting=len(self.waiting()))

        if self.state != ModeratorState.INSPECTING or self._pending_next is not None:
            return
        entry = next((e for e in snapshot if e.get("id") == self.participant_id), None)
        if entry is not None:
            # inspection:ready always precedes the broadcast of our own start
            if entry.get("status") == "inspecting" and self.participant_address is None:
                log_warning(f"Participant {self.participant_id} is held by another moderator")
                self._notify("inspection_refused", participant_id=self.participant_id)
                await self.return_to_dashboard()
            return

        log_info(f"Participant {self.participant_id} disconnected, returning to dashboard")
        await self._close_engine()
        self.remote_tracks = {}
        self._notify("participant_lost", participant_id=self.participant_id)
        self._spawn(self._return_after_delay(self.participant_id))

    # Participant side-channel

    def _from_participant(self, from_address: str) -> bool:
        if from_address != self.participant_address:
            log_debug(f"Ignoring payload from {from_address}, not the inspected participant")
            return False
        return True

    def on_devices_list(self, from_address: str, devices: list) -> None:
        if not self._from_participant(from_address):
            return
        self.devices = devices
        log_info(f"Received {len(devices)} participant device(s)")
        self._notify("devices", devices=devices)

    def on_participant_info(self, from_address: str, user_info: dict) -> None:
        if not self._from_participant(from_address):
            return
        self.participant_info = user_info
        self._notify("participant_info", **user_info)

    def on_mute_status(self, from_address: str, is_muted: bool) -> None:
        if not self._from_participant(from_address):
            return
        self.participant_muted = is_muted
        self._notify("mute", is_muted=is_muted)

    async def request_mute(self, mute: bool) -> bool:
        if self.participant_address is None:
            log_warning("No participant connected, cannot request mute")
            return False
        sent = await self.signaling.request_mute(self.participant_address, mute)
        if sent:
            self.participant_muted = mute
        return sent

    async def suggest_device(self, device_id: str) -> bool:
        device = next((d for d in self.devices if d.get("device_id") == device_id), None)
        if device is None or self.participant_id is None:
            log_warning(f"Unknown participant device {device_id}")
            return False
        return await self.signaling.suggest_device(self.participant_id, device_id, device["label"])


def init(client, session: ModeratorSession):
    """
    Register the moderator's lifecycle and signaling topics on the client.
    """
    initialize_signaling(client, session)

    log_info("Registering moderator lifecycle topics")

    @client.on(Topic.CONNECT.value)
    async def on_connect():
        log_info("Connected to coordinator as moderator")
        await session.start()

    @client.on(Topic.DISCONNECT.value)
    async def on_disconnect(*args):
        log_warning("Connection to coordinator lost")
        await session.return_to_dashboard()

    @client.on(Topic.QUEUE_UPDATE.value)
    async def on_queue_update(snapshot=None):
        await session.on_queue_update(snapshot or [])

    @client.on(Topic.QUEUE_NEXT.value)
    async def on_queue_next(next_candidate=None):
        session.on_queue_next(next_candidate)

    @client.on(Topic.PARTICIPANT_JOINED.value)
    async def on_participant_joined(entry=None):
        log_info(f"Participant joined: {(entry or {}).get('name')}")

    @client.on(Topic.INSPECTION_READY.value)
    async def on_inspection_ready(message):
        is_valid, error_response = validate_contract_with_error_response(
            INSPECTION_READY_CONTRACT, message
        )
        if not is_valid:
            return error_response
        await session.on_inspection_ready(message["participant_sid"])

    @client.on(Topic.DEVICES_LIST.value)
    async def on_devices_list(message):
        is_valid, error_response = validate_contract_with_error_response(
            DEVICES_LIST_CONTRACT, message
        )
        if not is_valid:
            return error_response
        session.on_devices_list(message["from"], message["devices"])

    @client.on(Topic.PARTICIPANT_INFO.value)
    async def on_participant_info(message):
        is_valid, error_response = validate_contract_with_error_response(
            PARTICIPANT_INFO_CONTRACT, message
        )
        if not is_valid:
            return error_response
        session.on_participant_info(message["from"], message["user_info"])

    @client.on(Topic.MUTE_STATUS.value)
    async def on_mute_status(message):
        is_valid, error_response = validate_contract_with_error_response(
            MUTE_STATUS_CONTRACT, message
        )
        if not is_valid:
            return error_response
        session.on_mute_status(message["from"], message["is_muted"])
