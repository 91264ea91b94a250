"""
WebRTC Controller

Client-local peer negotiation. One PeerNegotiationEngine drives the SDP
offer/answer and ICE exchange for one pairing with a remote peer; signaling
travels through the coordinator's relay over the Socket.IO connection.
"""

from aiortc import (
    RTCConfiguration,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp
from tools import config
from tools.logger import log_info, log_debug, log_error, log_warning
from typing import Callable, Dict, List, Optional
from enum import Enum
import asyncio


class SignalingPhase(Enum):
    """Offer/answer progress of a pairing."""
    IDLE = "idle"
    HAVE_LOCAL_OFFER = "have-local-offer"
    HAVE_REMOTE_OFFER = "have-remote-offer"
    STABLE = "stable"


class ConnectionPhase(Enum):
    """Transport connectivity of a pairing."""
    NEW = "new"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"
    CLOSED = "closed"


# Phases that mean the remote peer is gone
PEER_LOST_PHASES = {ConnectionPhase.DISCONNECTED, ConnectionPhase.FAILED, ConnectionPhase.CLOSED}
# Phases after which the pairing must be torn down and rebuilt
TERMINAL_PHASES = {ConnectionPhase.FAILED, ConnectionPhase.CLOSED}

MEDIA_KINDS = ("audio", "video")


def build_ice_servers(urls=None, username=None, credential=None) -> List[RTCIceServer]:
    """Build the ICE server list from configuration."""
    urls = config.ICE_SERVERS if urls is None else urls
    if not urls:
        return []
    return [
        RTCIceServer(
            urls=list(urls),
            username=username if username is not None else config.ICE_USERNAME,
            credential=credential if credential is not None else config.ICE_CREDENTIAL,
        )
    ]


def default_peer_connection_factory(ice_servers=None) -> Callable[[], RTCPeerConnection]:
    servers = build_ice_servers() if ice_servers is None else ice_servers
    return lambda: RTCPeerConnection(RTCConfiguration(iceServers=servers))


def description_to_dict(description) -> dict:
    return {"sdp": description.sdp, "type": description.type}


def candidate_to_dict(candidate) -> dict:
    return {
        "candidate": "candidate:" + candidate_to_sdp(candidate),
        "sdp_mid": candidate.sdpMid,
        "sdp_mline_index": candidate.sdpMLineIndex,
    }


def candidate_from_dict(data: Optional[dict]):
    """
    Parse a relayed candidate. Returns None for the end-of-candidates signal.
    """
    if not data or not data.get("candidate"):
        return None
    sdp = data["candidate"]
    if sdp.startswith("candidate:"):
        sdp = sdp[len("candidate:"):]
    candidate = candidate_from_sdp(sdp)
    candidate.sdpMid = data.get("sdp_mid")
    candidate.sdpMLineIndex = data.get("sdp_mline_index")
    return candidate


class PeerNegotiationEngine:
    """
    Guarded offer/answer state machine for one pairing.

    Every operation that mutates the pairing runs under one asyncio.Lock. An
    offer that arrives while another is being processed is dropped. close()
    flips a liveness flag synchronously; in-flight operations check it after
    every await and abort instead of touching a closed connection.

    Args:
        signaling: object with async send_offer/send_answer/send_ice_candidate
        local_tracks: outgoing tracks (participant role); empty means the
            engine negotiates receive-only (moderator role)
        peer_connection_factory: zero-argument callable returning a new
            RTCPeerConnection
    """

    def __init__(
        self,
        signaling,
        local_tracks=None,
        peer_connection_factory: Optional[Callable] = None,
        remote_address: Optional[str] = None,
    ):
        self.signaling = signaling
        self.remote_address = remote_address
        self._local_tracks = list(local_tracks or [])
        self._factory = peer_connection_factory or default_peer_connection_factory()
        self._pc = None
        self._lock = asyncio.Lock()
        self._offer_in_progress = False
        self._tracks_attached = False
        self._remote_description_set = False
        self._pending_candidates = []
        self._closed = False
        self._phase_listeners: List[Callable] = []
        self._track_listeners: List[Callable] = []
        self.signaling_phase = SignalingPhase.IDLE
        self.connection_phase = ConnectionPhase.NEW
        self.remote_tracks: Dict[str, object] = {}

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def peer_connection(self):
        return self._pc

    @property
    def pending_candidate_count(self) -> int:
        return len(self._pending_candidates)

    @property
    def offer_in_progress(self) -> bool:
        return self._offer_in_progress

    def observe_connection_phase(self, callback: Callable) -> None:
        """Register callback(phase) for every connection phase transition."""
        self._phase_listeners.append(callback)

    def observe_remote_tracks(self, callback: Callable) -> None:
        """Register callback(remote_tracks) called whenever remote media changes."""
        self._track_listeners.append(callback)

    async def wait_for_connection_phase(self, phase: ConnectionPhase, timeout: float = None) -> bool:
        """Wait until the pairing reaches the given phase. Returns False on timeout."""
        if self.connection_phase == phase:
            return True
        reached = asyncio.Event()

        def on_phase(current):
            if current == phase:
                reached.set()

        self.observe_connection_phase(on_phase)
        try:
            await asyncio.wait_for(reached.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False
        finally:
            self._phase_listeners.remove(on_phase)

    def _set_signaling_phase(self, phase: SignalingPhase) -> None:
        if phase != self.signaling_phase:
            log_debug(f"Pairing {self.remote_address} signaling: {self.signaling_phase.value} -> {phase.value}")
            self.signaling_phase = phase

    def _set_connection_phase(self, phase: ConnectionPhase) -> None:
        if phase == self.connection_phase:
            return
        if self.connection_phase == ConnectionPhase.CLOSED:
            return
        log_info(f"Pairing {self.remote_address} connection state: {phase.value}")
        self.connection_phase = phase
        if phase in PEER_LOST_PHASES:
            self._clear_remote_tracks()
        for listener in list(self._phase_listeners):
            try:
                listener(phase)
            except Exception as e:
                log_error(f"Error in connection phase listener: {e}")

    def _notify_tracks(self) -> None:
        for listener in list(self._track_listeners):
            try:
                listener(dict(self.remote_tracks))
            except Exception as e:
                log_error(f"Error in remote track listener: {e}")

    def _clear_remote_tracks(self) -> None:
        if self.remote_tracks:
            log_info(f"Connection to {self.remote_address} lost, clearing remote media")
            self.remote_tracks = {}
            self._notify_tracks()

    def _ensure_peer_connection(self):
        if self._pc is not None:
            return self._pc

        pc = self._factory()
        self._pc = pc

        @pc.on("icecandidate")
        async def on_ice_candidate(candidate):
            if candidate and pc is self._pc and self.remote_address:
                log_debug(f"Emitting ICE candidate to {self.remote_address}")
                await self.signaling.send_ice_candidate(
                    self.remote_address, candidate_to_dict(candidate)
                )

        @pc.on("connectionstatechange")
        async def on_connection_state_change():
            if pc is not self._pc:
                return
            try:
                phase = ConnectionPhase(pc.connectionState)
            except ValueError:
                log_warning(f"Unknown connection state: {pc.connectionState}")
                return
            self._set_connection_phase(phase)

        @pc.on("track")
        def on_track(track):
            if pc is not self._pc:
                return
            log_info(f"Received remote {track.kind} track from {self.remote_address}")
            self.remote_tracks[track.kind] = track
            self._notify_tracks()

        return pc

    async def _reset_peer_connection(self) -> None:
        """Replace the connection object, keeping the engine alive (glare)."""
        old = self._pc
        self._pc = None
        self._tracks_attached = False
        self._remote_description_set = False
        self._set_signaling_phase(SignalingPhase.IDLE)
        if old is not None:
            await old.close()

    def _attach_local_tracks(self, pc) -> None:
        if self._tracks_attached:
            return
        for track in self._local_tracks:
            pc.addTrack(track)
            log_debug(f"Added local {track.kind} track to pairing {self.remote_address}")
        self._tracks_attached = True

    async def _add_candidate(self, candidate) -> None:
        try:
            await self._pc.addIceCandidate(candidate)
        except Exception as e:
            log_error(f"Error adding ICE candidate from {self.remote_address}: {e}")

    async def _flush_pending_candidates(self) -> None:
        self._remote_description_set = True
        pending, self._pending_candidates = self._pending_candidates, []
        if pending:
            log_debug(f"Flushing {len(pending)} buffered ICE candidate(s)")
        for candidate in pending:
            if self._closed:
                return
            await self._add_candidate(candidate)

    async def create_offer(self, target_address: str) -> bool:
        """
        Start a negotiation towards target_address. Valid only from idle.
        """
        async with self._lock:
            if self._closed:
                log_warning(f"Offer to {target_address} aborted, pairing closed")
                return False
            if self.signaling_phase != SignalingPhase.IDLE:
                log_warning(
                    f"Cannot create offer in {self.signaling_phase.value}, negotiation already in flight"
                )
                return False

            self.remote_address = target_address
            pc = self._ensure_peer_connection()
            if self._local_tracks:
                self._attach_local_tracks(pc)
            else:
                for kind in MEDIA_KINDS:
                    pc.addTransceiver(kind, direction="recvonly")
                self._tracks_attached = True

            try:
                offer = await pc.createOffer()
                if self._closed:
                    return False
                await pc.setLocalDescription(offer)
                if self._closed:
                    return False
            except Exception as e:
                log_error(f"Error creating offer for {target_address}: {e}")
                return False

            self._set_signaling_phase(SignalingPhase.HAVE_LOCAL_OFFER)
            await self.signaling.send_offer(target_address, description_to_dict(pc.localDescription))
            log_info(f"Sent offer to {target_address}")
            return True

    async def handle_offer(self, offer: dict, from_address: str) -> bool:
        """
        Answer a remote offer. Valid from idle, or from have-local-offer where
        the incoming offer wins (the local connection is rebuilt).
        """
        if self._offer_in_progress:
            log_warning(f"Dropping offer from {from_address}, another offer is being processed")
            return False

        self._offer_in_progress = True
        try:
            async with self._lock:
                if self._closed:
                    log_warning(f"Offer from {from_address} ignored, pairing closed")
                    return False
                if self.signaling_phase not in (SignalingPhase.IDLE, SignalingPhase.HAVE_LOCAL_OFFER):
                    log_warning(
                        f"Ignoring offer from {from_address} in {self.signaling_phase.value}"
                    )
                    return False
                if self.signaling_phase == SignalingPhase.HAVE_LOCAL_OFFER:
                    log_warning(f"Offer collision with {from_address}, answering the incoming offer")
                    await self._reset_peer_connection()
                    if self._closed:
                        return False

                self.remote_address = from_address
                pc = self._ensure_peer_connection()

                try:
                    await pc.setRemoteDescription(
                        RTCSessionDescription(sdp=offer["sdp"], type=offer.get("type", "offer"))
                    )
                    if self._closed:
                        return False
                    self._set_signaling_phase(SignalingPhase.HAVE_REMOTE_OFFER)
                    await self._flush_pending_candidates()
                    if self._closed:
                        return False

                    self._attach_local_tracks(pc)
                    answer = await pc.createAnswer()
                    if self._closed:
                        return False
                    await pc.setLocalDescription(answer)
                    if self._closed:
                        return False
                except Exception as e:
                    log_error(f"Error handling offer from {from_address}: {e}")
                    # A half-applied offer leaves the connection unusable
                    self._pending_candidates = []
                    await self._reset_peer_connection()
                    return False

                self._set_signaling_phase(SignalingPhase.STABLE)
                await self.signaling.send_answer(from_address, description_to_dict(pc.localDescription))
                log_info(f"Sent answer to {from_address}")
                return True
        finally:
            self._offer_in_progress = False

    async def handle_answer(self, answer: dict, from_address: str) -> bool:
        """Apply the remote answer. Valid only from have-local-offer."""
        async with self._lock:
            if self._closed:
                log_warning(f"Answer from {from_address} ignored, pairing closed")
                return False
            if self.signaling_phase != SignalingPhase.HAVE_LOCAL_OFFER:
                log_warning(
                    f"Ignoring answer from {from_address} in {self.signaling_phase.value}"
                )
                return False
            if from_address != self.remote_address:
                log_warning(f"Ignoring answer from {from_address}, expected {self.remote_address}")
                return False

            try:
                await self._pc.setRemoteDescription(
                    RTCSessionDescription(sdp=answer["sdp"], type=answer.get("type", "answer"))
                )
                if self._closed:
                    return False
            except Exception as e:
                log_error(f"Error applying answer from {from_address}: {e}")
                return False

            self._set_signaling_phase(SignalingPhase.STABLE)
            await self._flush_pending_candidates()
            log_info(f"Applied answer from {from_address}")
            return True

    async def handle_ice_candidate(self, candidate: Optional[dict], from_address: str) -> bool:
        """
        Apply a remote candidate, or buffer it until a remote description is set.
        """
        async with self._lock:
            if self._closed:
                return False
            if self.remote_address and from_address != self.remote_address:
                log_warning(f"Ignoring ICE candidate from {from_address}, expected {self.remote_address}")
                return False

            try:
                parsed = candidate_from_dict(candidate)
            except Exception as e:
                log_error(f"Unparsable ICE candidate from {from_address}: {e}")
                return False

            if parsed is None:
                log_debug(f"End of ICE candidates from {from_address}")
                return True

            if not self._remote_description_set:
                self._pending_candidates.append(parsed)
                log_debug(f"Buffered ICE candidate from {from_address} ({len(self._pending_candidates)} pending)")
                return True

            await self._add_candidate(parsed)
            return True

    async def replace_outgoing_track(self, new_track, media_kind: str) -> bool:
        """
        Swap the source of the active outgoing channel of media_kind without
        renegotiating.
        """
        async with self._lock:
            if self._closed or self._pc is None:
                log_warning(f"No active pairing, cannot replace {media_kind} track")
                return False

            for transceiver in self._pc.getTransceivers():
                sender = transceiver.sender
                if transceiver.kind == media_kind and sender.track is not None:
                    old_track = sender.track
                    sender.replaceTrack(new_track)
                    self._local_tracks = [
                        new_track if track is old_track else track for track in self._local_tracks
                    ]
                    log_info(f"Replaced outgoing {media_kind} track for {self.remote_address}")
                    return True

            log_warning(f"No outgoing {media_kind} channel to replace")
            return False

    async def close(self) -> None:
        """
        Tear the pairing down. The liveness flag and media handles are cleared
        before the connection object is awaited closed.
        """
        if self._closed:
            return
        self._closed = True
        self._pending_candidates = []
        self._set_connection_phase(ConnectionPhase.CLOSED)
        self._clear_remote_tracks()
        pc, self._pc = self._pc, None
        if pc is not None:
            try:
                await pc.close()
            except Exception as e:
                log_error(f"Error closing peer connection for {self.remote_address}: {e}")
        log_info(f"Closed pairing with {self.remote_address}")
