"""Test doubles for the Socket.IO layer, peer connections and capture devices."""

import asyncio
import inspect

from aiortc import RTCSessionDescription
from aiortc.mediastreams import AudioStreamTrack, VideoStreamTrack


class FakeServer:
    """Stands in for socketio.AsyncServer: records emits and handlers."""

    def __init__(self) -> None:
        self.emitted: list[tuple[str, object, str]] = []
        self.handlers: dict = {}

    async def emit(self, event, data=None, to=None) -> None:
        self.emitted.append((event, data, to))

    def on(self, event, handler=None):
        def register(func):
            self.handlers[event] = func
            return func

        if handler is not None:
            return register(handler)
        return register

    def sent_to(self, address: str, event: str = None) -> list:
        """Payloads emitted to one address, optionally for one event."""
        return [
            data
            for name, data, to in self.emitted
            if to == address and (event is None or name == event)
        ]

    def events_to(self, address: str) -> list:
        return [name for name, _, to in self.emitted if to == address]


class FakeClient:
    """Stands in for socketio.AsyncClient on the client side."""

    def __init__(self, sid: str = "client-sid") -> None:
        self.sid = sid
        self.connected = True
        self.emitted: list[tuple[str, object]] = []
        self.handlers: dict = {}

    def get_sid(self) -> str:
        return self.sid

    async def emit(self, event, data=None) -> None:
        self.emitted.append((event, data))

    async def disconnect(self) -> None:
        self.connected = False

    def on(self, event, handler=None):
        def register(func):
            self.handlers[event] = func
            return func

        if handler is not None:
            return register(handler)
        return register

    async def dispatch(self, event, *args):
        return await self.handlers[event](*args)


class RecordingSignaling:
    """Records every outbound call of a SignalingClient."""

    def __init__(self, connected: bool = True) -> None:
        self.calls: list[tuple] = []
        self.connected = connected

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        async def record(*args):
            self.calls.append((name, *args))
            return self.connected

        return record

    def named(self, name: str) -> list[tuple]:
        return [call[1:] for call in self.calls if call[0] == name]


class FakeSender:
    def __init__(self, track) -> None:
        self.track = track

    def replaceTrack(self, track) -> None:
        self.track = track


class FakeTransceiver:
    def __init__(self, kind: str, track=None, direction: str = "sendrecv") -> None:
        self.kind = kind
        self.direction = direction
        self.sender = FakeSender(track)


class FakePeerConnection:
    """
    Minimal RTCPeerConnection double.

    Set `remote_description_gate` to an asyncio.Event to hold
    setRemoteDescription until the test releases it. Set
    `remote_description_error` or `answer_error` to make that call raise.
    """

    def __init__(self) -> None:
        self.handlers: dict = {}
        self.transceivers: list[FakeTransceiver] = []
        self.added_candidates: list = []
        self.localDescription = None
        self.remoteDescription = None
        self.connectionState = "new"
        self.closed = False
        self.remote_description_gate = None
        self.remote_description_error = None
        self.answer_error = None

    def on(self, event, handler=None):
        def register(func):
            self.handlers[event] = func
            return func

        if handler is not None:
            return register(handler)
        return register

    async def fire(self, event, *args) -> None:
        result = self.handlers[event](*args)
        if inspect.isawaitable(result):
            await result

    async def set_connection_state(self, state: str) -> None:
        self.connectionState = state
        await self.fire("connectionstatechange")

    def addTrack(self, track):
        transceiver = FakeTransceiver(track.kind, track)
        self.transceivers.append(transceiver)
        return transceiver.sender

    def addTransceiver(self, kind, direction="sendrecv"):
        transceiver = FakeTransceiver(kind, direction=direction)
        self.transceivers.append(transceiver)
        return transceiver

    def getTransceivers(self):
        return list(self.transceivers)

    async def createOffer(self):
        return RTCSessionDescription(sdp="v=0 offer", type="offer")

    async def createAnswer(self):
        if self.answer_error is not None:
            raise self.answer_error
        return RTCSessionDescription(sdp="v=0 answer", type="answer")

    async def setLocalDescription(self, description) -> None:
        self.localDescription = description

    async def setRemoteDescription(self, description) -> None:
        if self.remote_description_gate is not None:
            await self.remote_description_gate.wait()
        if self.remote_description_error is not None:
            raise self.remote_description_error
        self.remoteDescription = description

    async def addIceCandidate(self, candidate) -> None:
        self.added_candidates.append(candidate)

    async def close(self) -> None:
        self.closed = True
        self.connectionState = "closed"


class PeerConnectionFactory:
    """Factory that remembers every FakePeerConnection it built."""

    def __init__(self) -> None:
        self.created: list[FakePeerConnection] = []
        self.next_remote_description_error = None
        self.next_answer_error = None

    def __call__(self) -> FakePeerConnection:
        pc = FakePeerConnection()
        pc.remote_description_error, self.next_remote_description_error = self.next_remote_description_error, None
        pc.answer_error, self.next_answer_error = self.next_answer_error, None
        self.created.append(pc)
        return pc

    @property
    def last(self) -> FakePeerConnection:
        return self.created[-1]


class FakePlayer:
    """MediaPlayer double exposing synthetic aiortc tracks."""

    def __init__(self, file, format=None, **kwargs) -> None:
        self.file = file
        self.format = format
        self.video = VideoStreamTrack()
        self.audio = AudioStreamTrack()


def candidate(index: int = 1) -> dict:
    return {
        "candidate": f"candidate:{index} 1 udp 2130706431 192.168.1.{index} 5440{index} typ host",
        "sdp_mid": "0",
        "sdp_mline_index": 0,
    }


async def settle(rounds: int = 5) -> None:
    """Let scheduled callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
