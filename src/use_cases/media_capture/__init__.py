"""
Local media capture for the participant role.

Opens capture devices through aiortc's MediaPlayer, classifies acquisition
failures and owns the outgoing tracks until they are stopped.
"""

from typing import Callable, Dict, List, Optional

from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaPlayer

from tools import config
from tools.logger import log_debug, log_error, log_info, log_warning
from .devices import AUDIO_INPUT, VIDEO_INPUT, DeviceInfo, enumerate_devices
from .tracks import MuteableAudioTrack

DEFAULT_VIDEO_DEVICE = "/dev/video0"
DEFAULT_AUDIO_DEVICE = "default"

TRACK_KINDS = {VIDEO_INPUT: "video", AUDIO_INPUT: "audio"}


class MediaAcquisitionError(Exception):
    """Local capture could not be started."""

    PERMISSION_DENIED = "permission-denied"
    NO_DEVICE = "no-device"
    OTHER = "other"

    def __init__(self, reason: str, message: str):
        self.reason = reason
        self.message = message
        super().__init__(f"{reason}: {message}")


class MediaCapture:
    """
    Capture session for one client.

    Tracks are keyed by media kind ("video" / "audio"). Outgoing audio is wrapped
    in a MuteableAudioTrack so mute survives device switches.
    """

    def __init__(
        self,
        video_format: str = None,
        audio_format: str = None,
        player_factory: Callable = MediaPlayer,
        device_lister: Callable = enumerate_devices,
    ):
        self.video_format = video_format or config.VIDEO_CAPTURE_FORMAT
        self.audio_format = audio_format or config.AUDIO_CAPTURE_FORMAT
        self._player_factory = player_factory
        self._device_lister = device_lister
        self.tracks: Dict[str, MediaStreamTrack] = {}
        self.selected: Dict[str, Optional[str]] = {VIDEO_INPUT: None, AUDIO_INPUT: None}
        self.devices: List[DeviceInfo] = []
        self.muted = False

    @property
    def is_live(self) -> bool:
        return bool(self.tracks)

    def refresh_devices(self) -> List[DeviceInfo]:
        self.devices = list(self._device_lister())
        return self.devices

    def find_device(self, device_id: str) -> Optional[DeviceInfo]:
        for device in self.devices:
            if device.device_id == device_id:
                return device
        return None

    def open_device(self, kind: str, device_id: Optional[str] = None) -> MediaStreamTrack:
        """
        Open one capture device and return its track without storing it.

        Raises MediaAcquisitionError with a classified reason.
        """
        if kind == VIDEO_INPUT:
            device_id = device_id or DEFAULT_VIDEO_DEVICE
            input_format = self.video_format
        else:
            device_id = device_id or DEFAULT_AUDIO_DEVICE
            input_format = self.audio_format

        try:
            player = self._player_factory(device_id, format=input_format)
        except PermissionError as e:
            raise MediaAcquisitionError(MediaAcquisitionError.PERMISSION_DENIED, str(e)) from e
        except FileNotFoundError as e:
            raise MediaAcquisitionError(MediaAcquisitionError.NO_DEVICE, str(e)) from e
        except Exception as e:
            raise MediaAcquisitionError(MediaAcquisitionError.OTHER, str(e)) from e

        track = player.video if kind == VIDEO_INPUT else player.audio
        if track is None:
            raise MediaAcquisitionError(
                MediaAcquisitionError.NO_DEVICE, f"{device_id} has no {TRACK_KINDS[kind]} stream"
            )

        if kind == AUDIO_INPUT:
            track = MuteableAudioTrack(track, muted=self.muted)

        self.selected[kind] = device_id
        log_debug(f"Opened {kind} device {device_id}")
        return track

    def capture(self, video_device: Optional[str] = None, audio_device: Optional[str] = None) -> List[MediaStreamTrack]:
        """
        Start video and audio capture together. Either both start or neither.
        """
        if self.is_live:
            return list(self.tracks.values())

        opened = {}
        try:
            opened["video"] = self.open_device(VIDEO_INPUT, video_device or self.selected[VIDEO_INPUT])
            opened["audio"] = self.open_device(AUDIO_INPUT, audio_device or self.selected[AUDIO_INPUT])
        except MediaAcquisitionError as e:
            for track in opened.values():
                track.stop()
            log_error(f"Error accessing media devices ({e.reason}): {e.message}")
            raise

        self.tracks = opened
        log_info("Local capture started")
        return list(self.tracks.values())

    def replace_track(self, kind: str, track: MediaStreamTrack) -> None:
        """Store a freshly opened track and stop the one it replaces."""
        media_kind = TRACK_KINDS[kind]
        old = self.tracks.get(media_kind)
        self.tracks[media_kind] = track
        if old is not None and old is not track:
            old.stop()

    def set_muted(self, muted: bool) -> bool:
        self.muted = muted
        audio = self.tracks.get("audio")
        if audio is None:
            log_warning("No outgoing audio to mute")
            return self.muted
        audio.muted = muted
        log_info(f"Audio {'muted' if muted else 'unmuted'}")
        return self.muted

    def stop(self) -> None:
        for track in self.tracks.values():
            track.stop()
        if self.tracks:
            log_info("Local capture stopped")
        self.tracks = {}


__all__ = [
    "AUDIO_INPUT",
    "VIDEO_INPUT",
    "DeviceInfo",
    "MediaAcquisitionError",
    "MediaCapture",
    "MuteableAudioTrack",
    "enumerate_devices",
]
