"""
Local capture device inventory.

Video devices come from /dev/video* with names read from sysfs; audio capture
devices come from the ALSA PCM table. Each device is reported with a stable
device_id usable as a MediaPlayer input.
"""

import glob
import os
from dataclasses import dataclass
from typing import List

from tools.logger import log_debug, log_warning

VIDEO_INPUT = "videoinput"
AUDIO_INPUT = "audioinput"

DEV_ROOT = "/dev"
V4L_SYSFS_ROOT = "/sys/class/video4linux"
ALSA_PCM_TABLE = "/proc/asound/pcm"


@dataclass(frozen=True)
class DeviceInfo:
    device_id: str
    label: str
    kind: str

    def to_dict(self) -> dict:
        return {"device_id": self.device_id, "label": self.label, "kind": self.kind}

    @classmethod
    def from_dict(cls, data: dict) -> "DeviceInfo":
        return cls(data["device_id"], data.get("label", ""), data["kind"])


def _fallback_label(kind: str, device_id: str) -> str:
    return f"{kind} ({device_id[:8]})"


def _read_first_line(path: str) -> str:
    try:
        with open(path, "r") as f:
            return f.readline().strip()
    except OSError:
        return ""


def list_video_devices(dev_root: str = DEV_ROOT, sysfs_root: str = V4L_SYSFS_ROOT) -> List[DeviceInfo]:
    devices = []
    for path in sorted(glob.glob(os.path.join(dev_root, "video*"))):
        node = os.path.basename(path)
        label = _read_first_line(os.path.join(sysfs_root, node, "name"))
        devices.append(
            DeviceInfo(path, label or _fallback_label(VIDEO_INPUT, path), VIDEO_INPUT)
        )
    return devices


def list_audio_devices(pcm_table: str = ALSA_PCM_TABLE) -> List[DeviceInfo]:
    """
    Parse lines such as
    "00-00: ALC892 Analog : ALC892 Analog : playback 1 : capture 1".
    """
    devices = []
    try:
        with open(pcm_table, "r") as f:
            lines = f.readlines()
    except OSError as e:
        log_debug(f"ALSA PCM table unavailable: {e}")
        return devices

    for line in lines:
        fields = [field.strip() for field in line.split(":")]
        if len(fields) < 2 or not any(field.startswith("capture") for field in fields[2:]):
            continue
        try:
            card, device = (int(part) for part in fields[0].split("-"))
        except ValueError:
            log_warning(f"Skipping unparsable ALSA PCM entry: {line.strip()}")
            continue
        device_id = f"hw:{card},{device}"
        devices.append(
            DeviceInfo(device_id, fields[1] or _fallback_label(AUDIO_INPUT, device_id), AUDIO_INPUT)
        )
    return devices


def enumerate_devices() -> List[DeviceInfo]:
    """All video and audio capture devices, video first."""
    devices = list_video_devices() + list_audio_devices()
    log_debug(f"Enumerated {len(devices)} capture device(s)")
    return devices
