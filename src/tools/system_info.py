"""
Descriptive metadata for a client, shown to moderators next to the live feed.
Collected once at startup (client name, OS, device type).
"""

import psutil
import platform
import aiortc
from typing import Dict


def get_client_name() -> str:
    """
    Get the media stack name and version, reported in the browser slot.

    Returns:
        str: e.g. "aiortc 1.9.0"
    """
    version = getattr(aiortc, "__version__", None)
    if version:
        return f"aiortc {version}"
    return "aiortc"


def get_os_info() -> str:
    """
    Get operating system information.

    Returns:
        str: OS information (e.g., "Linux 6.8.0")
    """
    system = platform.system() or "Unknown"
    release = platform.release()
    if release:
        return f"{system} {release}"
    return system


def get_device_type() -> str:
    """
    Guess the form factor of this machine.

    Returns:
        str: "Laptop" when a battery is reported, otherwise "Desktop"
    """
    sensors_battery = getattr(psutil, "sensors_battery", None)
    if sensors_battery is None:
        return "Desktop"
    try:
        battery = sensors_battery()
    except (NotImplementedError, OSError):
        return "Desktop"
    return "Laptop" if battery is not None else "Desktop"


def get_client_info() -> Dict[str, str]:
    """
    Get all descriptive metadata for this client.

    Returns:
        Dict: Dictionary containing:
            - browser: str - media stack name and version
            - os: str - Operating system
            - device_type: str - "Laptop" or "Desktop"
    """
    return {
        "browser": get_client_name(),
        "os": get_os_info(),
        "device_type": get_device_type(),
    }
