"""
Coordinator-side transport adapter.

Wraps the Socket.IO server so domain code addresses clients by sid and learns
whether a delivery could be attempted.
"""

from typing import Set

from tools.logger import log_debug, log_warning


class SocketIOTransport:

    def __init__(self, server):
        self.server = server
        self._connected: Set[str] = set()

    def attach(self, address: str) -> None:
        self._connected.add(address)
        log_debug(f"Transport attached: {address}")

    def detach(self, address: str) -> None:
        self._connected.discard(address)
        log_debug(f"Transport detached: {address}")

    def is_connected(self, address: str) -> bool:
        return address in self._connected

    async def send(self, address: str, event: str, data=None) -> bool:
        """
        Emit an event to one client.

        Returns False (message dropped) when the address is not connected.
        """
        if not self.is_connected(address):
            log_warning(f"Dropping {event}: {address} is not connected")
            return False
        await self.server.emit(event, data, to=address)
        return True
