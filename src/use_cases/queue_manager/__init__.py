from .connection_registry import (
    ConnectionRegistry,
    InvalidTransitionError,
    Participant,
    ParticipantStatus,
    RegistryChange,
)
from .queue_coordinator import QueueCoordinator

__all__ = [
    "ConnectionRegistry",
    "InvalidTransitionError",
    "Participant",
    "ParticipantStatus",
    "QueueCoordinator",
    "RegistryChange",
]
