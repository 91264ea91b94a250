"""Unit tests for the connection registry.

Covers join order, re-join semantics, status edges and moderator observers.
"""

import pytest

from use_cases.queue_manager import (
    ConnectionRegistry,
    InvalidTransitionError,
    ParticipantStatus,
    RegistryChange,
)
from use_cases.queue_manager.connection_registry import ALLOWED_TRANSITIONS


def test_register_starts_waiting_in_join_order(registry: ConnectionRegistry) -> None:
    registry.register("alice", "Alice", "alice-sid")
    registry.register("bob", "Bob", "bob-sid", browser="aiortc", os="Linux", device_type="Laptop")

    participants = registry.participants()
    assert [p.identity for p in participants] == ["alice", "bob"]
    assert all(p.status == ParticipantStatus.WAITING for p in participants)
    assert participants[1].to_dict() == {
        "id": "bob",
        "name": "Bob",
        "browser": "aiortc",
        "os": "Linux",
        "device_type": "Laptop",
        "status": "waiting",
    }


def test_rejoin_moves_identity_to_back_with_fresh_status(registry: ConnectionRegistry) -> None:
    registry.register("alice", "Alice", "alice-sid")
    registry.register("bob", "Bob", "bob-sid")
    registry.update_status("alice", ParticipantStatus.INSPECTING, inspected_by="mod-1")

    registry.register("alice", "Alice B.", "alice-sid-2")

    assert [p.identity for p in registry.participants()] == ["bob", "alice"]
    alice = registry.lookup("alice")
    assert alice.status == ParticipantStatus.WAITING
    assert alice.inspected_by is None
    assert alice.transport_address == "alice-sid-2"
    assert registry.lookup_by_transport("alice-sid") is None


def test_lookup_by_transport(registry: ConnectionRegistry) -> None:
    registry.register("alice", "Alice", "alice-sid")

    assert registry.lookup_by_transport("alice-sid").identity == "alice"
    assert registry.lookup_by_transport("nobody") is None


def test_update_status_follows_allowed_edges(registry: ConnectionRegistry) -> None:
    registry.register("alice", "Alice", "alice-sid")

    registry.update_status("alice", ParticipantStatus.INSPECTING, inspected_by="mod-1")
    assert registry.lookup("alice").inspected_by == "mod-1"

    registry.update_status("alice", ParticipantStatus.WAITING)
    assert registry.lookup("alice").inspected_by is None

    registry.update_status("alice", ParticipantStatus.INSPECTING, inspected_by="mod-1")
    registry.update_status("alice", ParticipantStatus.ADMITTED)
    assert registry.lookup("alice").status == ParticipantStatus.ADMITTED


@pytest.mark.parametrize(
    "path",
    [
        [ParticipantStatus.ADMITTED],
        [ParticipantStatus.REMOVED],
        [ParticipantStatus.INSPECTING, ParticipantStatus.INSPECTING],
        [ParticipantStatus.INSPECTING, ParticipantStatus.REMOVED, ParticipantStatus.WAITING],
        [ParticipantStatus.INSPECTING, ParticipantStatus.ADMITTED, ParticipantStatus.INSPECTING],
    ],
)
def test_update_status_rejects_other_edges(registry: ConnectionRegistry, path) -> None:
    registry.register("alice", "Alice", "alice-sid")

    *allowed, rejected = path
    for status in allowed:
        registry.update_status("alice", status, inspected_by="mod-1")
    before = registry.lookup("alice").status

    with pytest.raises(InvalidTransitionError):
        registry.update_status("alice", rejected)
    assert registry.lookup("alice").status == before


def test_terminal_statuses_have_no_outgoing_edges() -> None:
    assert ALLOWED_TRANSITIONS[ParticipantStatus.ADMITTED] == set()
    assert ALLOWED_TRANSITIONS[ParticipantStatus.REMOVED] == set()


def test_update_status_of_absent_identity_is_noop(registry: ConnectionRegistry) -> None:
    registry.register("bob", "Bob", "bob-sid")

    assert registry.update_status("alice", ParticipantStatus.ADMITTED) is None
    assert registry.lookup("bob").status == ParticipantStatus.WAITING


def test_register_moderator_is_idempotent_and_leaves_participants(registry: ConnectionRegistry) -> None:
    registry.register("alice", "Alice", "alice-sid")
    before = [p.to_dict() for p in registry.participants()]

    assert registry.register_moderator("mod-1") is True
    assert registry.register_moderator("mod-1") is False

    assert registry.moderators == {"mod-1"}
    assert [p.to_dict() for p in registry.participants()] == before


def test_moderators_property_is_a_copy(registry: ConnectionRegistry) -> None:
    registry.register_moderator("mod-1")
    registry.moderators.add("intruder")

    assert registry.moderators == {"mod-1"}


def test_remove_by_transport(registry: ConnectionRegistry) -> None:
    registry.register("alice", "Alice", "alice-sid")
    registry.register("bob", "Bob", "bob-sid")

    removed = registry.remove_by_transport("alice-sid")

    assert removed.identity == "alice"
    assert [p.identity for p in registry.participants()] == ["bob"]
    assert registry.remove_by_transport("alice-sid") is None


def test_held_by_lists_only_inspecting_participants(registry: ConnectionRegistry) -> None:
    registry.register("alice", "Alice", "alice-sid")
    registry.register("bob", "Bob", "bob-sid")
    registry.update_status("alice", ParticipantStatus.INSPECTING, inspected_by="mod-1")
    registry.update_status("bob", ParticipantStatus.INSPECTING, inspected_by="mod-2")

    assert [p.identity for p in registry.held_by("mod-1")] == ["alice"]
    assert registry.held_by("mod-3") == []


def test_change_listeners_receive_every_mutation(registry: ConnectionRegistry) -> None:
    changes = []
    registry.on_change(lambda change, subject: changes.append(change))

    registry.register("alice", "Alice", "alice-sid")
    registry.register_moderator("mod-1")
    registry.update_status("alice", ParticipantStatus.INSPECTING, inspected_by="mod-1")
    registry.remove("alice")
    registry.unregister_moderator("mod-1")

    assert changes == [
        RegistryChange.JOINED,
        RegistryChange.MODERATOR_ADDED,
        RegistryChange.STATUS,
        RegistryChange.LEFT,
        RegistryChange.MODERATOR_REMOVED,
    ]


def test_counts_and_clear(registry: ConnectionRegistry) -> None:
    registry.register("alice", "Alice", "alice-sid")
    registry.register_moderator("mod-1")

    assert registry.counts() == {"participants": 1, "moderators": 1}

    registry.clear()
    assert registry.counts() == {"participants": 0, "moderators": 0}
