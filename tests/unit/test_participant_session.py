"""Unit tests for the participant lifecycle controller."""

import pytest

from controllers.session_controller.participant import (
    ParticipantSession,
    ParticipantState,
    init as init_participant,
)
from controllers.webrtc_controller import ConnectionPhase, SignalingPhase
from use_cases.media_capture import AUDIO_INPUT, VIDEO_INPUT, DeviceInfo, MediaCapture
from helpers.fakes import FakeClient, FakePlayer, candidate

OFFER = {"sdp": "v=0 remote offer", "type": "offer"}
USER_INFO = {"browser": "aiortc 1.9.0", "os": "Linux 6.8", "device_type": "Laptop"}
DEVICES = [
    DeviceInfo("/dev/video0", "Front camera", VIDEO_INPUT),
    DeviceInfo("/dev/video2", "USB camera", VIDEO_INPUT),
    DeviceInfo("hw:1,0", "USB mic", AUDIO_INPUT),
]


def failing_player(file, format=None, **kwargs):
    raise PermissionError("camera blocked")


@pytest.fixture
def media() -> MediaCapture:
    return MediaCapture("v4l2", "alsa", player_factory=FakePlayer, device_lister=lambda: DEVICES)


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def session(signaling, media, pc_factory, events) -> ParticipantSession:
    session = ParticipantSession(
        signaling,
        "alice",
        "Alice",
        media=media,
        user_info=USER_INFO,
        peer_connection_factory=pc_factory,
        teardown_delay=0,
    )
    session.add_listener(lambda event, data: events.append((event, data)))
    return session


@pytest.fixture
def client(session) -> FakeClient:
    client = FakeClient("alice-sid")
    init_participant(client, session)
    return client


async def offer_from(client: FakeClient, address: str = "mod-1") -> dict:
    return await client.dispatch("webrtc:offer", {"from": address, "offer": OFFER})


async def test_connect_captures_and_joins(client, session, signaling, media) -> None:
    await client.dispatch("connect")

    assert media.is_live
    assert media.devices == DEVICES
    assert session.state == ParticipantState.WAITING
    assert signaling.named("join") == [("alice", "Alice", USER_INFO)]


async def test_media_failure_is_surfaced_and_join_still_happens(signaling, pc_factory, events) -> None:
    media = MediaCapture("v4l2", "alsa", player_factory=failing_player, device_lister=list)
    session = ParticipantSession(
        signaling, "alice", "Alice", media=media, user_info=USER_INFO, peer_connection_factory=pc_factory
    )
    session.add_listener(lambda event, data: events.append((event, data)))

    await session.start()

    assert session.media_error.reason == "permission-denied"
    assert ("media_error", {"reason": "permission-denied", "message": "camera blocked"}) in events
    assert len(signaling.named("join")) == 1


async def test_inspection_started_shares_inventory_once(client, session, signaling) -> None:
    await session.start()

    await client.dispatch("inspection:started", {"moderator_sid": "mod-1"})
    await client.dispatch("inspection:started", {"moderator_sid": "mod-1"})

    assert session.state == ParticipantState.INSPECTING
    assert session.moderator_address == "mod-1"
    assert signaling.named("share_devices") == [("mod-1", [d.to_dict() for d in DEVICES])]
    assert signaling.named("send_participant_info") == [("mod-1", USER_INFO)]
    assert signaling.named("send_mute_status") == [("mod-1", False)]


async def test_invalid_lifecycle_payload_is_rejected(client, session) -> None:
    response = await client.dispatch("inspection:started", {"moderator_sid": ""})

    assert response["status"] == "error"
    assert session.state == ParticipantState.WAITING


async def test_offer_is_answered_with_local_media(client, session, signaling, pc_factory, media) -> None:
    await session.start()

    response = await offer_from(client)

    assert response == {"action": "webrtc:offer", "status": "success"}
    assert session.engine.signaling_phase == SignalingPhase.STABLE
    assert signaling.named("send_answer")[0][0] == "mod-1"
    senders = {t.kind: t.sender.track for t in pc_factory.last.getTransceivers()}
    assert senders == media.tracks


async def test_candidates_before_offer_are_kept(client, session, pc_factory) -> None:
    await session.start()

    await client.dispatch("webrtc:ice-candidate", {"from": "mod-1", "candidate": candidate(1)})
    await offer_from(client)

    assert [c.ip for c in pc_factory.last.added_candidates] == ["192.168.1.1"]


async def test_new_offer_after_completed_cycle_starts_fresh_engine(client, session, pc_factory) -> None:
    await session.start()
    await offer_from(client)
    first = session.engine

    await offer_from(client)

    assert first.is_closed
    assert session.engine is not first
    assert session.engine.signaling_phase == SignalingPhase.STABLE
    assert len(pc_factory.created) == 2


async def test_offer_after_failed_connection_starts_fresh_engine(client, session, pc_factory) -> None:
    await session.start()
    await offer_from(client)
    first = session.engine
    await pc_factory.last.set_connection_state("failed")
    assert first.connection_phase == ConnectionPhase.FAILED

    await offer_from(client)

    assert session.engine is not first


async def test_offer_after_rejected_offer_is_answered(client, session, signaling, pc_factory) -> None:
    await session.start()
    pc_factory.next_remote_description_error = ValueError("malformed offer")

    assert (await offer_from(client))["status"] == "ignored"
    assert session.engine.signaling_phase == SignalingPhase.IDLE

    assert (await offer_from(client))["status"] == "success"
    assert session.engine.signaling_phase == SignalingPhase.STABLE
    assert len(signaling.named("send_answer")) == 1


async def test_abandoned_remote_offer_starts_fresh_engine(client, session, pc_factory) -> None:
    await session.start()
    await client.dispatch("webrtc:ice-candidate", {"from": "mod-1", "candidate": candidate(1)})
    stuck = session.engine
    stuck.signaling_phase = SignalingPhase.HAVE_REMOTE_OFFER

    assert (await offer_from(client))["status"] == "success"

    assert stuck.is_closed
    assert session.engine is not stuck
    assert session.engine.signaling_phase == SignalingPhase.STABLE


async def test_cancelled_returns_to_waiting_and_drops_pairing(client, session, signaling) -> None:
    await session.start()
    await client.dispatch("inspection:started", {"moderator_sid": "mod-1"})
    await offer_from(client)
    engine = session.engine

    await client.dispatch("inspection:cancelled")

    assert session.state == ParticipantState.WAITING
    assert engine.is_closed
    assert session.engine is None

    await client.dispatch("inspection:started", {"moderator_sid": "mod-1"})
    assert len(signaling.named("share_devices")) == 2


@pytest.mark.parametrize(
    "event, state",
    [
        ("participant:admitted", ParticipantState.ADMITTED),
        ("participant:removed", ParticipantState.REMOVED),
    ],
)
async def test_terminal_event_tears_down_after_delay(client, session, signaling, media, events, event, state) -> None:
    await session.start()
    await client.dispatch("inspection:started", {"moderator_sid": "mod-1"})
    await offer_from(client)
    engine = session.engine

    await client.dispatch(event)
    assert session.state == state
    await session._teardown_task

    assert not media.is_live
    assert engine.is_closed
    assert signaling.named("leave") == [()]
    assert events[-1] == ("finished", {"state": state})

    response = await offer_from(client)
    assert response["status"] == "error"


async def test_mute_request_applies_and_reports(client, session, signaling, media) -> None:
    await session.start()

    await client.dispatch("mute:request", {"from": "mod-1", "mute": True})

    assert media.muted is True
    assert media.tracks["audio"].muted is True
    assert signaling.named("send_mute_status") == [("mod-1", True)]


async def test_local_mute_is_reported_while_inspecting(client, session, signaling) -> None:
    await session.start()
    assert await session.toggle_mute() is True
    assert signaling.named("send_mute_status") == []

    await client.dispatch("inspection:started", {"moderator_sid": "mod-1"})
    await session.toggle_mute()

    assert signaling.named("send_mute_status")[-1] == ("mod-1", False)


async def test_accepted_suggestion_swaps_only_that_kind(client, session, pc_factory, media, events) -> None:
    await session.start()
    await offer_from(client)
    old_audio = media.tracks["audio"]

    await client.dispatch(
        "device:suggestion", {"from": "mod-1", "device_id": "/dev/video2", "device_label": "USB camera"}
    )
    assert session.pending_suggestion == {"device_id": "/dev/video2", "device_label": "USB camera"}
    assert ("device_suggestion", {"device_id": "/dev/video2", "device_label": "USB camera"}) in events

    assert await session.accept_suggestion() is True

    senders = {t.kind: t.sender.track for t in pc_factory.last.getTransceivers()}
    assert senders["video"] is media.tracks["video"]
    assert media.selected[VIDEO_INPUT] == "/dev/video2"
    assert senders["audio"] is old_audio
    assert session.pending_suggestion is None


async def test_declined_suggestion_is_dropped(client, session, media) -> None:
    await session.start()
    session.on_device_suggestion("/dev/video2", "USB camera")
    video = media.tracks["video"]

    session.decline_suggestion()

    assert session.pending_suggestion is None
    assert await session.accept_suggestion() is False
    assert media.tracks["video"] is video


async def test_switch_to_unknown_device_fails(session) -> None:
    await session.start()

    assert await session.switch_device("/dev/video9") is False


async def test_queue_update_tracks_position(client, session, events) -> None:
    snapshot = [
        {"id": "bob", "status": "inspecting"},
        {"id": "carol", "status": "waiting"},
        {"id": "alice", "status": "waiting"},
    ]

    await client.dispatch("queue:update", snapshot)

    assert session.queue_position == 2
    assert events[-1] == ("queue", {"position": 2, "waiting": 2})


async def test_disconnect_releases_media(client, session, media) -> None:
    await session.start()
    await offer_from(client)

    await client.dispatch("disconnect")

    assert not media.is_live
    assert session.engine is None
