from .websocket_controller import (
    CoordinatorServices,
    build_services,
    get_server,
    init as init_websocket_controller,
)
from .session_controller import SignalingClient, get_client
from .session_controller.participant import (
    ParticipantSession,
    init as init_participant_controller,
)
from .session_controller.moderator import (
    ModeratorSession,
    ModeratorState,
    init as init_moderator_controller,
)
from .webrtc_controller import ConnectionPhase
from tools.logger import *
from aiohttp import web
import asyncio

SERVICES_KEY = web.AppKey("services", CoordinatorServices)


async def health(request):
    """
    GET /health

    {"status": "ok", "participants": int, "moderators": int}
    """
    services = request.app[SERVICES_KEY]
    return web.json_response({"status": "ok", **services.registry.counts()})


async def _clear_registry(app):
    app[SERVICES_KEY].registry.clear()


def build_app(cors_allowed_origins=None):
    """
    Build the coordinator: one Socket.IO server attached to an aiohttp app,
    sharing a single registry for the life of the process.
    """
    server = get_server(cors_allowed_origins)
    services = build_services(server)
    init_websocket_controller(server, services)

    app = web.Application()
    server.attach(app)
    app[SERVICES_KEY] = services
    app.router.add_get("/health", health)
    app.on_cleanup.append(_clear_registry)
    return app


async def main_coordinator_task(host, port):
    """
    Serve the coordinator until cancelled.
    """
    app = build_app()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    log_info(f"Coordinator listening on {host}:{port}")

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        log_info("Coordinator stopped")


def _log_session_event(role):
    def listener(event, data):
        log_debug(f"{role} event {event}: {data}")

    return listener


async def _run_until(client, done: asyncio.Event):
    """Wait for the session to finish or the client to stop for good."""
    finished = asyncio.create_task(done.wait())
    stopped = asyncio.create_task(client.wait())
    try:
        await asyncio.wait({finished, stopped}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        finished.cancel()
        stopped.cancel()


async def main_participant_task(server_url, identity, display_name, media=None):
    """
    Join the queue as a participant and stay until admitted or removed.
    """
    client = await get_client()
    signaling = SignalingClient(client)
    session = ParticipantSession(signaling, identity, display_name, media=media)
    init_participant_controller(client, session)

    done = asyncio.Event()

    def on_event(event, data):
        if event == "finished":
            log_info(f"Inspection finished: {data['state'].value}")
            done.set()
        elif event == "media_error":
            log_error(f"Media unavailable ({data['reason']}): {data['message']}")

    session.add_listener(_log_session_event("Participant"))
    session.add_listener(on_event)

    await client.connect(server_url)
    log_info(f"Connected to coordinator at {server_url}")
    try:
        await _run_until(client, done)
    finally:
        await session.teardown()
        await signaling.disconnect()


def _auto_moderate(session: ModeratorSession, dwell: float):
    """
    Headless moderation policy: inspect the head of the queue whenever idle
    and admit each participant after `dwell` seconds of live media.
    """
    pending = set()

    def spawn(coroutine):
        task = asyncio.create_task(coroutine)
        pending.add(task)
        task.add_done_callback(pending.discard)

    async def admit_after_dwell(participant_id):
        await asyncio.sleep(dwell)
        if session.participant_id == participant_id and session.state == ModeratorState.INSPECTING:
            await session.admit()

    def listener(event, data):
        if event in ("queue", "state") and session.state == ModeratorState.DASHBOARD:
            waiting = session.waiting()
            if waiting and not pending:
                spawn(session.inspect(waiting[0]["id"]))
        elif event == "connection" and data["phase"] == ConnectionPhase.CONNECTED:
            spawn(admit_after_dwell(session.participant_id))

    session.add_listener(listener)


async def main_moderator_task(server_url, auto_admit_after=None):
    """
    Connect as a moderator. With auto_admit_after set, inspect and admit
    the queue without operator input.
    """
    client = await get_client()
    signaling = SignalingClient(client)
    session = ModeratorSession(signaling)
    init_moderator_controller(client, session)
    session.add_listener(_log_session_event("Moderator"))
    if auto_admit_after is not None:
        _auto_moderate(session, auto_admit_after)

    await client.connect(server_url)
    log_info(f"Connected to coordinator at {server_url}")
    try:
        await client.wait()
    finally:
        await session.close()
        await signaling.disconnect()
