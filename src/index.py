## Main Execution Script
from controllers import main_coordinator_task, main_moderator_task, main_participant_task
from use_cases.media_capture import MediaCapture
from tools import config
from tools.logger import *
import argparse
import asyncio
import uuid
from time import sleep


def parse_args():
    parser = argparse.ArgumentParser(description="Inspection Coordinator")
    parser.add_argument(
        "role",
        choices=["coordinator", "participant", "moderator"],
        help="Process role: the coordinator server or one of its clients",
    )
    parser.add_argument(
        "-l",
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (use -l or --log-level)",
    )
    parser.add_argument("--log-dir", default=config.LOG_DIR, help="Also write log files here")

    server = parser.add_argument_group("coordinator")
    server.add_argument("--host", default=config.COORDINATOR_HOST)
    server.add_argument("--port", type=int, default=config.COORDINATOR_PORT)

    client = parser.add_argument_group("clients")
    client.add_argument("--server", default=config.SIGNALING_SERVER_URL, help="Coordinator URL")
    client.add_argument("--identity", default=None, help="Participant identity (random if omitted)")
    client.add_argument("--name", default="Participant", help="Participant display name")
    client.add_argument("--video-device", default=None, help="Video capture device, e.g. /dev/video0")
    client.add_argument("--audio-device", default=None, help="Audio capture device, e.g. hw:0,0")
    client.add_argument(
        "--auto-admit",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Moderator: inspect the queue head and admit after SECONDS of live media",
    )
    return parser.parse_args()


class ConfiguredCapture(MediaCapture):
    """Capture that opens the devices chosen on the command line."""

    def __init__(self, video_device=None, audio_device=None):
        super().__init__()
        self._video_device = video_device
        self._audio_device = audio_device

    def capture(self, video_device=None, audio_device=None):
        return super().capture(
            video_device or self._video_device, audio_device or self._audio_device
        )


def run_role(args):
    if args.role == "coordinator":
        return main_coordinator_task(args.host, args.port)
    if args.role == "moderator":
        return main_moderator_task(args.server, auto_admit_after=args.auto_admit)
    return main_participant_task(
        args.server,
        args.identity,
        args.name,
        media=ConfiguredCapture(args.video_device, args.audio_device),
    )


if __name__ == "__main__":
    args = parse_args()

    set_log_level(args.log_level)
    if args.log_dir:
        enable_file_logging(args.log_dir)

    if args.role == "participant" and not args.identity:
        args.identity = str(uuid.uuid4())

    while True:
        try:
            log_info(f"Starting {args.role}...")
            asyncio.run(run_role(args))
            if args.role == "participant":
                break
        except KeyboardInterrupt:
            log_warning("Keyboard interrupt received. Closing connection and exiting.")
            break
        except Exception as e:
            log_error(f"Error running {args.role}: {e}")
        log_warning("Restarting in 1 second...")
        sleep(1)
