import argparse
import asyncio
import sys
from typing import Sequence

import structlog
from pydantic import ValidationError

from trackersync import config, instrumentation, logging
from trackersync.clients.transmission import TransmissionClient
from trackersync.errors import TorrentUpdateError, TrackerSyncError
from trackersync.reconcile import SyncResult, sync
from trackersync.trackers import fetch_trackers

log = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2
EXIT_PARTIAL = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trackersync",
        description="Add the trackers of a published tracker list to every torrent "
        "of a Transmission daemon.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--host", default=config.HOST, help="transmission host")
    parser.add_argument("--port", type=int, default=config.PORT, help="transmission RPC port")
    parser.add_argument(
        "--use-https",
        action=argparse.BooleanOptionalAction,
        default=config.USE_HTTPS,
        help="talk to the RPC endpoint over https",
    )
    parser.add_argument("--username", default=config.USERNAME, help="RPC username")
    parser.add_argument("--password", default=config.PASSWORD, help="RPC password")
    parser.add_argument("--rpc-path", default=config.RPC_PATH, help="RPC endpoint path")
    parser.add_argument(
        "--debug", action=argparse.BooleanOptionalAction, default=config.DEBUG
    )
    parser.add_argument(
        "--trackers-source",
        default=config.TRACKERS_SOURCE,
        help=f"tracker list URL, e.g. {config.NGOSANG}",
    )
    parser.add_argument(
        "--timeout", type=float, default=config.HTTP_TIMEOUT, help="HTTP timeout in seconds"
    )
    parser.add_argument(
        "--abort-on-error",
        action=argparse.BooleanOptionalAction,
        default=config.ABORT_ON_ERROR,
        help="stop at the first torrent that cannot be updated",
    )
    parser.add_argument(
        "--dry-run",
        action=argparse.BooleanOptionalAction,
        default=config.DRY_RUN,
        help="only log the trackers that would be added",
    )
    parser.add_argument(
        "--metrics-file",
        default=config.METRICS_FILE,
        help="write prometheus metrics to this file when done",
    )
    return parser


def parse_settings(argv: Sequence[str] | None = None) -> config.Settings:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return config.Settings(**vars(args))
    except ValidationError as e:
        parser.error(str(e))


async def run(settings: config.Settings) -> SyncResult:
    # nothing is touched on the daemon unless both the source and the RPC are usable
    trackers = await fetch_trackers(settings.trackers_source, timeout=settings.timeout)

    async with TransmissionClient(
        host=settings.host,
        port=settings.port,
        use_https=settings.use_https,
        username=settings.username,
        password=settings.password,
        path=settings.rpc_path,
        timeout=settings.timeout,
    ) as client:
        await client.connect()
        return await sync(
            client,
            trackers,
            abort_on_error=settings.abort_on_error,
            dry_run=settings.dry_run,
        )


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_settings(argv)
    logging.init(debug=settings.debug)

    exit_code = EXIT_FATAL
    try:
        result = asyncio.run(run(settings))
        exit_code = EXIT_OK if result.ok else EXIT_PARTIAL
    except TorrentUpdateError as e:
        log.error(
            "add trackers failed",
            torrent_id=e.torrent_id,
            torrent_name=e.torrent_name,
            error=e.message,
            exc_info=e,
        )
    except TrackerSyncError as e:
        log.error("tracker sync failed", error=e.message, exc_info=e)
    finally:
        instrumentation.LAST_RUN_SUCCESS.set(1 if exit_code == EXIT_OK else 0)
        instrumentation.write_metrics(settings.metrics_file)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
