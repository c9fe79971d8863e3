from typing import Iterable

import structlog
from pydantic import BaseModel
from structlog.contextvars import bound_contextvars

from trackersync import instrumentation
from trackersync.clients.transmission import TransmissionClient
from trackersync.clients.transmission_models import Torrent
from trackersync.errors import TorrentUpdateError, TrackerSyncError
from trackersync.logging import timestamped

log = structlog.get_logger(__name__)


class SyncResult(BaseModel):
    torrents: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    trackers_added: int = 0
    # dry runs only
    planned: int = 0
    trackers_planned: int = 0

    @property
    def ok(self) -> bool:
        return self.failed == 0


def trackers_to_add(trackers: Iterable[str], current: set[str]) -> list[str]:
    """
    Master list minus the torrent's trackers, in master-list order. Repeated
    entries in the master list are kept; only the torrent's set filters.
    """
    return [t for t in trackers if t not in current]


async def reconcile_torrent(
    client: TransmissionClient,
    torrent: Torrent,
    trackers: list[str],
    dry_run: bool = False,
) -> int:
    """
    Add the missing trackers to a single torrent and return how many were
    requested.
    """
    to_add = trackers_to_add(trackers, torrent.announce_urls)
    if not to_add:
        log.info("torrent has all trackers")
        return 0

    if dry_run:
        log.info("dry run, not adding trackers", count=len(to_add), trackers=to_add)
        return len(to_add)

    try:
        await client.add_trackers(torrent.id, to_add)
    except TrackerSyncError as e:
        raise TorrentUpdateError(
            f'update torrent {torrent.id} "{torrent.name}" failed: {e.message}',
            torrent_id=torrent.id,
            torrent_name=torrent.name,
        ) from e
    log.info("added new trackers", count=len(to_add))
    return len(to_add)


@timestamped()
async def sync(
    client: TransmissionClient,
    trackers: list[str],
    abort_on_error: bool = False,
    dry_run: bool = False,
) -> SyncResult:
    result = SyncResult()
    torrents = await client.get_torrents()
    if not torrents:
        log.info("no torrents found")
        return result

    result.torrents = len(torrents)
    for torrent in torrents:
        with bound_contextvars(torrent_id=torrent.id, torrent_name=torrent.name):
            log.debug("reconciling torrent")
            try:
                added = await reconcile_torrent(client, torrent, trackers, dry_run=dry_run)
            except TorrentUpdateError as e:
                result.failed += 1
                instrumentation.TORRENTS_PROCESSED.labels(result="failed").inc()
                if abort_on_error:
                    raise
                log.error("add trackers failed, continuing", error=e.message, exc_info=e)
                continue

            if added and dry_run:
                result.planned += 1
                result.trackers_planned += added
                instrumentation.TORRENTS_PROCESSED.labels(result="planned").inc()
            elif added:
                result.updated += 1
                result.trackers_added += added
                instrumentation.TORRENTS_PROCESSED.labels(result="updated").inc()
                instrumentation.TRACKERS_ADDED.inc(added)
            else:
                result.skipped += 1
                instrumentation.TORRENTS_PROCESSED.labels(result="skipped").inc()

    log.info("sync finished", **result.model_dump())
    return result
