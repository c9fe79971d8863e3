import asyncio
from datetime import datetime

import aiohttp
import structlog

from trackersync.errors import TrackerSourceError
from trackersync.instrumentation import HTTP_CLIENT_REQUEST_DURATION

log = structlog.get_logger(__name__)


def parse_trackers(text: str) -> list[str]:
    """
    One announce URL per line. Surrounding whitespace is stripped and blank
    lines are dropped; order and duplicates are kept as published.
    """
    trackers: list[str] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        trackers.append(line)
    return trackers


async def fetch_trackers(url: str, timeout: float = 30) -> list[str]:
    log.info("download trackers", source=url)
    status = ""
    error = False
    start_time = datetime.now()
    try:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=timeout)
        ) as session, session.get(url) as response:
            status = f"{response.status // 100}xx"
            if response.status not in range(200, 300):
                error = True
                raise TrackerSourceError(
                    f"get {url} failed: {response.status} {response.reason}",
                    url=url,
                    status=response.status,
                )
            text = await response.text()
    except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
        error = True
        raise TrackerSourceError(f"get {url} failed: {e!r}", url=url) from e
    finally:
        HTTP_CLIENT_REQUEST_DURATION.labels(
            client="trackers_source",
            method="GET",
            status_code=status,
            error=error,
        ).observe(amount=(datetime.now() - start_time).total_seconds())

    trackers = parse_trackers(text)
    log.info("loaded trackers", count=len(trackers))
    log.debug("trackers", trackers=trackers)
    return trackers
