import structlog
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, write_to_textfile

from trackersync import config

log = structlog.get_logger()

# one-shot process: a private registry keeps the default process/platform
# collectors out of the textfile output
_registry = CollectorRegistry()


def registry() -> CollectorRegistry:
    return _registry


Gauge(
    name="trackersync_build_info",
    documentation="build information",
    labelnames=["version"],
    registry=registry(),
).labels(version=config.VERSION).set(1)

HTTP_CLIENT_REQUEST_DURATION = Histogram(
    name="trackersync_http_client_request_duration_seconds",
    documentation="Duration of outgoing HTTP requests in seconds",
    labelnames=["client", "method", "status_code", "error"],
    registry=registry(),
)

TORRENTS_PROCESSED = Counter(
    name="trackersync_torrents_processed",
    documentation="Torrents visited by the tracker reconciliation",
    labelnames=["result"],
    registry=registry(),
)

TRACKERS_ADDED = Counter(
    name="trackersync_trackers_added",
    documentation="Tracker URLs added to torrents",
    registry=registry(),
)

LAST_RUN_SUCCESS = Gauge(
    name="trackersync_last_run_success",
    documentation="1 if the last run finished without errors",
    registry=registry(),
)


def write_metrics(path: str | None):
    if not path:
        return
    try:
        write_to_textfile(path, registry())
    except OSError as e:
        log.error("failed to write metrics file", path=path, exc_info=e)
        return
    log.debug("wrote metrics", path=path)
