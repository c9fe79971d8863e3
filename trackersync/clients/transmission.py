import asyncio
from datetime import datetime
from typing import Any, Optional

import aiohttp
import structlog
from pydantic import ValidationError
from structlog.contextvars import bound_contextvars

from trackersync import instrumentation
from trackersync.clients.transmission_models import SessionInfo, Torrent, TorrentSetPayload
from trackersync.errors import (
    IncompatibleRPCVersionError,
    TransmissionAuthError,
    TransmissionError,
)

log = structlog.get_logger(__name__)

# RPC versions this client speaks. 14 is Transmission 2.80, 17 is 4.0.
RPC_VERSION = 17
RPC_VERSION_MIN = 14

SESSION_ID_HEADER = "X-Transmission-Session-Id"
TORRENT_FIELDS = ["id", "name", "trackers"]


class TransmissionClient:
    """
    Minimal client for the Transmission JSON RPC. Use as an async context
    manager; every call is issued sequentially on one aiohttp session.
    """

    def __init__(
        self,
        host: str,
        port: int = 9091,
        use_https: bool = False,
        username: Optional[str] = None,
        password: Optional[str] = None,
        path: str = "/transmission/rpc",
        timeout: float = 30,
    ):
        scheme = "https" if use_https else "http"
        self.url = f"{scheme}://{host}:{port}{path}"
        self.auth = aiohttp.BasicAuth(username, password or "") if username else None
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session_id = ""
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "TransmissionClient":
        self._session = aiohttp.ClientSession(auth=self.auth, timeout=self.timeout)
        return self

    async def __aexit__(self, *exc_info: Any):
        await self.close()

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def make_request(
        self, method: str, arguments: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        query: dict[str, Any] = {"method": method}
        if arguments is not None:
            query["arguments"] = arguments

        with bound_contextvars(rpc_method=method, url=self.url):
            log.debug("transmission request", arguments=arguments)
            response_json = await self._post(query)
            if response_json is None:
                # the daemon handed out a new session id, send it again
                response_json = await self._post(query)
            if response_json is None:
                raise TransmissionError(f"{method}: daemon rejected the session id", status=409)

            result = response_json.get("result")
            if result != "success":
                raise TransmissionError(f"{method} failed: {result}")
            reply_arguments = response_json.get("arguments") or {}
            if not isinstance(reply_arguments, dict):
                raise TransmissionError(
                    f"{method} returned malformed arguments: {reply_arguments!r}"
                )
            return reply_arguments

    async def _post(self, query: dict[str, Any]) -> dict[str, Any] | None:
        """
        Returns None only when the daemon answered 409 with a fresh session
        id; a reply that is not a JSON object raises TransmissionError.
        """
        if self._session is None:
            raise RuntimeError("TransmissionClient used outside of its context manager")

        status_code = ""
        error = False
        start_time = datetime.now()
        try:
            async with self._session.post(
                self.url,
                json=query,
                headers={SESSION_ID_HEADER: self.session_id},
            ) as response:
                status_code = f"{response.status // 100}xx"
                if response.status == 409:
                    self.session_id = response.headers.get(SESSION_ID_HEADER, "")
                    log.debug("transmission session id refreshed")
                    return None
                if response.status in [401, 403]:
                    error = True
                    raise TransmissionAuthError(
                        f"transmission rejected credentials: {response.status} {response.reason}",
                        status=response.status,
                        body=await response.text(),
                    )
                if response.status not in range(200, 300):
                    error = True
                    body = await response.text()
                    log.error(
                        "transmission request failed with bad status code",
                        status=response.status,
                        reason=response.reason,
                        body=body,
                    )
                    raise TransmissionError(
                        f"{query['method']} failed: {response.status} {response.reason}",
                        status=response.status,
                        body=body,
                    )
                response_json = await response.json(content_type=None)
                if not isinstance(response_json, dict):
                    error = True
                    raise TransmissionError(
                        f"{query['method']} returned a malformed reply: {response_json!r}",
                        status=response.status,
                    )
                return response_json
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            error = True
            raise TransmissionError(f"{query['method']} request failed: {e!r}") from e
        finally:
            instrumentation.HTTP_CLIENT_REQUEST_DURATION.labels(
                client="transmission",
                method=query["method"],
                status_code=status_code,
                error=error,
            ).observe((datetime.now() - start_time).total_seconds())

    async def connect(self) -> SessionInfo:
        """
        Negotiate the RPC version. Raises IncompatibleRPCVersionError when the
        daemon and this client share no protocol version.
        """
        arguments = await self.make_request(
            "session-get", {"fields": ["rpc-version", "rpc-version-minimum", "version"]}
        )
        try:
            info = SessionInfo.model_validate(arguments)
        except ValidationError as e:
            raise TransmissionError(f"session-get returned no RPC version: {e}") from e

        if info.rpc_version < RPC_VERSION_MIN or info.rpc_version_minimum > RPC_VERSION:
            raise IncompatibleRPCVersionError(
                f"remote transmission RPC version (v{info.rpc_version}) is incompatible "
                f"with this client (v{RPC_VERSION_MIN}-v{RPC_VERSION}): "
                f"remote needs at least v{info.rpc_version_minimum}, "
                f"client needs at least v{RPC_VERSION_MIN}",
                version=info.rpc_version,
                minimum=info.rpc_version_minimum,
                supported_minimum=RPC_VERSION_MIN,
            )
        log.info(
            "remote transmission RPC version",
            rpc_version=info.rpc_version,
            daemon_version=info.version,
        )
        return info

    async def get_torrents(self) -> list[Torrent]:
        arguments = await self.make_request("torrent-get", {"fields": TORRENT_FIELDS})
        try:
            return [Torrent.model_validate(t) for t in arguments.get("torrents") or []]
        except (ValidationError, TypeError) as e:
            raise TransmissionError(f"torrent-get returned malformed torrents: {e}") from e

    async def add_trackers(self, torrent_id: int, trackers: list[str]):
        payload = TorrentSetPayload(ids=[torrent_id], trackerAdd=trackers)
        await self.make_request("torrent-set", payload.model_dump())
