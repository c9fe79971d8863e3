import os
import tempfile
import unittest

import aiohttp
import pytest
from aioresponses import aioresponses
from yarl import URL

from trackersync import config
from trackersync.main import EXIT_FATAL, EXIT_OK, EXIT_PARTIAL, main, parse_settings

SOURCE = "https://trackers.example.org/trackers_all.txt"
RPC_URL = "http://127.0.0.1:9091/transmission/rpc"
ARGV = ["--host", "127.0.0.1", "--port", "9091", "--trackers-source", SOURCE]

SESSION_GET = {
    "result": "success",
    "arguments": {"rpc-version": 17, "rpc-version-minimum": 14, "version": "4.0.5"},
}
OK = {"result": "success", "arguments": {}}


def torrent_get(*torrents: dict) -> dict:
    return {"result": "success", "arguments": {"torrents": list(torrents)}}


def rpc_methods(m: aioresponses) -> list[str]:
    return [call.kwargs["json"]["method"] for call in m.requests.get(("POST", URL(RPC_URL)), [])]


def test_settings_defaults():
    settings = parse_settings([])
    assert settings.host == config.HOST
    assert settings.port == config.PORT
    assert settings.trackers_source == config.TRACKERS_SOURCE
    assert settings.abort_on_error is False


def test_settings_flags():
    settings = parse_settings(
        ["--host", "nas", "--port", "443", "--use-https", "--abort-on-error", "--dry-run"]
    )
    assert settings.host == "nas"
    assert settings.port == 443
    assert settings.use_https
    assert settings.abort_on_error
    assert settings.dry_run


def test_settings_rejects_bad_port():
    with pytest.raises(SystemExit) as exc:
        parse_settings(["--port", "0"])
    assert exc.value.code == 2


class Main(unittest.TestCase):
    def test_scenario(self):
        with aioresponses() as m:
            m.get(SOURCE, body="udp://a:80\n\nudp://b:80\n  \n")
            m.post(RPC_URL, payload=SESSION_GET)
            m.post(
                RPC_URL,
                payload=torrent_get(
                    {"id": 9, "name": "X", "trackers": [{"announce": "udp://a:80"}]}
                ),
            )
            m.post(RPC_URL, payload=OK)

            code = main(ARGV)

        self.assertEqual(EXIT_OK, code)
        calls = m.requests[("POST", URL(RPC_URL))]
        self.assertEqual(["session-get", "torrent-get", "torrent-set"], rpc_methods(m))
        self.assertEqual(
            {"ids": [9], "trackerAdd": ["udp://b:80"]}, calls[2].kwargs["json"]["arguments"]
        )

    def test_no_torrents(self):
        with aioresponses() as m:
            m.get(SOURCE, body="udp://a:80\n")
            m.post(RPC_URL, payload=SESSION_GET)
            m.post(RPC_URL, payload=torrent_get())

            code = main(ARGV)

        self.assertEqual(EXIT_OK, code)
        self.assertEqual(["session-get", "torrent-get"], rpc_methods(m))

    def test_source_failure_touches_nothing(self):
        with aioresponses() as m:
            m.get(SOURCE, exception=aiohttp.ClientConnectionError("dns"))

            code = main(ARGV)

        self.assertEqual(EXIT_FATAL, code)
        self.assertEqual([], rpc_methods(m))

    def test_incompatible_daemon_touches_nothing(self):
        with aioresponses() as m:
            m.get(SOURCE, body="udp://a:80\n")
            m.post(
                RPC_URL,
                payload={
                    "result": "success",
                    "arguments": {"rpc-version": 10, "rpc-version-minimum": 1},
                },
            )

            code = main(ARGV)

        self.assertEqual(EXIT_FATAL, code)
        self.assertEqual(["session-get"], rpc_methods(m))

    def test_malformed_torrent_list_is_fatal(self):
        with aioresponses() as m:
            m.get(SOURCE, body="udp://a:80\n")
            m.post(RPC_URL, payload=SESSION_GET)
            m.post(RPC_URL, body="[]")

            code = main(ARGV)

        self.assertEqual(EXIT_FATAL, code)
        self.assertEqual(["session-get", "torrent-get"], rpc_methods(m))

    def test_failed_torrent_gives_partial_exit_code(self):
        torrents = torrent_get(
            {"id": 1, "name": "one", "trackers": []},
            {"id": 2, "name": "two", "trackers": []},
        )
        with aioresponses() as m:
            m.get(SOURCE, body="udp://a:80\n")
            m.post(RPC_URL, payload=SESSION_GET)
            m.post(RPC_URL, payload=torrents)
            m.post(RPC_URL, status=500, body="oops")
            m.post(RPC_URL, payload=OK)

            code = main(ARGV)

        self.assertEqual(EXIT_PARTIAL, code)
        self.assertEqual(["session-get", "torrent-get", "torrent-set", "torrent-set"], rpc_methods(m))

    def test_abort_on_error(self):
        torrents = torrent_get(
            {"id": 1, "name": "one", "trackers": []},
            {"id": 2, "name": "two", "trackers": []},
        )
        with aioresponses() as m:
            m.get(SOURCE, body="udp://a:80\n")
            m.post(RPC_URL, payload=SESSION_GET)
            m.post(RPC_URL, payload=torrents)
            m.post(RPC_URL, status=500, body="oops")

            code = main(ARGV + ["--abort-on-error"])

        self.assertEqual(EXIT_FATAL, code)
        self.assertEqual(["session-get", "torrent-get", "torrent-set"], rpc_methods(m))

    def test_writes_metrics_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "trackersync.prom")
            with aioresponses() as m:
                m.get(SOURCE, body="udp://a:80\n")
                m.post(RPC_URL, payload=SESSION_GET)
                m.post(RPC_URL, payload=torrent_get())

                code = main(ARGV + ["--metrics-file", path])

            self.assertEqual(EXIT_OK, code)
            with open(path) as f:
                metrics = f.read()
        self.assertIn("trackersync_last_run_success 1.0", metrics)
        self.assertIn("trackersync_http_client_request_duration_seconds", metrics)
