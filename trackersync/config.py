import os

from pydantic import BaseModel, Field

NGOSANG = "https://raw.githubusercontent.com/ngosang/trackerslist/master/trackers_all.txt"
NGOSANG_JSDELIVR_MIRROR = "https://cdn.jsdelivr.net/gh/ngosang/trackerslist/trackers_all.txt"


def _bool_env(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


VERSION = os.getenv("BUILD_VERSION") or "0.1.0"

HOST: str = os.getenv("TRANSMISSION_HOST", "127.0.0.1")
PORT: int = int(os.getenv("TRANSMISSION_PORT", "9091"))
USE_HTTPS: bool = _bool_env("TRANSMISSION_USE_HTTPS")
USERNAME: str = os.getenv("TRANSMISSION_USERNAME", "rpcuser")
PASSWORD: str = os.getenv("TRANSMISSION_PASSWORD", "rpcpass")
RPC_PATH: str = os.getenv("TRANSMISSION_RPC_PATH", "/transmission/rpc")
DEBUG: bool = _bool_env("DEBUG")
TRACKERS_SOURCE: str = os.getenv("TRACKERS_SOURCE", NGOSANG_JSDELIVR_MIRROR)
HTTP_TIMEOUT: float = float(os.getenv("HTTP_TIMEOUT", "30"))
ABORT_ON_ERROR: bool = _bool_env("ABORT_ON_ERROR")
DRY_RUN: bool = _bool_env("DRY_RUN")
METRICS_FILE: str | None = os.getenv("METRICS_FILE") or None


class Settings(BaseModel):
    host: str = HOST
    port: int = Field(default=PORT, ge=1, le=65535)
    use_https: bool = USE_HTTPS
    username: str = USERNAME
    password: str = PASSWORD
    rpc_path: str = RPC_PATH
    debug: bool = DEBUG
    trackers_source: str = TRACKERS_SOURCE
    timeout: float = Field(default=HTTP_TIMEOUT, gt=0)
    abort_on_error: bool = ABORT_ON_ERROR
    dry_run: bool = DRY_RUN
    metrics_file: str | None = METRICS_FILE
