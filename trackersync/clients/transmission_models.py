from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Tracker(BaseModel):
    model_config = ConfigDict(extra="ignore")

    announce: str
    id: Optional[int] = None
    scrape: Optional[str] = None
    tier: Optional[int] = None


class Torrent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = ""
    trackers: list[Tracker] = []

    @property
    def announce_urls(self) -> set[str]:
        return {t.announce for t in self.trackers}


class SessionInfo(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    rpc_version: int = Field(alias="rpc-version")
    rpc_version_minimum: int = Field(alias="rpc-version-minimum")
    version: Optional[str] = None  # daemon build, e.g. "4.0.5 (a6fe2a64aa)"


class TorrentSetPayload(BaseModel):
    ids: list[int]
    trackerAdd: list[str]
