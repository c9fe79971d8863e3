class TrackerSyncError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TrackerSourceError(TrackerSyncError):
    def __init__(self, message: str, url: str, status: int | None = None):
        super().__init__(message)
        self.url = url
        self.status = status


class TransmissionError(TrackerSyncError):
    def __init__(self, message: str, status: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status = status
        self.body = body


class TransmissionAuthError(TransmissionError):
    pass


class IncompatibleRPCVersionError(TransmissionError):
    def __init__(self, message: str, version: int, minimum: int, supported_minimum: int):
        super().__init__(message)
        self.version = version
        self.minimum = minimum
        self.supported_minimum = supported_minimum


class TorrentUpdateError(TrackerSyncError):
    def __init__(self, message: str, torrent_id: int, torrent_name: str):
        super().__init__(message)
        self.torrent_id = torrent_id
        self.torrent_name = torrent_name
