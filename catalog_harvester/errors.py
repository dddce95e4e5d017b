"""Exception hierarchy shared by the fetch, merge and download layers."""


class HarvestError(Exception):
    pass


class ConfigurationError(HarvestError):
    """Required input is missing or unusable; the whole run stops."""


class NetworkError(HarvestError):
    """Transport-level failure (connect, read, timeout, redirect loop, bad URL)."""

    def __init__(self, url: str, cause: Exception):
        super().__init__(f"{url}: {cause}")
        self.url = url
        self.cause = cause


class HttpStatusError(HarvestError):
    def __init__(self, url: str, status_code: int):
        super().__init__(f"{url}: HTTP {status_code}")
        self.url = url
        self.status_code = status_code


class DecodeError(HarvestError):
    """Payload could not be decoded or lacks a required field."""


class AccessDeniedError(HarvestError):
    """Upstream answered 403. New requests for the current phase stop."""

    def __init__(self, url: str, task=None, summary=None):
        super().__init__(f"access denied for {url}, batch halted")
        self.url = url
        self.task = task
        self.summary = summary
