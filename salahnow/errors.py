"""Error types raised by the prayer time clients, cache and service."""


class PrayerTimesError(Exception):
    """Base class for every error raised by salahnow."""


class UpstreamUnreachable(PrayerTimesError):
    """Network failure, timeout or non-2xx response from an upstream."""

    def __init__(self, upstream: str, detail: str = ""):
        self.upstream = upstream
        self.detail = detail
        msg = f"{upstream} is unreachable"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class MalformedResponse(PrayerTimesError):
    """Upstream answered, but the body could not be decoded into prayer times."""

    def __init__(self, upstream: str, detail: str = ""):
        self.upstream = upstream
        self.detail = detail
        msg = f"Malformed response from {upstream}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class DateNotFound(PrayerTimesError):
    def __init__(self, date: str):
        self.date = date
        super().__init__(f"No prayer times found for {date}")


class SourceResolutionFailed(PrayerTimesError):
    """A district id was required but none could be resolved for the location."""

    def __init__(self, location):
        self.location = location
        super().__init__(
            f"Could not resolve a Diyanet district for {location.city}, {location.country_code}"
        )


class StorageUnavailable(PrayerTimesError):
    """The local cache store cannot be read or written. Never fatal."""
