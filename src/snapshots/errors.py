class SnapshotError(Exception):
    """Base for every failure the snapshot pipeline surfaces. Carries a kind + context."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def kind(self) -> str:
        return type(self).__name__

    def with_context(self, **context) -> "SnapshotError":
        self.context.update({k: v for k, v in context.items() if k not in self.context})
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message

        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class FetchError(SnapshotError):
    pass

class NetworkError(FetchError):
    """Transport failure: connect error, timeout."""

class UpstreamError(FetchError):
    """Non-success status or a payload we could not make sense of."""

class CacheError(FetchError):
    """Cache store unavailable or misbehaving."""


class InvalidTimeframe(SnapshotError, ValueError):
    pass

class MissingResolution(SnapshotError, LookupError):
    pass
