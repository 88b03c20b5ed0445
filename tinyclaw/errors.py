class TinyclawError(Exception):
    """Base exception for tinyclaw domain errors."""

    pass


class ConfigError(TinyclawError):
    """Raised when config.yaml or settings.json cannot be read."""

    pass


class ClaimConflict(TinyclawError):
    """Raised when a queue file vanished before it could be claimed."""

    pass


class InvalidMessage(TinyclawError):
    """Raised when a queue file is not a well-formed inbound message."""

    pass


class BackendError(TinyclawError):
    """Raised when a backend subprocess fails or emits unparseable output."""

    pass


class DelegationCapExceeded(TinyclawError):
    """Raised when dispatching mentions would exceed the conversation turn cap."""

    def __init__(self, requested: int, total: int, limit: int):
        super().__init__(
            f"{requested} delegation(s) would exceed limit ({total}/{limit} turns used)"
        )
        self.requested = requested
        self.total = total
        self.limit = limit


class OrphanedDelegation(TinyclawError):
    """Raised when a delegated message targets a conversation already closed."""

    pass


class IOFailure(TinyclawError):
    """Raised when an outbound or re-queued file cannot be written."""

    pass
