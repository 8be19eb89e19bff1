"""Custom exceptions for ctxexpand."""


class CtxExpandError(Exception):
    """Base exception for all ctxexpand errors."""


class ConfigError(CtxExpandError):
    """Configuration-related errors."""


class HierarchyQueryError(CtxExpandError):
    """A parent/child/content lookup against the hierarchy backend failed."""


class ReferenceResolutionError(CtxExpandError):
    """Inline block references could not be resolved."""


class SnapshotError(CtxExpandError):
    """Malformed hierarchy snapshot file."""


class ExpansionTimeoutError(CtxExpandError):
    """The expansion did not finish before its deadline."""

    def __init__(self, deadline: float):
        super().__init__(f"Context expansion exceeded its {deadline:.1f}s deadline")
        self.deadline = deadline
