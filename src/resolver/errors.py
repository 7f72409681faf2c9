"""Recoverable failure types.

None of these is fatal: parse failures shrink the knowledge set, backend
failures are replaced by a fixed fallback response.
"""


class ResolverError(Exception):
    pass


class ParseFailure(ResolverError):
    def __init__(self, source_id: str, reason: str) -> None:
        super().__init__(f"{source_id}: {reason}")
        self.source_id = source_id
        self.reason = reason


class BackendError(ResolverError):
    pass


class BackendTimeout(BackendError):
    pass
