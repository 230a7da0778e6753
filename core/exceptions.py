"""
Pipeline error taxonomy

Upstream errors are recoverable (approximation engine), store errors are
logged and degraded around, NoIntradayData ends an end-of-day run.
"""


class PipelineError(Exception):
    """Base class for indicator pipeline errors"""


# ============================================
# UPSTREAM (source adapters)
# ============================================
class FetchError(PipelineError):
    """Source adapter could not produce observations"""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(message)
        self.source = source


class UpstreamUnreachable(FetchError):
    """Network/transport failure (connect error, timeout, retries exhausted)"""


class UpstreamBadStatus(FetchError):
    """Upstream answered with a non-2xx status"""

    def __init__(self, message: str, status_code: int, source: str | None = None):
        super().__init__(message, source=source)
        self.status_code = status_code


class UpstreamMalformed(FetchError):
    """Upstream payload could not be parsed"""


class UpstreamEmpty(FetchError):
    """Upstream returned no usable observations for the requested window"""


# ============================================
# STORE (time-series access layer)
# ============================================
class StoreError(PipelineError):
    """Persistent store operation failed"""


class StoreWriteFailed(StoreError):
    """Upsert failed (non-fatal for reads: snapshot is still served)"""


class StoreReadFailed(StoreError):
    """Query failed (treated as "no cached data")"""


# ============================================
# SERVICE
# ============================================
class UnknownIndicator(PipelineError):
    """Requested indicator is not configured"""

    def __init__(self, kind: str):
        super().__init__(f"Unknown indicator: {kind}")
        self.kind = kind


# ============================================
# END-OF-DAY
# ============================================
class NoIntradayData(PipelineError):
    """No intraday observation exists for the day being recorded"""


__all__ = [
    "PipelineError",
    "FetchError",
    "UpstreamUnreachable",
    "UpstreamBadStatus",
    "UpstreamMalformed",
    "UpstreamEmpty",
    "StoreError",
    "StoreWriteFailed",
    "StoreReadFailed",
    "UnknownIndicator",
    "NoIntradayData",
]
