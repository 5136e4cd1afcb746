from __future__ import annotations


class PoolMonitorError(Exception):
    pass


class UpstreamError(PoolMonitorError):
    pass


class UpstreamFetchError(UpstreamError):
    """Pools API returned a bad status, a bad payload or could not be reached."""


class UpstreamNotifyError(UpstreamError):
    """Webhook rejected the notification or could not be reached."""


class PersistenceError(PoolMonitorError):
    pass
