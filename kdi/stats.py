from contextlib import nullcontext
from typing import ContextManager

from statsd import StatsClient


class ScopedStatsClient:
    """
    A statsd client wrapper that prefixes every metric with a scope, e.g. "mapping".

    All scoped clients share one underlying StatsClient. Until one is installed
    with set_stats_client(), every call is a no-op.
    """

    _client: StatsClient | None = None

    def __init__(self, prefix: str | None = None):
        self._scope_prefix = prefix

    def get_stats_client(self, prefix: str) -> "ScopedStatsClient":
        if self._scope_prefix:
            prefix = f"{self._scope_prefix}.{prefix}"
        return ScopedStatsClient(prefix)

    @staticmethod
    def set_stats_client(stats_client: StatsClient | None) -> None:
        ScopedStatsClient._client = stats_client

    def _stat(self, stat: str) -> str:
        if self._scope_prefix:
            return f"{self._scope_prefix}.{stat}"
        return stat

    def incr(self, stat: str, count: int = 1, rate: float = 1.0) -> None:
        if ScopedStatsClient._client is not None:
            ScopedStatsClient._client.incr(self._stat(stat), count, rate)

    def gauge(self, stat: str, value: int, rate: float = 1.0, delta: bool = False) -> None:
        if ScopedStatsClient._client is not None:
            ScopedStatsClient._client.gauge(self._stat(stat), value, rate, delta)

    def timer(self, stat: str, rate: float = 1.0) -> ContextManager:
        if ScopedStatsClient._client is not None:
            return ScopedStatsClient._client.timer(self._stat(stat), rate)
        return nullcontext()


_scoped_stats_client = ScopedStatsClient()


def set_stats_client(stats_client: StatsClient | None) -> None:
    ScopedStatsClient.set_stats_client(stats_client)


def get_stats_client(prefix: str) -> ScopedStatsClient:
    return _scoped_stats_client.get_stats_client(prefix)
