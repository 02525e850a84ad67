class StorageKeys:
    """Centralised keys of the persisted metrics records"""

    LATENCY_HISTORY = "ark.metrics.latency_history"
    PER_TOOL_LATENCY_HISTORY = "ark.metrics.per_tool_latency_history"
    TOOL_CALL_TOTALS = "ark.metrics.tool_call_totals"

    @classmethod
    def all_keys(cls) -> list[str]:
        return [
            cls.LATENCY_HISTORY,
            cls.PER_TOOL_LATENCY_HISTORY,
            cls.TOOL_CALL_TOTALS,
        ]

    @classmethod
    def prefixed(cls, key: str, prefix: str) -> str:
        """Namespace a record key, e.g. for a shared Redis database."""
        if not prefix:
            return key
        return f"{prefix.rstrip(':')}:{key}"
