class MetricFamilies:
    """Metric names recognised in the remote exposition"""

    # Counters (the exporter appends _total; the bare name is the legacy form)
    TOOL_CALLS_TOTAL = "ark_tool_calls_total"
    TOOL_CALLS_LEGACY = "ark_tool_calls"
    MCP_CALLS_TOTAL = "ark_mcp_calls_total"

    # Latency sum/count pairs
    TOOL_LATENCY_SUM = "ark_tool_latency_ms_sum"
    TOOL_LATENCY_COUNT = "ark_tool_latency_ms_count"
    MCP_LATENCY_SUM = "ark_mcp_latency_ms_sum"
    MCP_LATENCY_COUNT = "ark_mcp_latency_ms_count"

    @classmethod
    def tool_calls(cls) -> tuple[str, ...]:
        return (cls.TOOL_CALLS_TOTAL, cls.TOOL_CALLS_LEGACY)

    @classmethod
    def tool_latency(cls) -> tuple[str, ...]:
        return (cls.TOOL_LATENCY_SUM, cls.TOOL_LATENCY_COUNT)

    @classmethod
    def is_tool_call(cls, name: str) -> bool:
        return name in cls.tool_calls()

    @classmethod
    def is_tool_latency(cls, name: str) -> bool:
        return name in cls.tool_latency()
