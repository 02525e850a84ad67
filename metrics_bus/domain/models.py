from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN = "unknown"
SERIES_KEY_SEPARATOR = "::"


def series_key(plugin: str, tool: str) -> str:
    return f"{plugin}{SERIES_KEY_SEPARATOR}{tool}"


def dimension_of(labels: Dict[str, str]) -> Tuple[str, str]:
    """(plugin, tool) of a sample; absent or empty labels become "unknown"."""
    return labels.get("plugin") or UNKNOWN, labels.get("tool") or UNKNOWN


class Sample(BaseModel):
    """One measurement parsed from an exposition line."""

    model_config = ConfigDict(frozen=True)

    name: str
    labels: Dict[str, str] = Field(default_factory=dict)
    value: float


class Snapshot(BaseModel):
    """Samples of one poll keyed by composite key."""

    timestamp: int
    entries: Dict[str, float] = Field(default_factory=dict)


class LatencyPoint(BaseModel):
    timestamp: int = Field(strict=True)
    average_ms: float = Field(strict=True, allow_inf_nan=False)


class LatencySeries(BaseModel):
    plugin: str = UNKNOWN
    tool: str = UNKNOWN
    points: List[LatencyPoint] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return series_key(self.plugin, self.tool)


class CallTotal(BaseModel):
    plugin: str = UNKNOWN
    tool: str = UNKNOWN
    total: float = Field(default=0.0, ge=0, allow_inf_nan=False)


class MetricsPayload(BaseModel):
    """State published to subscribers after every completed poll.

    Consumers share the same instance and must not mutate it.
    """

    samples: List[Sample] = Field(default_factory=list)
    current_snapshot: Optional[Snapshot] = None
    previous_snapshot: Optional[Snapshot] = None
    overall_latency_history: List[LatencyPoint] = Field(default_factory=list)
    per_dimension_latency_history: Dict[str, LatencySeries] = Field(
        default_factory=dict
    )
    call_totals: Dict[str, CallTotal] = Field(default_factory=dict)


class ToolStat(BaseModel):
    """One row of a per-tool ranking."""

    name: str
    plugin: str
    tool: str
    value: int

    @classmethod
    def for_tool(cls, plugin: str, tool: str, value: int) -> "ToolStat":
        return cls(name=f"{plugin}/{tool}", plugin=plugin, tool=tool, value=value)
