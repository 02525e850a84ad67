import json
from typing import Dict, Iterable

from metrics_bus.domain.models import Sample, Snapshot


def composite_key(name: str, labels: Dict[str, str]) -> str:
    """Identity of a series: name plus its label set in sorted key order."""
    body = ",".join(
        f"{k}={json.dumps(labels[k], ensure_ascii=False)}" for k in sorted(labels)
    )
    return f"{name}{{{body}}}"


def key_of(sample: Sample) -> str:
    return composite_key(sample.name, sample.labels)


def build_snapshot(samples: Iterable[Sample], timestamp: int) -> Snapshot:
    entries: Dict[str, float] = {}
    for s in samples:
        # last write wins within one poll
        entries[key_of(s)] = s.value
    return Snapshot(timestamp=timestamp, entries=entries)
