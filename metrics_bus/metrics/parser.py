"""Best-effort parser for the Prometheus text exposition format.

Each non-empty, non-comment line yields at most one Sample. Lines that
cannot be read (unterminated label block, missing or non-finite value) are
dropped without failing the batch.
"""

from __future__ import annotations

import math
from enum import Enum, auto
from typing import Dict, List, Optional, Tuple

from metrics_bus.core.logger import get_logger
from metrics_bus.domain.models import Sample
from metrics_bus.infrastructure.instrumentation import PARSE_DROPPED_LINES_TOTAL

logger = get_logger("metrics_bus.parser")

_ESCAPES = {"n": "\n", '"': '"', "\\": "\\"}


class _State(Enum):
    KEY = auto()
    VALUE_START = auto()
    VALUE = auto()
    ESCAPE = auto()
    SEPARATOR = auto()
    SKIP = auto()


def scan_labels(line: str, start: int) -> Optional[Tuple[Dict[str, str], int]]:
    """Read a label block beginning just after its ``{``.

    Returns the labels and the index following the closing ``}``, or None
    when the block (or a quoted value inside it) is never closed. An unquoted
    value ends label reading for the line; pairs read before it are kept.
    """
    labels: Dict[str, str] = {}
    state = _State.KEY
    key_chars: List[str] = []
    value_chars: List[str] = []
    key = ""

    for i in range(start, len(line)):
        ch = line[i]
        if state is _State.KEY:
            if ch == "}":
                return labels, i + 1
            if ch == "=":
                key = "".join(key_chars).strip()
                key_chars = []
                state = _State.VALUE_START
            elif ch == ",":
                key_chars = []
            else:
                key_chars.append(ch)
        elif state is _State.VALUE_START:
            if ch == '"':
                value_chars = []
                state = _State.VALUE
            elif ch == "}":
                return labels, i + 1
            elif not ch.isspace():
                state = _State.SKIP
        elif state is _State.VALUE:
            if ch == "\\":
                state = _State.ESCAPE
            elif ch == '"':
                if key:
                    labels[key] = "".join(value_chars)
                state = _State.SEPARATOR
            else:
                value_chars.append(ch)
        elif state is _State.ESCAPE:
            value_chars.append(_ESCAPES.get(ch, ch))
            state = _State.VALUE
        elif state is _State.SEPARATOR:
            if ch == "}":
                return labels, i + 1
            if ch != "," and not ch.isspace():
                key_chars = [ch]
                state = _State.KEY
        elif ch == "}":  # _State.SKIP
            return labels, i + 1
    return None


def parse_value(token: str) -> Optional[float]:
    """Finite float of ``token`` or None (NaN, +Inf and garbage are rejected)."""
    if "_" in token:
        return None
    try:
        value = float(token)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_line(line: str) -> Optional[Sample]:
    brace = line.find("{")
    if brace >= 0 and not any(c.isspace() for c in line[:brace].strip()):
        name = line[:brace].strip()
        scanned = scan_labels(line, brace + 1)
        if scanned is None:
            return None
        labels, end = scanned
        rest = line[end:]
    else:
        parts = line.split(None, 1)
        if len(parts) < 2:
            return None
        name, rest = parts
        labels = {}
    tokens = rest.split()
    if not name or not tokens:
        return None
    # A second token would be the optional exposition timestamp
    value = parse_value(tokens[0])
    if value is None:
        return None
    return Sample(name=name, labels=labels, value=value)


def parse_exposition(text: str) -> List[Sample]:
    samples: List[Sample] = []
    dropped = 0
    for raw in text.split("\n"):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        sample = parse_line(line)
        if sample is None:
            dropped += 1
            continue
        samples.append(sample)
    if dropped:
        PARSE_DROPPED_LINES_TOTAL.inc(dropped)
        logger.debug(
            "exposition_lines_dropped",
            extra={"dropped": dropped, "parsed": len(samples)},
        )
    return samples
