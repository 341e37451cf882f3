"""
Recommendation thresholds.

Every limit the reports compare against is a named field of
:class:`ReportThresholds` with a default, so callers can override any of
them in code or through a YAML file (see ``thresholds.yml`` at the
project root).
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class ReportThresholds:
    """
    Limits that turn measurements into recommendations.

    Attributes:
        min_success_rate_percent: Load tier success rate below this warns.
        max_avg_response_ms: Load tier average latency above this warns.
        min_requests_per_sec: Load tier throughput below this warns.
        max_query_avg_ms: Average over successful probes above this warns.
        max_slowest_query_ms: Slowest probe above this warns.
        slow_query_ms: Probes above this are counted as slow.
        max_cpu_percent: Average host CPU above this warns.
        max_memory_percent: Average host memory use above this warns.
        max_heap_mb: Average process heap above this warns.
        max_load_per_core: Average 1-minute load above
            ``cores * max_load_per_core`` warns.
    """

    min_success_rate_percent: float = 95.0
    max_avg_response_ms: float = 1000.0
    min_requests_per_sec: float = 10.0
    max_query_avg_ms: float = 100.0
    max_slowest_query_ms: float = 1000.0
    slow_query_ms: float = 500.0
    max_cpu_percent: float = 80.0
    max_memory_percent: float = 80.0
    max_heap_mb: float = 500.0
    max_load_per_core: float = 1.0

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> ReportThresholds:
        """
        Build thresholds from a plain mapping, keeping defaults for absent keys.

        Raises:
            ValueError: If a key is unknown or a value is not numeric.
        """
        known = {field.name for field in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown threshold keys: {unknown}")

        values: dict[str, float] = {}
        for key, raw in data.items():
            if isinstance(raw, bool):
                raise ValueError(f"Threshold '{key}' must be numeric, got {raw!r}")
            try:
                values[key] = float(raw)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Threshold '{key}' must be numeric, got {raw!r}") from exc
        return cls(**values)


def load_thresholds(path: Path | str | None) -> ReportThresholds:
    """
    Read thresholds from a YAML file.

    Args:
        path: YAML file location. ``None`` or a missing file yields the
            defaults.

    Raises:
        ValueError: If the file is not a mapping or holds invalid values.
    """
    if path is None:
        return ReportThresholds()
    path = Path(path)
    if not path.exists():
        return ReportThresholds()

    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Thresholds file {path} must contain a mapping")
    return ReportThresholds.from_mapping(data)
