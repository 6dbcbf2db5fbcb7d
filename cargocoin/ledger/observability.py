"""
Ledger metrics in Prometheus text format.

Usage:
    metrics = LedgerMetrics()
    ledger = LedgerProxy(metrics=metrics)
    ...
    print(metrics.to_prometheus())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Union


@dataclass
class Counter:
    """Simple counter metric."""
    name: str
    help: str
    labels: Dict[str, str] = field(default_factory=dict)
    _value: int = 0

    def inc(self, amount: int = 1) -> None:
        """Increment counter."""
        self._value += amount

    @property
    def value(self) -> int:
        return self._value

    def to_prometheus(self) -> str:
        """Format as Prometheus metric."""
        labels_str = ",".join(f'{k}="{v}"' for k, v in self.labels.items())
        if labels_str:
            return f"{self.name}{{{labels_str}}} {self._value}"
        return f"{self.name} {self._value}"


@dataclass
class Gauge:
    """Simple gauge metric. Integer-valued so base-unit supplies stay exact."""
    name: str
    help: str
    labels: Dict[str, str] = field(default_factory=dict)
    _value: int = 0

    def set(self, value: int) -> None:
        """Set gauge value."""
        self._value = value

    @property
    def value(self) -> int:
        return self._value

    def to_prometheus(self) -> str:
        """Format as Prometheus metric."""
        labels_str = ",".join(f'{k}="{v}"' for k, v in self.labels.items())
        if labels_str:
            return f"{self.name}{{{labels_str}}} {self._value}"
        return f"{self.name} {self._value}"


Metric = Union[Counter, Gauge]


class LedgerMetrics:
    """
    Ledger metrics collection.

    Labelled counters are created on first use, one per operation or
    rejection code.
    """

    def __init__(self, namespace: str = "cargocoin"):
        self._namespace = namespace

        self.operations_by_name: Dict[str, Counter] = {}
        self.rejections_by_code: Dict[str, Counter] = {}

        self.total_supply = Gauge(
            f"{namespace}_total_supply",
            "Current total supply in base units",
        )
        self.total_burned = Gauge(
            f"{namespace}_total_burned",
            "Cumulative burned amount in base units",
        )
        self.events_total = Counter(
            f"{namespace}_events_total",
            "Total events appended to the ledger event log",
        )
        self.subscriber_errors_total = Counter(
            f"{namespace}_subscriber_errors_total",
            "Event deliveries whose subscriber raised",
        )

    def record_operation(self, operation: str) -> None:
        """Record a committed operation."""
        if operation not in self.operations_by_name:
            self.operations_by_name[operation] = Counter(
                f"{self._namespace}_operations_total",
                "Committed ledger operations",
                labels={"operation": operation},
            )
        self.operations_by_name[operation].inc()

    def record_rejection(self, code: str) -> None:
        """Record a rejected operation by error code."""
        if code not in self.rejections_by_code:
            self.rejections_by_code[code] = Counter(
                f"{self._namespace}_rejections_total",
                "Rejected ledger operations",
                labels={"code": code},
            )
        self.rejections_by_code[code].inc()

    def observe_supply(self, total_supply: int, total_burned: int) -> None:
        self.total_supply.set(total_supply)
        self.total_burned.set(total_burned)

    def to_prometheus(self) -> str:
        """Export all metrics in Prometheus format."""
        lines: List[str] = []

        for metric in (self.total_supply, self.total_burned, self.events_total, self.subscriber_errors_total):
            kind = "counter" if isinstance(metric, Counter) else "gauge"
            lines.append(f"# HELP {metric.name} {metric.help}")
            lines.append(f"# TYPE {metric.name} {kind}")
            lines.append(metric.to_prometheus())
            lines.append("")

        for family in (self.operations_by_name, self.rejections_by_code):
            counters = list(family.values())
            if not counters:
                continue
            lines.append(f"# HELP {counters[0].name} {counters[0].help}")
            lines.append(f"# TYPE {counters[0].name} counter")
            for counter in counters:
                lines.append(counter.to_prometheus())
            lines.append("")

        return "\n".join(lines)
