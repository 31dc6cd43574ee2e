"""Small in-process metrics registry rendered in the Prometheus text format."""

from __future__ import annotations

from threading import Lock
from typing import Iterable, Sequence


def _format_value(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return f"{value:.6f}".rstrip("0").rstrip(".")


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _label_block(names: Sequence[str], values: Sequence[str]) -> str:
    if not names:
        return ""
    body = ",".join(f'{name}="{_escape(value)}"' for name, value in zip(names, values))
    return "{" + body + "}"


class Metric:
    """A named family of samples keyed by label values."""

    kind = "untyped"

    def __init__(self, name: str, description: str, label_names: Sequence[str] = ()) -> None:
        self.name = name
        self.description = description
        self.label_names = tuple(label_names)
        self._values: dict[tuple[str, ...], float] = {}
        self._lock = Lock()

    def labels(self, *values: object) -> "BoundMetric":
        if len(values) != len(self.label_names):
            raise ValueError(
                f"Metric '{self.name}' takes {len(self.label_names)} label values, got {len(values)}"
            )
        return BoundMetric(self, tuple(str(value) for value in values))

    def value(self, *values: object) -> float:
        """Current sample for the given label values (0 when never touched)."""

        key = tuple(str(value) for value in values)
        with self._lock:
            return self._values.get(key, 0.0)

    def _add(self, key: tuple[str, ...], amount: float) -> None:
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + amount

    def _put(self, key: tuple[str, ...], value: float) -> None:
        with self._lock:
            self._values[key] = float(value)

    def _unlabelled(self) -> tuple[str, ...]:
        if self.label_names:
            raise ValueError(f"Metric '{self.name}' requires labels {list(self.label_names)}")
        return ()

    def render(self) -> list[str]:
        lines = [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.kind}"]
        with self._lock:
            samples = sorted(self._values.items())
        if not samples:
            lines.append(f"{self.name} 0")
        for key, value in samples:
            lines.append(f"{self.name}{_label_block(self.label_names, key)} {_format_value(value)}")
        return lines


class Counter(Metric):
    kind = "counter"

    def inc(self, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("Counters only go up")
        self._add(self._unlabelled(), amount)


class Gauge(Metric):
    kind = "gauge"

    def set(self, value: float) -> None:
        self._put(self._unlabelled(), value)

    def inc(self, amount: float = 1.0) -> None:
        self._add(self._unlabelled(), amount)

    def dec(self, amount: float = 1.0) -> None:
        self._add(self._unlabelled(), -amount)


class BoundMetric:
    """A metric pinned to one label value tuple: ``metric.labels("a").inc()``."""

    def __init__(self, metric: Metric, key: tuple[str, ...]) -> None:
        self._metric = metric
        self._key = key

    def inc(self, amount: float = 1.0) -> None:
        if isinstance(self._metric, Counter) and amount < 0:
            raise ValueError("Counters only go up")
        self._metric._add(self._key, amount)

    def dec(self, amount: float = 1.0) -> None:
        if not isinstance(self._metric, Gauge):
            raise AttributeError("Only gauges support dec()")
        self._metric._add(self._key, -amount)

    def set(self, value: float) -> None:
        if not isinstance(self._metric, Gauge):
            raise AttributeError("Only gauges support set()")
        self._metric._put(self._key, value)


class MetricsRegistry:
    """Collects metric families and renders them for scraping."""

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}
        self._lock = Lock()

    def _register(self, metric: Metric) -> Metric:
        with self._lock:
            if metric.name in self._metrics:
                raise ValueError(f"Metric '{metric.name}' already registered")
            self._metrics[metric.name] = metric
        return metric

    def counter(self, name: str, description: str, *, label_names: Iterable[str] = ()) -> Counter:
        return self._register(Counter(name, description, tuple(label_names)))  # type: ignore[return-value]

    def gauge(self, name: str, description: str, *, label_names: Iterable[str] = ()) -> Gauge:
        return self._register(Gauge(name, description, tuple(label_names)))  # type: ignore[return-value]

    def render(self) -> str:
        lines: list[str] = []
        for name in sorted(self._metrics):
            lines.extend(self._metrics[name].render())
        return "\n".join(lines) + "\n"


# Shared registry instance used across the backend.
registry = MetricsRegistry()
