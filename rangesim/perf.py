"""Per-kernel timing for simulation runs.

The loop wraps each kernel call in ``perf.track(name)``. A disabled
monitor yields immediately and records nothing.

Usage:
    perf = PerfMonitor(enabled=True)
    result = run_simulation(..., perf=perf)
    print(perf.report())
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict


@dataclass
class KernelTiming:
    """Accumulated wall-clock time of one kernel."""
    total_time: float = 0.0
    calls: int = 0
    slowest: float = 0.0

    @property
    def mean_time(self) -> float:
        return self.total_time / self.calls if self.calls else 0.0

    def add(self, elapsed: float) -> None:
        self.total_time += elapsed
        self.calls += 1
        self.slowest = max(self.slowest, elapsed)


class PerfMonitor:
    """Wall-clock timing per named kernel; a no-op when disabled."""

    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self._timings: Dict[str, KernelTiming] = {}

    @contextmanager
    def track(self, kernel: str):
        if not self.enabled:
            yield
            return
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._timings.setdefault(kernel, KernelTiming()).add(
                time.perf_counter() - t0
            )

    @property
    def timings(self) -> Dict[str, KernelTiming]:
        return dict(self._timings)

    def summary(self) -> Dict[str, dict]:
        """JSON-friendly {kernel: {total_s, calls, mean_ms, slowest_ms}}."""
        return {
            name: {
                'total_s': round(t.total_time, 4),
                'calls': t.calls,
                'mean_ms': round(t.mean_time * 1000, 3),
                'slowest_ms': round(t.slowest * 1000, 3),
            }
            for name, t in sorted(self._timings.items(),
                                  key=lambda item: -item[1].total_time)
        }

    def report(self) -> str:
        total = sum(t.total_time for t in self._timings.values())
        lines = [f"{'Kernel':<14} {'Total (s)':>10} {'Calls':>7} {'Mean (ms)':>10} {'%':>6}"]
        for name, t in sorted(self._timings.items(),
                              key=lambda item: -item[1].total_time):
            pct = t.total_time / total * 100 if total > 0 else 0.0
            lines.append(f"{name:<14} {t.total_time:>10.4f} {t.calls:>7} "
                         f"{t.mean_time * 1000:>10.3f} {pct:>5.1f}%")
        lines.append(f"{'TOTAL':<14} {total:>10.4f}")
        return '\n'.join(lines)
