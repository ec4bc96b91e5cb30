"""Process-local counters and histograms for import passes.

Names are dotted, e.g. ``importer.topics.imported``. ``get_counters`` folds
each histogram into ``histo.<name>.<bucket>``, ``histo.<name>.sum`` and
``histo.<name>.count`` so a diagnostics dump stays a flat ``dict[str, int]``.
"""

from __future__ import annotations

import bisect
from collections import Counter
from dataclasses import dataclass, field

# Upper bounds in milliseconds; a pass over a full catalog takes seconds
PASS_DURATION_BUCKETS_MS: tuple[int, ...] = (10, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000)


@dataclass
class _Histogram:
    bounds: tuple[int, ...]
    buckets: Counter[str] = field(default_factory=Counter)
    total: int = 0
    count: int = 0

    def observe(self, value: int) -> None:
        i = bisect.bisect_left(self.bounds, value)
        label = f"le_{self.bounds[i]}" if i < len(self.bounds) else f"gt_{self.bounds[-1]}"
        self.buckets[label] += 1
        self.total += value
        self.count += 1


_counters: Counter[str] = Counter()
_histograms: dict[str, _Histogram] = {}


def inc_counter(name: str, value: int = 1) -> None:
    _counters[name] += int(value)


def get_counter(name: str) -> int:
    return _counters[name]


def observe_histogram(
    name: str, value: int, *, buckets: tuple[int, ...] = PASS_DURATION_BUCKETS_MS
) -> None:
    """Record ``value`` in the named histogram.

    The bucket layout is fixed by the first observation of ``name``. Values
    above the last bound land in ``gt_<last>``.
    """
    hist = _histograms.get(name)
    if hist is None:
        hist = _histograms[name] = _Histogram(tuple(sorted(buckets)))
    hist.observe(int(value))


def get_counters() -> dict[str, int]:
    out = {name: n for name, n in _counters.items() if n}
    for name, hist in _histograms.items():
        out.update({f"histo.{name}.{label}": n for label, n in hist.buckets.items()})
        out[f"histo.{name}.sum"] = hist.total
        out[f"histo.{name}.count"] = hist.count
    return out


def reset_counters() -> None:
    _counters.clear()
    _histograms.clear()
