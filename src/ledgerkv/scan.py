"""scan.py - Drain state iterators into ordered result collections.

Every collector takes ownership of the iterator and closes it on every exit
path. Output order is the iteration order; nothing is re-sorted. A fault
raised by the iterator aborts the scan immediately.

Skip policy for composite key scans:

- ``collect_attributes`` skips entries whose key does not decode as a
  composite key, or decodes to no attributes, so stray keys sharing the range
  do not fail the whole scan.
- ``collect_resolved`` needs the decoded key to find the value, so a decode
  failure is fatal there; entries with no attributes are skipped.

Each skip is logged and counted, both in the returned :class:`ScanStats` and
in the ``ledgerkv_scan_skipped_entries_total`` Prometheus counter.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from . import metrics
from .exceptions import MalformedKeyError
from .logger import get_logger
from .state import KV, StateIterator, StateStore

logger = get_logger(__name__)


@dataclass
class ScanStats:
    function: str = "scan"
    yielded: int = 0
    skipped: int = 0
    skipped_keys: list[str] = field(default_factory=list)

    def skip(self, key: str, reason: str) -> None:
        logger.warning(f"{self.function}: skipping key {key!r}: {reason}")
        self.skipped += 1
        self.skipped_keys.append(key)
        metrics.scan_skipped_entries.labels(function=self.function).inc()


def collect_kv(iterator: StateIterator, stats: ScanStats | None = None) -> list[KV]:
    """Collect raw ``(key, value)`` records."""
    stats = stats if stats is not None else ScanStats()
    results: list[KV] = []
    with iterator:
        for kv in iterator:
            results.append(kv)
    stats.yielded = len(results)
    return results


def collect_resolved(
    iterator: StateIterator, store: StateStore, stats: ScanStats | None = None
) -> list[KV]:
    """Resolve each index entry to the record named by its last attribute."""
    stats = stats if stats is not None else ScanStats()
    results: list[KV] = []
    with iterator:
        for kv in iterator:
            _, attributes = store.split_composite_key(kv.key)
            if not attributes:
                stats.skip(kv.key, "empty composite key parts")
                continue
            logger.debug(f"compositeKeyParts={attributes!r}")
            actual_key = attributes[-1]
            value = store.get_state(actual_key)
            results.append(KV(actual_key, value if value is not None else b""))
    stats.yielded = len(results)
    return results


def collect_attributes(
    iterator: StateIterator, store: StateStore, stats: ScanStats | None = None
) -> list[list[str]]:
    """Collect the decoded attribute list of each index entry."""
    stats = stats if stats is not None else ScanStats()
    results: list[list[str]] = []
    with iterator:
        for kv in iterator:
            try:
                _, attributes = store.split_composite_key(kv.key)
            except MalformedKeyError as e:
                stats.skip(kv.key, str(e))
                continue
            if not attributes:
                stats.skip(kv.key, "empty composite key parts")
                continue
            results.append(attributes)
    stats.yielded = len(results)
    return results
