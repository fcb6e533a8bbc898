"""
Snapshot aggregation.

Runs the four domain probes and composes their records into one Snapshot.
A probe that raises, returns garbage, or overruns its deadline is replaced by
the zero-value record of its domain; aggregation itself never fails.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from sysnap.records import DOMAIN_RECORDS, FieldError, ProbeResult, Snapshot

logger = logging.getLogger(__name__)

ProbeCallable = Callable[[], Any]


class ProbeTimeoutError(Exception):
    """Raised when a probe does not finish within its deadline."""

    pass


@dataclass
class CollectionReport:
    """Snapshot plus the diagnostics gathered while building it."""

    snapshot: Snapshot
    errors: list[FieldError] = field(default_factory=list)
    durations_ms: dict[str, float] = field(default_factory=dict)
    statuses: dict[str, str] = field(default_factory=dict)

    @property
    def failed_probes(self) -> list[str]:
        return [name for name, status in self.statuses.items() if status == "failed"]


def _call_with_deadline(probe: ProbeCallable, timeout: float | None) -> Any:
    """
    Call a probe, giving up after `timeout` seconds.

    The probe runs on a daemon thread so that an abandoned, still-blocked
    probe cannot keep the process alive.
    """
    if not timeout:
        return probe()

    outcome: dict[str, Any] = {}

    def target() -> None:
        try:
            outcome["value"] = probe()
        except BaseException as e:
            outcome["error"] = e

    worker = threading.Thread(target=target, name="sysnap-probe", daemon=True)
    worker.start()
    worker.join(timeout)

    if worker.is_alive():
        raise ProbeTimeoutError(f"timed out after {timeout:g}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]


def _as_result(domain: str, value: Any) -> ProbeResult:
    """Normalise what a probe returned into a ProbeResult for its domain."""
    record_type = DOMAIN_RECORDS[domain]
    if isinstance(value, ProbeResult):
        if not isinstance(value.record, record_type):
            raise TypeError(
                f"expected {record_type.__name__}, got {type(value.record).__name__}"
            )
        return value
    if isinstance(value, record_type):
        return ProbeResult(record=value)
    raise TypeError(f"expected {record_type.__name__}, got {type(value).__name__}")


def collect_report(
    probes: Mapping[str, ProbeCallable],
    timeout: float | None = None,
) -> CollectionReport:
    """
    Run all domain probes and build a CollectionReport.

    Args:
        probes: Callable per domain ("hardware", "software", "network",
                "performance"), each returning a ProbeResult or a bare
                domain record.
        timeout: Optional per-probe deadline in seconds.

    Returns:
        CollectionReport holding exactly one Snapshot.

    Raises:
        ValueError: If a domain has no probe.
    """
    missing = [domain for domain in DOMAIN_RECORDS if domain not in probes]
    if missing:
        raise ValueError(f"No probe given for: {', '.join(missing)}")

    capture_time = datetime.now(timezone.utc)
    records: dict[str, Any] = {}
    errors: list[FieldError] = []
    durations: dict[str, float] = {}
    statuses: dict[str, str] = {}

    logger.info(f"Running {len(DOMAIN_RECORDS)} probes")

    for domain, record_type in DOMAIN_RECORDS.items():
        start = time.perf_counter()
        try:
            result = _as_result(domain, _call_with_deadline(probes[domain], timeout))
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.warning(f"Probe '{domain}' failed: {message}")
            errors.append(FieldError(domain, "*", message))
            records[domain] = record_type()
            statuses[domain] = "failed"
        else:
            records[domain] = result.record
            errors.extend(result.field_errors)
            statuses[domain] = result.status
        finally:
            durations[domain] = (time.perf_counter() - start) * 1000

        logger.debug(f"Probe '{domain}' finished in {durations[domain]:.2f}ms ({statuses[domain]})")

    snapshot = Snapshot(capture_time=capture_time, **records)
    return CollectionReport(
        snapshot=snapshot,
        errors=errors,
        durations_ms=durations,
        statuses=statuses,
    )


def aggregate(
    probes: Mapping[str, ProbeCallable],
    timeout: float | None = None,
) -> Snapshot:
    """Run all domain probes and return the resulting Snapshot."""
    return collect_report(probes, timeout=timeout).snapshot
