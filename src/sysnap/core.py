"""
Core orchestration module for sysnap.

Runs the pipeline: probes -> aggregation -> serialization -> encryption ->
delivery. Each stage consumes the previous stage's output; any failure after
aggregation is fatal for the run.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from sysnap.aggregator import CollectionReport, collect_report
from sysnap.config import Config, ConfigError, unknown_probes
from sysnap.crypto import encrypt
from sysnap.probes import build_probes
from sysnap.records import DOMAIN_RECORDS, ProbeResult, Snapshot
from sysnap.serializer import serialize
from sysnap.uploader import Uploader, UploadResult

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Outcome of a complete collect-encrypt-deliver run."""

    report: CollectionReport
    payload_size: int
    upload: UploadResult
    local_copy: Path | None = None


class SnapshotAgent:
    """
    Main orchestrator for snapshot collection and delivery.

    Probes are built on first use, so a run with bad configuration fails
    before anything is probed.
    """

    def __init__(
        self,
        config: Config | None = None,
        probes: dict[str, Callable[[], Any]] | None = None,
    ):
        self.config = config or Config()
        self._probes = probes
        self.uploader = Uploader(self.config)

    @property
    def probes(self) -> dict[str, Callable[[], Any]]:
        if self._probes is None:
            self._probes = build_probes(self.config)
        return self._probes

    def _selected(self, probe_names: list[str] | None) -> list[str]:
        names = probe_names or self.config.enabled_probes or list(DOMAIN_RECORDS)
        unknown = unknown_probes(list(names) + self.config.disabled_probes)
        if unknown:
            raise ConfigError(
                f"Unknown probes: {', '.join(unknown)} "
                f"(available: {', '.join(DOMAIN_RECORDS)})"
            )
        return [
            name
            for name in DOMAIN_RECORDS
            if name in names and name not in self.config.disabled_probes
        ]

    def collect(self, probe_names: list[str] | None = None) -> CollectionReport:
        """
        Run the selected probes and aggregate a snapshot.

        Args:
            probe_names: Optional list of probes to run. Domains not selected
                         are reported with all fields absent.

        Returns:
            CollectionReport with the snapshot and probe diagnostics.

        Raises:
            ConfigError: If a probe name is not a known domain.
        """
        selected = self._selected(probe_names)
        skipped = [name for name in DOMAIN_RECORDS if name not in selected]

        probes: dict[str, Callable[[], Any]] = {}
        for name, record_type in DOMAIN_RECORDS.items():
            if name in selected:
                probes[name] = self.probes[name]
            else:
                probes[name] = lambda record_type=record_type: ProbeResult(record_type())

        timeout = self.config.probe_timeout or None
        report = collect_report(probes, timeout=timeout)

        for name in skipped:
            report.statuses[name] = "skipped"
        if skipped:
            logger.info(f"Skipped probes: {', '.join(skipped)}")

        return report

    def seal(self, snapshot: Snapshot) -> str:
        """Serialize and encrypt a snapshot into the transport payload."""
        plaintext = serialize(snapshot)
        return encrypt(plaintext, self.config.encryption_key)

    def deliver(self, payload: str) -> UploadResult:
        """Send an encrypted payload to the configured server."""
        return self.uploader.deliver(self.config.server_address, payload)

    def run(self, probe_names: list[str] | None = None) -> RunResult:
        """
        Validate configuration, collect, encrypt and deliver.

        Raises:
            ConfigError: Before any probing, if configuration is unusable.
            SerializationError, EncryptionError: Before anything is sent.
            TransportError: If delivery fails.
        """
        self.config.validate()
        return self.ship(self.collect(probe_names))

    def ship(self, report: CollectionReport) -> RunResult:
        """Encrypt a collected snapshot and deliver it."""
        payload = self.seal(report.snapshot)

        local_copy = None
        if self.config.keep_local_copy:
            local_copy = self._save_local_copy(report.snapshot, payload)

        upload = self.deliver(payload)
        return RunResult(
            report=report,
            payload_size=len(payload),
            upload=upload,
            local_copy=local_copy,
        )

    def _save_local_copy(self, snapshot: Snapshot, payload: str) -> Path | None:
        """Write the encrypted payload to a new 0600 file in the output directory."""
        stamp = snapshot.capture_time.strftime("%Y%m%dT%H%M%S.%fZ")
        directory = Path(self.config.output_dir)
        path = directory / f"snapshot-{stamp}.enc"
        try:
            directory.mkdir(parents=True, exist_ok=True)
            for attempt in range(1, 100):
                try:
                    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
                    break
                except FileExistsError:
                    path = directory / f"snapshot-{stamp}-{attempt}.enc"
            else:
                raise FileExistsError(f"No free file name for snapshot-{stamp}")
            with os.fdopen(fd, "w", encoding="ascii") as f:
                f.write(payload)
        except OSError as e:
            logger.warning(f"Failed to write local copy to {path}: {e}")
            return None

        logger.info(f"Saved encrypted copy to {path}")
        return path


def run_collection(config: Config | None = None) -> RunResult:
    """
    Convenience function to run the full pipeline once.

    Args:
        config: Optional configuration. Loaded from default locations if
                not provided.

    Returns:
        The run result.
    """
    agent = SnapshotAgent(config or Config.load())
    return agent.run()
