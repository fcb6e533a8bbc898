"""
Unit tests for SnapshotAgent class.

Tests probe selection, pipeline ordering, sealing and local copies.
"""

from __future__ import annotations

import base64
import json
import os
import stat
from unittest.mock import MagicMock, patch

import pytest

from sysnap import aggregator
from sysnap.config import Config, ConfigError
from sysnap.core import RunResult, SnapshotAgent, run_collection
from sysnap.crypto import KeyLengthError, decrypt
from sysnap.records import NetworkRecord, PerformanceRecord, SoftwareRecord
from sysnap.serializer import serialize
from sysnap.uploader import TransportError, UploadResult


def _ok_upload():
    return UploadResult(success=True, status_code=200)


class TestSnapshotAgentInitialization:
    """Test SnapshotAgent initialization."""

    def test_init_with_config(self, sample_config):
        agent = SnapshotAgent(sample_config)
        assert agent.config is sample_config
        assert agent.uploader.config is sample_config

    def test_init_without_config(self):
        agent = SnapshotAgent()
        assert isinstance(agent.config, Config)

    def test_probes_built_lazily(self, sample_config):
        with patch("sysnap.core.build_probes") as mock_build:
            mock_build.return_value = {"hardware": MagicMock()}
            agent = SnapshotAgent(sample_config)
            mock_build.assert_not_called()
            assert agent.probes == {"hardware": mock_build.return_value["hardware"]}
            agent.probes
            mock_build.assert_called_once_with(sample_config)

    def test_injected_probes_used(self, sample_config, fixture_probes):
        agent = SnapshotAgent(sample_config, probes=fixture_probes)
        assert agent.probes is fixture_probes


class TestCollect:
    """Test SnapshotAgent.collect()."""

    def test_collect_all(self, sample_config, fixture_probes, hardware_record):
        report = SnapshotAgent(sample_config, probes=fixture_probes).collect()
        assert report.snapshot.hardware == hardware_record
        assert set(report.statuses.values()) == {"ok"}

    def test_collect_selected_only(self, sample_config, fixture_probes, hardware_record):
        network_probe = MagicMock()
        probes = dict(fixture_probes, network=network_probe)

        report = SnapshotAgent(sample_config, probes=probes).collect(["hardware"])

        network_probe.assert_not_called()
        assert report.snapshot.hardware == hardware_record
        assert report.snapshot.network == NetworkRecord()
        assert report.snapshot.software == SoftwareRecord()
        assert report.statuses == {
            "hardware": "ok",
            "software": "skipped",
            "network": "skipped",
            "performance": "skipped",
        }
        assert report.errors == []

    def test_enabled_probes_from_config(self, sample_config, fixture_probes):
        sample_config.enabled_probes = ["performance"]
        report = SnapshotAgent(sample_config, probes=fixture_probes).collect()
        assert report.statuses["performance"] == "ok"
        assert report.statuses["hardware"] == "skipped"

    def test_disabled_probes_from_config(self, sample_config, fixture_probes):
        sample_config.disabled_probes = ["network"]
        report = SnapshotAgent(sample_config, probes=fixture_probes).collect()
        assert report.statuses["network"] == "skipped"
        assert report.snapshot.network == NetworkRecord()
        assert report.statuses["hardware"] == "ok"

    def test_unknown_probe_name_rejected(self, sample_config):
        probe = MagicMock()
        probes = {"hardware": probe, "software": probe, "network": probe, "performance": probe}
        with pytest.raises(ConfigError, match="Unknown probes: hardwar"):
            SnapshotAgent(sample_config, probes=probes).collect(["hardwar"])
        probe.assert_not_called()

    def test_unknown_disabled_probe_rejected(self, sample_config, fixture_probes):
        sample_config.disabled_probes = ["netwrok"]
        with pytest.raises(ConfigError, match="netwrok"):
            SnapshotAgent(sample_config, probes=fixture_probes).collect()

    def test_probe_timeout_passed(self, sample_config, fixture_probes):
        sample_config.probe_timeout = 3.0
        agent = SnapshotAgent(sample_config, probes=fixture_probes)
        with patch("sysnap.core.collect_report", wraps=aggregator.collect_report) as mock_collect:
            agent.collect()
        assert mock_collect.call_args.kwargs["timeout"] == 3.0

    def test_zero_probe_timeout_disables_deadline(self, sample_config, fixture_probes):
        agent = SnapshotAgent(sample_config, probes=fixture_probes)
        with patch("sysnap.core.collect_report", wraps=aggregator.collect_report) as mock_collect:
            agent.collect()
        assert mock_collect.call_args.kwargs["timeout"] is None


class TestSeal:
    """Test SnapshotAgent.seal()."""

    def test_seal_round_trip(self, sample_config, fixture_snapshot):
        payload = SnapshotAgent(sample_config).seal(fixture_snapshot)
        assert decrypt(payload, sample_config.encryption_key) == serialize(fixture_snapshot)

    def test_seal_length(self, sample_config, fixture_snapshot):
        payload = SnapshotAgent(sample_config).seal(fixture_snapshot)
        expected = len(base64.urlsafe_b64encode(b"\0" * (16 + len(serialize(fixture_snapshot)))))
        assert len(payload) == expected

    def test_seal_bad_key(self, sample_config, fixture_snapshot):
        sample_config.encryption_key = "ab" * 10
        with pytest.raises(KeyLengthError):
            SnapshotAgent(sample_config).seal(fixture_snapshot)


class TestRun:
    """Test SnapshotAgent.run()."""

    def test_run_success(self, sample_config, fixture_probes):
        agent = SnapshotAgent(sample_config, probes=fixture_probes)
        with patch.object(agent.uploader, "deliver", return_value=_ok_upload()) as mock_deliver:
            result = agent.run()

        assert isinstance(result, RunResult)
        assert result.upload.success is True
        mock_deliver.assert_called_once()
        address, payload = mock_deliver.call_args.args
        assert address == sample_config.server_address
        assert result.payload_size == len(payload)

        plaintext = decrypt(payload, sample_config.encryption_key)
        assert json.loads(plaintext)["hardware"]["cpu"]["cores"] == 8

    def test_invalid_config_fails_before_probing(self, fixture_probes):
        probe = MagicMock()
        agent = SnapshotAgent(Config(server_address="https://x.example"), probes=dict(fixture_probes, hardware=probe))
        with patch.object(agent.uploader, "deliver") as mock_deliver:
            with pytest.raises(ConfigError):
                agent.run()
        probe.assert_not_called()
        mock_deliver.assert_not_called()

    def test_transport_error_propagates(self, sample_config, fixture_probes):
        agent = SnapshotAgent(sample_config, probes=fixture_probes)
        with patch.object(agent.uploader, "deliver", side_effect=TransportError("HTTP 500", status_code=500)):
            with pytest.raises(TransportError):
                agent.run()

    def test_probe_failure_still_delivers(self, sample_config, fixture_probes):
        def broken():
            raise RuntimeError("no sensors")

        agent = SnapshotAgent(sample_config, probes=dict(fixture_probes, performance=broken))
        with patch.object(agent.uploader, "deliver", return_value=_ok_upload()) as mock_deliver:
            result = agent.run()

        assert result.report.failed_probes == ["performance"]
        assert result.report.snapshot.performance == PerformanceRecord()
        mock_deliver.assert_called_once()

    def test_no_local_copy_by_default(self, sample_config, fixture_probes, tmp_path):
        agent = SnapshotAgent(sample_config, probes=fixture_probes)
        with patch.object(agent.uploader, "deliver", return_value=_ok_upload()):
            result = agent.run()
        assert result.local_copy is None
        assert not (tmp_path / "output").exists()

    def test_local_copy_written(self, sample_config, fixture_probes):
        sample_config.keep_local_copy = True
        agent = SnapshotAgent(sample_config, probes=fixture_probes)
        with patch.object(agent.uploader, "deliver", return_value=_ok_upload()) as mock_deliver:
            result = agent.run()

        assert result.local_copy is not None
        assert result.local_copy.name.startswith("snapshot-")
        assert result.local_copy.suffix == ".enc"
        assert result.local_copy.read_text() == mock_deliver.call_args.args[1]
        assert stat.S_IMODE(result.local_copy.stat().st_mode) == 0o600

    def test_local_copy_failure_not_fatal(self, sample_config, fixture_probes, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        sample_config.keep_local_copy = True
        sample_config.output_dir = str(blocker / "sub")

        agent = SnapshotAgent(sample_config, probes=fixture_probes)
        with patch.object(agent.uploader, "deliver", return_value=_ok_upload()):
            result = agent.run()
        assert result.local_copy is None

    def test_local_copy_created_private(self, sample_config, fixture_snapshot):
        agent = SnapshotAgent(sample_config)
        with patch("sysnap.core.os.open", wraps=os.open) as mock_open:
            path = agent._save_local_copy(fixture_snapshot, "payload")

        assert mock_open.call_args.args[2] == 0o600
        assert mock_open.call_args.args[1] & os.O_EXCL
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_local_copy_never_overwritten(self, sample_config, fixture_snapshot):
        agent = SnapshotAgent(sample_config)
        first = agent._save_local_copy(fixture_snapshot, "first")
        second = agent._save_local_copy(fixture_snapshot, "second")

        assert first != second
        assert first.read_text() == "first"
        assert second.read_text() == "second"
        assert second.name == "snapshot-20240101T120000.000000Z-1.enc"


class TestRunCollection:
    def test_run_collection_uses_config(self, sample_config):
        with patch("sysnap.core.SnapshotAgent") as mock_agent_class:
            mock_agent_class.return_value.run.return_value = "result"
            assert run_collection(sample_config) == "result"
        mock_agent_class.assert_called_once_with(sample_config)

    def test_run_collection_loads_config(self, sample_config):
        with patch("sysnap.core.Config.load", return_value=sample_config) as mock_load:
            with patch("sysnap.core.SnapshotAgent") as mock_agent_class:
                run_collection()
        mock_load.assert_called_once_with()
        mock_agent_class.assert_called_once_with(sample_config)
