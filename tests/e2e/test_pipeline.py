"""
End-to-end tests for the snapshot pipeline.

Runs fixture probes through aggregation, serialization, encryption and a
mocked collector, then decrypts what the collector received.
"""

from __future__ import annotations

import base64
import json
from unittest.mock import patch

import pytest

from sysnap.core import SnapshotAgent
from sysnap.crypto import IV_SIZE, decrypt
from sysnap.records import HardwareRecord, ProbeResult
from sysnap.serializer import serialize


@pytest.mark.e2e
class TestPipeline:
    """Test the full collect-encrypt-deliver pipeline."""

    def _run(self, config, probes, response):
        agent = SnapshotAgent(config, probes=probes)
        with patch.object(agent.uploader.session, "post", return_value=response) as mock_post:
            result = agent.run()
        body = mock_post.call_args.kwargs["data"]
        return result, body

    def test_collector_receives_decryptable_snapshot(
        self, sample_config, fixture_probes, mock_server_success, zero_key
    ):
        result, body = self._run(sample_config, fixture_probes, mock_server_success)

        plaintext = decrypt(body.decode("ascii"), zero_key)
        assert plaintext == serialize(result.report.snapshot)

        data = json.loads(plaintext)
        assert data["hardware"]["cpu"]["cores"] == 8
        assert data["network"]["public_ip"] == "203.0.113.5"
        assert data["software"]["kernel"] == "6.5.11-300.fc39.x86_64"

    def test_body_length_fixed_by_plaintext(
        self, sample_config, fixture_probes, mock_server_success
    ):
        result, body = self._run(sample_config, fixture_probes, mock_server_success)

        plaintext = serialize(result.report.snapshot)
        raw = base64.urlsafe_b64decode(body)
        assert len(raw) == IV_SIZE + len(plaintext)
        assert len(body) == len(base64.urlsafe_b64encode(bytes(IV_SIZE + len(plaintext))))

    def test_two_runs_use_different_ivs(self, sample_config, fixture_probes, mock_server_success):
        _, first = self._run(sample_config, fixture_probes, mock_server_success)
        _, second = self._run(sample_config, fixture_probes, mock_server_success)

        assert base64.urlsafe_b64decode(first)[:IV_SIZE] != base64.urlsafe_b64decode(second)[:IV_SIZE]

    def test_degraded_snapshot_delivered(
        self, sample_config, fixture_probes, mock_server_success, zero_key
    ):
        def broken():
            raise OSError("dmidecode: permission denied")

        probes = dict(fixture_probes, hardware=broken)
        result, body = self._run(sample_config, probes, mock_server_success)

        data = json.loads(decrypt(body.decode("ascii"), zero_key))
        assert data["hardware"] == {
            "cpu": None,
            "memory": None,
            "disk": None,
            "gpu": None,
            "motherboard": None,
            "bios": None,
            "usb_devices": None,
        }
        assert data["software"]["os"]["hostname"] == "fedora"
        assert result.report.failed_probes == ["hardware"]

    def test_partial_probe_fields_are_null(
        self, sample_config, fixture_probes, hardware_record, mock_server_success, zero_key
    ):
        partial = HardwareRecord(cpu=hardware_record.cpu, memory=hardware_record.memory)
        probes = dict(fixture_probes, hardware=lambda: ProbeResult(partial))
        _, body = self._run(sample_config, probes, mock_server_success)

        data = json.loads(decrypt(body.decode("ascii"), zero_key))
        assert data["hardware"]["cpu"]["model"].startswith("Intel")
        assert data["hardware"]["disk"] is None
        assert data["hardware"]["bios"] is None
