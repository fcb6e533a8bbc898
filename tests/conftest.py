"""
Pytest fixtures and configuration for sysnap tests.

Provides fixture domain records, fixture probes, configuration files and
HTTP response mocks shared across the test suite.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from sysnap.config import Config
from sysnap.records import (
    AdvancedNetworkInfo,
    BIOSInfo,
    CPUInfo,
    DiskInfo,
    DiskIOMetrics,
    DNSConfig,
    HardwareRecord,
    InterfaceInfo,
    MemoryInfo,
    NetworkIOMetrics,
    NetworkRecord,
    OSInfo,
    PerformanceRecord,
    ProbeResult,
    ProcessInfo,
    RoutingEntry,
    ServiceInfo,
    Snapshot,
    SoftwareRecord,
    Temperatures,
)

ZERO_KEY_HEX = "00" * 32


# Fixture records
@pytest.fixture
def hardware_record():
    """Hardware record for an 8-core machine."""
    return HardwareRecord(
        cpu=CPUInfo(
            model="Intel(R) Core(TM) i7-8550U CPU @ 1.80GHz",
            cores=8,
            threads=16,
            frequency_ghz=1.8,
            temperature_celsius=45.0,
            usage_percent=12.5,
        ),
        memory=MemoryInfo(
            total_bytes=17179869184,
            used_bytes=8589934592,
            free_bytes=8589934592,
            usage_percent=50.0,
        ),
        disk=(
            DiskInfo(
                device="/dev/nvme0n1p5",
                type="ext4",
                total_bytes=53687091200,
                used_bytes=26843545600,
                free_bytes=26843545600,
                usage_percent=50.0,
            ),
        ),
        gpu=(),
        bios=BIOSInfo(vendor="Dell Inc.", version="1.22.0", release_date="05/25/2023"),
        usb_devices=(),
    )


@pytest.fixture
def software_record():
    return SoftwareRecord(
        os=OSInfo(
            name="Fedora Linux 39 (Workstation Edition)",
            version="39",
            architecture="x86_64",
            hostname="fedora",
        ),
        kernel="6.5.11-300.fc39.x86_64",
        installed_apps=(),
        running_processes=(
            ProcessInfo(name="systemd", pid=1, cpu_usage_percent=0.0, memory_usage_bytes=9957376),
        ),
        system_services=(ServiceInfo(name="sshd.service", status="active"),),
    )


@pytest.fixture
def network_record():
    return NetworkRecord(
        interfaces=(
            InterfaceInfo(
                name="eth0",
                mac_address="52:54:00:12:34:56",
                ip_addresses=("192.168.1.100",),
                status="up",
                speed_mbps=1000,
                bytes_sent=1000,
                bytes_recv=2000,
            ),
        ),
        connections=(),
        dns_servers=("192.168.1.1",),
        public_ip="203.0.113.5",
        advanced_info=AdvancedNetworkInfo(
            latency_ms=12.3,
            packet_loss_percent=0.0,
            download_speed_mbps=0.5,
            upload_speed_mbps=0.1,
            routing_table=(
                RoutingEntry(destination="0.0.0.0/0", gateway="192.168.1.1", interface="eth0"),
            ),
            dns_configuration=DNSConfig(servers=("192.168.1.1",), domain="home.local"),
            vpn_status="inactive",
        ),
    )


@pytest.fixture
def performance_record():
    return PerformanceRecord(
        cpu_usage_percent=12.5,
        memory_usage_percent=50.0,
        disk_io=DiskIOMetrics(
            read_bytes_per_sec=4096.0,
            write_bytes_per_sec=8192.0,
            iops_read=1.0,
            iops_write=2.0,
        ),
        network_io=NetworkIOMetrics(
            bytes_sent_per_sec=100.0,
            bytes_recv_per_sec=200.0,
            packets_sent_per_sec=1.0,
            packets_recv_per_sec=2.0,
        ),
        system_load=(0.5, 0.25, 0.1),
        temperatures=Temperatures(cpu_celsius=45.0, gpu_celsius=None, disk_celsius=(38.0,)),
    )


@pytest.fixture
def fixture_probes(hardware_record, software_record, network_record, performance_record):
    """Probes returning the fixture records."""
    return {
        "hardware": lambda: ProbeResult(hardware_record),
        "software": lambda: ProbeResult(software_record),
        "network": lambda: ProbeResult(network_record),
        "performance": lambda: ProbeResult(performance_record),
    }


@pytest.fixture
def fixture_snapshot(hardware_record, software_record, network_record, performance_record):
    return Snapshot(
        capture_time=datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
        hardware=hardware_record,
        software=software_record,
        network=network_record,
        performance=performance_record,
    )


# Configuration fixtures
@pytest.fixture
def zero_key():
    """32-byte all-zero key as hex."""
    return ZERO_KEY_HEX


@pytest.fixture
def sample_config(tmp_path):
    """Valid configuration for testing."""
    return Config(
        server_address="https://collector.example.com/api/v1/snapshots",
        encryption_key=ZERO_KEY_HEX,
        upload_timeout=30,
        probe_timeout=0,
        output_dir=str(tmp_path / "output"),
    )


@pytest.fixture
def temp_config_file(tmp_path):
    """Create a temporary key=value config file."""
    config_file = tmp_path / "config.ini"
    config_file.write_text(
        "; sysnap test configuration\n"
        "# server to deliver to\n"
        "server_address = https://collector.example.com/api/v1/snapshots\n"
        f"encryption_key = {ZERO_KEY_HEX}\n"
        "\n"
        "probe_timeout = 0\n"
        f"output_dir = {tmp_path / 'output'}\n"
    )
    return config_file


# HTTP mocks
def _response(status_code: int, text: str = ""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.ok = 200 <= status_code < 300
    return response


@pytest.fixture
def mock_server_success():
    """Mock collector that accepts the payload."""
    return _response(200, "OK")


@pytest.fixture
def mock_server_error():
    """Mock collector that returns a server error."""
    return _response(500, '{"error": "Internal server error"}')


@pytest.fixture
def mock_server_created():
    """Mock collector that answers 201, which is not accepted."""
    return _response(201, "Created")
