"""
Snapshot data model for sysnap.

Every record is a frozen dataclass. Each field defaults to None, which marks
it as absent (the probe could not determine it). Field declaration order is
the serialized key order, so it must not be changed casually.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Union


# Hardware


@dataclass(frozen=True)
class CPUInfo:
    model: str | None = None
    cores: int | None = None
    threads: int | None = None
    frequency_ghz: float | None = None
    temperature_celsius: float | None = None
    usage_percent: float | None = None


@dataclass(frozen=True)
class MemoryInfo:
    total_bytes: int | None = None
    used_bytes: int | None = None
    free_bytes: int | None = None
    usage_percent: float | None = None


@dataclass(frozen=True)
class DiskInfo:
    device: str | None = None
    type: str | None = None
    total_bytes: int | None = None
    used_bytes: int | None = None
    free_bytes: int | None = None
    usage_percent: float | None = None


@dataclass(frozen=True)
class GPUInfo:
    model: str | None = None
    memory_bytes: int | None = None
    temperature_celsius: float | None = None
    usage_percent: float | None = None


@dataclass(frozen=True)
class Motherboard:
    manufacturer: str | None = None
    model: str | None = None
    serial_number: str | None = None


@dataclass(frozen=True)
class BIOSInfo:
    vendor: str | None = None
    version: str | None = None
    release_date: str | None = None


@dataclass(frozen=True)
class USBDevice:
    name: str | None = None
    vendor_id: str | None = None
    product_id: str | None = None
    serial_number: str | None = None


@dataclass(frozen=True)
class HardwareRecord:
    cpu: CPUInfo | None = None
    memory: MemoryInfo | None = None
    disk: tuple[DiskInfo, ...] | None = None
    gpu: tuple[GPUInfo, ...] | None = None
    motherboard: Motherboard | None = None
    bios: BIOSInfo | None = None
    usb_devices: tuple[USBDevice, ...] | None = None


# Software


@dataclass(frozen=True)
class OSInfo:
    name: str | None = None
    version: str | None = None
    architecture: str | None = None
    hostname: str | None = None


@dataclass(frozen=True)
class InstalledApp:
    name: str | None = None
    version: str | None = None
    install_date: str | None = None


@dataclass(frozen=True)
class ProcessInfo:
    name: str | None = None
    pid: int | None = None
    cpu_usage_percent: float | None = None
    memory_usage_bytes: int | None = None


@dataclass(frozen=True)
class ServiceInfo:
    name: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class SoftwareRecord:
    os: OSInfo | None = None
    kernel: str | None = None
    installed_apps: tuple[InstalledApp, ...] | None = None
    running_processes: tuple[ProcessInfo, ...] | None = None
    system_services: tuple[ServiceInfo, ...] | None = None


# Network


@dataclass(frozen=True)
class InterfaceInfo:
    name: str | None = None
    mac_address: str | None = None
    ip_addresses: tuple[str, ...] | None = None
    status: str | None = None
    speed_mbps: int | None = None
    bytes_sent: int | None = None
    bytes_recv: int | None = None


@dataclass(frozen=True)
class ConnectionInfo:
    local_address: str | None = None
    local_port: int | None = None
    remote_address: str | None = None
    remote_port: int | None = None
    state: str | None = None
    process: str | None = None


@dataclass(frozen=True)
class RoutingEntry:
    destination: str | None = None
    gateway: str | None = None
    interface: str | None = None


@dataclass(frozen=True)
class DNSConfig:
    servers: tuple[str, ...] | None = None
    domain: str | None = None


@dataclass(frozen=True)
class AdvancedNetworkInfo:
    latency_ms: float | None = None
    packet_loss_percent: float | None = None
    download_speed_mbps: float | None = None
    upload_speed_mbps: float | None = None
    routing_table: tuple[RoutingEntry, ...] | None = None
    dns_configuration: DNSConfig | None = None
    vpn_status: str | None = None


@dataclass(frozen=True)
class NetworkRecord:
    interfaces: tuple[InterfaceInfo, ...] | None = None
    connections: tuple[ConnectionInfo, ...] | None = None
    dns_servers: tuple[str, ...] | None = None
    public_ip: str | None = None
    advanced_info: AdvancedNetworkInfo | None = None


# Performance


@dataclass(frozen=True)
class DiskIOMetrics:
    read_bytes_per_sec: float | None = None
    write_bytes_per_sec: float | None = None
    iops_read: float | None = None
    iops_write: float | None = None


@dataclass(frozen=True)
class NetworkIOMetrics:
    bytes_sent_per_sec: float | None = None
    bytes_recv_per_sec: float | None = None
    packets_sent_per_sec: float | None = None
    packets_recv_per_sec: float | None = None


@dataclass(frozen=True)
class Temperatures:
    cpu_celsius: float | None = None
    gpu_celsius: float | None = None
    disk_celsius: tuple[float, ...] | None = None


@dataclass(frozen=True)
class PerformanceRecord:
    cpu_usage_percent: float | None = None
    memory_usage_percent: float | None = None
    disk_io: DiskIOMetrics | None = None
    network_io: NetworkIOMetrics | None = None
    system_load: tuple[float, ...] | None = None
    temperatures: Temperatures | None = None


DomainRecord = Union[HardwareRecord, SoftwareRecord, NetworkRecord, PerformanceRecord]

# Fixed domain order; also the serialized order of the snapshot body.
DOMAIN_RECORDS: dict[str, type] = {
    "hardware": HardwareRecord,
    "software": SoftwareRecord,
    "network": NetworkRecord,
    "performance": PerformanceRecord,
}


@dataclass(frozen=True)
class Snapshot:
    """One immutable capture of a machine's state."""

    capture_time: datetime
    hardware: HardwareRecord = field(default_factory=HardwareRecord)
    software: SoftwareRecord = field(default_factory=SoftwareRecord)
    network: NetworkRecord = field(default_factory=NetworkRecord)
    performance: PerformanceRecord = field(default_factory=PerformanceRecord)


@dataclass(frozen=True)
class FieldError:
    """A single field a probe could not determine."""

    domain: str
    field: str
    message: str

    def __str__(self) -> str:
        if self.field == "*":
            return f"Probe '{self.domain}' failed: {self.message}"
        return f"Probe '{self.domain}' field '{self.field}' unavailable: {self.message}"


@dataclass(frozen=True)
class ProbeResult:
    """
    Tagged outcome of a probe run.

    A result with no field errors is "ok"; one carrying field errors is
    "partial". The record is always present, possibly with absent fields.
    """

    record: DomainRecord
    field_errors: tuple[FieldError, ...] = ()

    @property
    def status(self) -> str:
        return "partial" if self.field_errors else "ok"

    @property
    def ok(self) -> bool:
        return not self.field_errors
