"""
Performance metrics probe.

Collects CPU/memory utilisation, disk and network I/O rates, load average and
temperatures.
"""

from __future__ import annotations

import os
import time
from typing import Any, Callable

import psutil

from sysnap.probes.base import BaseProbe
from sysnap.records import DiskIOMetrics, NetworkIOMetrics, PerformanceRecord, Temperatures

CPU_SENSORS = ("coretemp", "k10temp", "cpu_thermal", "zenpower")
GPU_SENSORS = ("amdgpu", "nouveau", "radeon", "acpitz")
DISK_SENSORS = ("nvme", "drivetemp")


class PerformanceProbe(BaseProbe):
    """Collects point-in-time performance metrics."""

    name = "performance"
    description = "CPU/memory usage, I/O rates, load average and temperatures"
    record_type = PerformanceRecord

    def __init__(self, sample_interval: float = 1.0):
        super().__init__()
        self.sample_interval = sample_interval

    def fields(self) -> dict[str, Callable[[], Any]]:
        return {
            "cpu_usage_percent": self._get_cpu_usage,
            "memory_usage_percent": self._get_memory_usage,
            "disk_io": self._get_disk_io,
            "network_io": self._get_network_io,
            "system_load": self._get_system_load,
            "temperatures": self._get_temperatures,
        }

    def _get_cpu_usage(self) -> float:
        return psutil.cpu_percent(interval=self.sample_interval)

    def _get_memory_usage(self) -> float:
        return psutil.virtual_memory().percent

    def _rate(self, delta: int) -> float:
        return round(delta / self.sample_interval, 2)

    def _get_disk_io(self) -> DiskIOMetrics:
        """Disk throughput and IOPS summed over all disks."""
        before = psutil.disk_io_counters()
        if before is None:
            raise RuntimeError("Disk I/O counters not available")
        time.sleep(self.sample_interval)
        after = psutil.disk_io_counters()

        return DiskIOMetrics(
            read_bytes_per_sec=self._rate(after.read_bytes - before.read_bytes),
            write_bytes_per_sec=self._rate(after.write_bytes - before.write_bytes),
            iops_read=self._rate(after.read_count - before.read_count),
            iops_write=self._rate(after.write_count - before.write_count),
        )

    def _get_network_io(self) -> NetworkIOMetrics:
        """Network throughput summed over all interfaces."""
        before = psutil.net_io_counters()
        time.sleep(self.sample_interval)
        after = psutil.net_io_counters()

        return NetworkIOMetrics(
            bytes_sent_per_sec=self._rate(after.bytes_sent - before.bytes_sent),
            bytes_recv_per_sec=self._rate(after.bytes_recv - before.bytes_recv),
            packets_sent_per_sec=self._rate(after.packets_sent - before.packets_sent),
            packets_recv_per_sec=self._rate(after.packets_recv - before.packets_recv),
        )

    def _get_system_load(self) -> tuple[float, ...]:
        """1, 5 and 15 minute load averages."""
        if hasattr(os, "getloadavg"):
            return tuple(os.getloadavg())
        return tuple(psutil.getloadavg())

    def _get_temperatures(self) -> Temperatures:
        sensors = getattr(psutil, "sensors_temperatures", None)
        if sensors is None:
            raise RuntimeError("Temperature sensors not supported on this platform")

        temps = sensors()
        if not temps:
            raise RuntimeError("No temperature sensors found")

        cpu = None
        gpu = None
        disks = []
        for sensor, entries in temps.items():
            if not entries:
                continue
            if sensor.startswith(CPU_SENSORS) and cpu is None:
                cpu = entries[0].current
            elif sensor.startswith(GPU_SENSORS) and gpu is None:
                gpu = entries[0].current
            elif sensor.startswith(DISK_SENSORS):
                disks.append(entries[0].current)

        return Temperatures(cpu_celsius=cpu, gpu_celsius=gpu, disk_celsius=tuple(disks))
