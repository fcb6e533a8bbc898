"""
Hardware information probe.

Collects CPU, memory, disk, GPU, motherboard, BIOS and removable device details.
"""

from __future__ import annotations

import os
import platform
from typing import Any, Callable

import psutil

from sysnap.probes.base import BaseProbe
from sysnap.records import (
    BIOSInfo,
    CPUInfo,
    DiskInfo,
    GPUInfo,
    HardwareRecord,
    MemoryInfo,
    Motherboard,
    USBDevice,
)

DMI_ROOT = "/sys/class/dmi/id"
SYS_BLOCK = "/sys/block"

CPU_SENSORS = ("coretemp", "k10temp", "cpu_thermal", "zenpower")
GPU_PCI_CLASSES = ("vga compatible controller", "3d controller", "display controller")


class HardwareProbe(BaseProbe):
    """Collects hardware information."""

    name = "hardware"
    description = "CPU, memory, disk, GPU, motherboard, BIOS and removable devices"
    record_type = HardwareRecord

    def __init__(self, sample_interval: float = 1.0):
        super().__init__()
        self.sample_interval = sample_interval

    def fields(self) -> dict[str, Callable[[], Any]]:
        return {
            "cpu": self._get_cpu_info,
            "memory": self._get_memory_info,
            "disk": self._get_disk_info,
            "gpu": self._get_gpu_info,
            "motherboard": self._get_motherboard_info,
            "bios": self._get_bios_info,
            "usb_devices": self._get_usb_devices,
        }

    def _get_cpu_info(self) -> CPUInfo:
        """Get CPU information."""
        model = None
        for line in self.read_file_lines("/proc/cpuinfo"):
            key, _, value = line.partition(":")
            if key.strip().lower() == "model name":
                model = value.strip()
                break
        if not model:
            model = platform.processor() or None

        freq = psutil.cpu_freq()
        usage = psutil.cpu_percent(interval=self.sample_interval)

        return CPUInfo(
            model=model,
            cores=psutil.cpu_count(logical=False),
            threads=psutil.cpu_count(logical=True),
            frequency_ghz=round(freq.current / 1000, 3) if freq else None,
            temperature_celsius=self._get_cpu_temperature(),
            usage_percent=usage,
        )

    def _get_cpu_temperature(self) -> float | None:
        """Read the CPU package temperature, if the platform exposes sensors."""
        sensors = getattr(psutil, "sensors_temperatures", None)
        if sensors is None:
            return None
        try:
            temps = sensors()
        except (OSError, RuntimeError) as e:
            self.logger.debug(f"Could not read temperature sensors: {e}")
            return None
        for sensor in CPU_SENSORS:
            entries = temps.get(sensor)
            if entries:
                return entries[0].current
        return None

    def _get_memory_info(self) -> MemoryInfo:
        """Get memory information."""
        mem = psutil.virtual_memory()
        return MemoryInfo(
            total_bytes=mem.total,
            used_bytes=mem.used,
            free_bytes=mem.free,
            usage_percent=mem.percent,
        )

    def _get_disk_info(self) -> tuple[DiskInfo, ...]:
        """Get mounted disk usage; unreadable mounts are skipped."""
        disks = []

        for part in psutil.disk_partitions(all=False):
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except (PermissionError, OSError) as e:
                self.logger.debug(f"Could not get usage for {part.device}: {e}")
                continue

            disks.append(
                DiskInfo(
                    device=part.device,
                    type=part.fstype,
                    total_bytes=usage.total,
                    used_bytes=usage.used,
                    free_bytes=usage.free,
                    usage_percent=usage.percent,
                )
            )

        return tuple(disks)

    def _get_gpu_info(self) -> tuple[GPUInfo, ...]:
        """Get GPU models from the PCI device list."""
        stdout = self.require_command(["lspci", "-mm"])

        gpus = []
        for line in stdout.strip().split("\n"):
            # Format: 00:02.0 "VGA compatible controller" "Intel Corporation" "UHD Graphics 620"
            parts = line.split('"')
            if len(parts) >= 7 and parts[1].lower() in GPU_PCI_CLASSES:
                gpus.append(GPUInfo(model=f"{parts[3]} {parts[5]}".strip()))

        return tuple(gpus)

    def _get_motherboard_info(self) -> Motherboard:
        """Get baseboard information from DMI."""
        dmi = self._read_dmi("board_vendor", "board_name", "board_serial")
        return Motherboard(
            manufacturer=dmi["board_vendor"],
            model=dmi["board_name"],
            serial_number=dmi["board_serial"],
        )

    def _get_bios_info(self) -> BIOSInfo:
        """Get BIOS information from DMI."""
        dmi = self._read_dmi("bios_vendor", "bios_version", "bios_date")
        return BIOSInfo(
            vendor=dmi["bios_vendor"],
            version=dmi["bios_version"],
            release_date=dmi["bios_date"],
        )

    def _read_dmi(self, *keys: str) -> dict[str, str | None]:
        """Read DMI attributes; raises if none of them are readable."""
        dmi = {key: self.read_file(os.path.join(DMI_ROOT, key)).strip() or None for key in keys}
        if not any(dmi.values()):
            raise RuntimeError(f"DMI information unavailable under {DMI_ROOT}")
        return dmi

    def _get_usb_devices(self) -> tuple[USBDevice, ...]:
        """Get removable block devices (USB sticks, card readers)."""
        if not os.path.isdir(SYS_BLOCK):
            raise RuntimeError(f"{SYS_BLOCK} not available")

        devices = []
        for disk in sorted(os.listdir(SYS_BLOCK)):
            base = os.path.join(SYS_BLOCK, disk)
            if self.read_file(os.path.join(base, "removable")).strip() != "1":
                continue

            model = self.read_file(os.path.join(base, "device", "model")).strip() or None
            devices.append(
                USBDevice(
                    name=model or disk,
                    vendor_id=self.read_file(os.path.join(base, "device", "vendor")).strip()
                    or None,
                    product_id=model,
                    serial_number=self.read_file(os.path.join(base, "device", "serial")).strip()
                    or None,
                )
            )

        return tuple(devices)
