"""
Software information probe.

Collects OS identity, kernel, installed applications, running processes and
system services.
"""

from __future__ import annotations

import platform
import socket
from typing import Any, Callable

import psutil

from sysnap.probes.base import BaseProbe
from sysnap.probes.platforms import PlatformProbe, detect_platform
from sysnap.records import OSInfo, ProcessInfo, SoftwareRecord


class SoftwareProbe(BaseProbe):
    """Collects operating system and software inventory."""

    name = "software"
    description = "OS, kernel, installed applications, processes and services"
    record_type = SoftwareRecord

    def __init__(self, platform_probe: PlatformProbe | None = None):
        super().__init__()
        self.platform = platform_probe or detect_platform()

    def fields(self) -> dict[str, Callable[[], Any]]:
        return {
            "os": self._get_os_info,
            "kernel": self._get_kernel_version,
            "installed_apps": self.platform.installed_apps,
            "running_processes": self._get_running_processes,
            "system_services": self.platform.system_services,
        }

    def _get_os_info(self) -> OSInfo:
        """Get operating system information."""
        system = platform.system()
        if system == "Linux":
            info = self.detect_distro()
            name = info["name"] or info["id"]
            version = info["version"]
        else:
            name = system
            version = platform.version()

        try:
            hostname = socket.gethostname()
        except OSError as e:
            self.logger.warning(f"Could not determine hostname: {e}")
            hostname = None

        return OSInfo(
            name=name or None,
            version=version or None,
            architecture=platform.machine() or None,
            hostname=hostname,
        )

    def _get_kernel_version(self) -> str:
        release = platform.release()
        if not release:
            raise RuntimeError("Kernel release not reported by the platform")
        return release

    def _get_running_processes(self) -> tuple[ProcessInfo, ...]:
        """Get running processes; processes that vanish mid-scan are skipped."""
        processes = []

        for proc in psutil.process_iter(["pid", "name", "cpu_percent", "memory_info"]):
            try:
                info = proc.info
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue

            name = info.get("name")
            if not name:
                continue

            mem = info.get("memory_info")
            processes.append(
                ProcessInfo(
                    name=name,
                    pid=info.get("pid"),
                    cpu_usage_percent=info.get("cpu_percent") or 0.0,
                    memory_usage_bytes=mem.rss if mem else 0,
                )
            )

        return tuple(processes)
