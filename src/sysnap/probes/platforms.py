"""
Platform-specific enumeration of installed applications and system services.

One PlatformProbe variant is chosen per OS family by `detect_platform()` when
the software probe is built, so no code path branches on the OS per call.
"""

from __future__ import annotations

import logging
import platform
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from sysnap.probes.base import command_output, run_command
from sysnap.records import InstalledApp, ServiceInfo

logger = logging.getLogger(__name__)

WINDOWS_UNINSTALL_KEYS = (
    r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall",
    r"SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall",
)


class PlatformProbe(ABC):
    """Enumerates OS-specific software inventory."""

    family: str = "unknown"

    def __init__(self, command_timeout: int = 60):
        self.command_timeout = command_timeout

    @abstractmethod
    def installed_apps(self) -> tuple[InstalledApp, ...]:
        """Return installed applications or packages."""
        pass

    @abstractmethod
    def system_services(self) -> tuple[ServiceInfo, ...]:
        """Return system services and their state."""
        pass

    def _output(self, cmd: list[str]) -> str:
        """Run a command, returning stdout; raises on failure."""
        return command_output(cmd, *run_command(cmd, timeout=self.command_timeout, log=logger))


class LinuxPlatform(PlatformProbe):
    """dpkg/rpm packages and systemd services."""

    family = "linux"

    def __init__(self, command_timeout: int = 60, package_manager: str | None = None):
        super().__init__(command_timeout)
        self.package_manager = package_manager or self._detect_package_manager()

    @staticmethod
    def _detect_package_manager() -> str:
        """Pick the package database from the distribution family."""
        import distro

        distro_id = distro.id().lower()
        distro_like = distro.like().lower()

        if distro_id in ("debian", "ubuntu") or "debian" in distro_like or "ubuntu" in distro_like:
            return "dpkg"
        if (
            distro_id in ("fedora", "rhel", "centos", "rocky", "almalinux", "opensuse", "sles")
            or "fedora" in distro_like
            or "rhel" in distro_like
            or "suse" in distro_like
        ):
            return "rpm"
        return "unknown"

    def installed_apps(self) -> tuple[InstalledApp, ...]:
        if self.package_manager == "dpkg":
            return self._dpkg_packages()
        if self.package_manager == "rpm":
            return self._rpm_packages()
        raise RuntimeError("No supported package manager found")

    def _dpkg_packages(self) -> tuple[InstalledApp, ...]:
        stdout = self._output(
            ["dpkg-query", "-W", "-f", "${Package}\t${Version}\t${db:Status-Abbrev}\n"]
        )
        apps = []
        for line in stdout.splitlines():
            parts = line.split("\t")
            # Only packages in the installed state ("ii ")
            if len(parts) >= 3 and parts[2].startswith("ii"):
                apps.append(InstalledApp(name=parts[0], version=parts[1]))
        return tuple(apps)

    def _rpm_packages(self) -> tuple[InstalledApp, ...]:
        stdout = self._output(
            ["rpm", "-qa", "--queryformat", "%{NAME}\t%{VERSION}-%{RELEASE}\t%{INSTALLTIME}\n"]
        )
        apps = []
        for line in stdout.splitlines():
            parts = line.split("\t")
            if len(parts) >= 2:
                install_date = None
                if len(parts) > 2 and parts[2].isdigit():
                    install_date = datetime.fromtimestamp(
                        int(parts[2]), tz=timezone.utc
                    ).strftime("%Y%m%d")
                apps.append(InstalledApp(name=parts[0], version=parts[1], install_date=install_date))
        return tuple(apps)

    def system_services(self) -> tuple[ServiceInfo, ...]:
        stdout = self._output(
            [
                "systemctl",
                "list-units",
                "--type=service",
                "--all",
                "--no-pager",
                "--no-legend",
                "--plain",
            ]
        )
        services = []
        for line in stdout.splitlines():
            parts = line.split()
            # UNIT LOAD ACTIVE SUB DESCRIPTION...
            if len(parts) >= 4:
                services.append(ServiceInfo(name=parts[0], status=parts[2]))
        return tuple(services)


class WindowsPlatform(PlatformProbe):
    """Registry Uninstall entries and the service control manager."""

    family = "windows"

    def installed_apps(self) -> tuple[InstalledApp, ...]:
        import winreg

        apps = []
        for key_path in WINDOWS_UNINSTALL_KEYS:
            try:
                key = winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, key_path)
            except OSError:
                continue

            with key:
                subkey_count = winreg.QueryInfoKey(key)[0]
                for index in range(subkey_count):
                    try:
                        with winreg.OpenKey(key, winreg.EnumKey(key, index)) as subkey:
                            name = self._reg_value(winreg, subkey, "DisplayName")
                            if name:
                                apps.append(
                                    InstalledApp(
                                        name=name,
                                        version=self._reg_value(winreg, subkey, "DisplayVersion"),
                                        install_date=self._reg_value(
                                            winreg, subkey, "InstallDate"
                                        ),
                                    )
                                )
                    except OSError:
                        continue
        return tuple(apps)

    @staticmethod
    def _reg_value(winreg, key, name: str) -> str | None:
        try:
            value, _ = winreg.QueryValueEx(key, name)
        except OSError:
            return None
        return str(value) if value else None

    def system_services(self) -> tuple[ServiceInfo, ...]:
        stdout = self._output(["sc", "query", "type=", "service", "state=", "all"])
        return parse_sc_query(stdout)


class UnsupportedPlatform(PlatformProbe):
    """Fallback for OS families without an inventory implementation."""

    def __init__(self, system: str = "", command_timeout: int = 60):
        super().__init__(command_timeout)
        self.family = system.lower() or "unknown"

    def installed_apps(self) -> tuple[InstalledApp, ...]:
        raise RuntimeError(f"Installed applications not supported on {self.family}")

    def system_services(self) -> tuple[ServiceInfo, ...]:
        raise RuntimeError(f"System services not supported on {self.family}")


def parse_sc_query(output: str) -> tuple[ServiceInfo, ...]:
    """Parse `sc query` output into services."""
    services = []
    current: str | None = None
    for raw in output.splitlines():
        line = raw.strip()
        if line.startswith("SERVICE_NAME:"):
            if current is not None:
                services.append(ServiceInfo(name=current, status="UNKNOWN"))
            current = line.split(":", 1)[1].strip()
        elif line.startswith("STATE") and current is not None:
            # STATE              : 4  RUNNING
            state = line.split(":", 1)[1].split()
            services.append(ServiceInfo(name=current, status=state[-1] if state else "UNKNOWN"))
            current = None
    if current is not None:
        services.append(ServiceInfo(name=current, status="UNKNOWN"))
    return tuple(services)


def detect_platform(system: str | None = None, command_timeout: int = 60) -> PlatformProbe:
    """Select the platform probe for this OS family."""
    system = system or platform.system()
    if system == "Linux":
        return LinuxPlatform(command_timeout)
    if system == "Windows":
        return WindowsPlatform(command_timeout)
    return UnsupportedPlatform(system, command_timeout)
