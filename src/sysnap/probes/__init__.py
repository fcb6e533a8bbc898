"""
Domain probes for sysnap.

Each probe gathers one domain of the snapshot (hardware, software, network,
performance) and reports the fields it could not determine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sysnap.probes.base import BaseProbe
from sysnap.probes.hardware import HardwareProbe
from sysnap.probes.network import NetworkProbe
from sysnap.probes.performance import PerformanceProbe
from sysnap.probes.platforms import PlatformProbe, detect_platform
from sysnap.probes.software import SoftwareProbe

if TYPE_CHECKING:
    from sysnap.config import Config

# Registry of all probes, in snapshot order
PROBES: dict[str, type[BaseProbe]] = {
    "hardware": HardwareProbe,
    "software": SoftwareProbe,
    "network": NetworkProbe,
    "performance": PerformanceProbe,
}


def get_all_probes() -> dict[str, type[BaseProbe]]:
    """Return all registered probes."""
    return PROBES.copy()


def get_probe(name: str) -> type[BaseProbe] | None:
    """Get a specific probe by name."""
    return PROBES.get(name)


def list_probes() -> list[str]:
    """List all available probe names."""
    return list(PROBES.keys())


def build_probes(config: Config) -> dict[str, BaseProbe]:
    """Instantiate every probe with settings from the configuration."""
    return {
        "hardware": HardwareProbe(sample_interval=config.sample_interval),
        "software": SoftwareProbe(platform_probe=detect_platform()),
        "network": NetworkProbe(
            public_ip_url=config.public_ip_url,
            ping_host=config.ping_host,
            ping_count=config.ping_count,
            sample_interval=config.sample_interval,
        ),
        "performance": PerformanceProbe(sample_interval=config.sample_interval),
    }


__all__ = [
    "BaseProbe",
    "HardwareProbe",
    "SoftwareProbe",
    "NetworkProbe",
    "PerformanceProbe",
    "PlatformProbe",
    "detect_platform",
    "build_probes",
    "get_all_probes",
    "get_probe",
    "list_probes",
    "PROBES",
]
