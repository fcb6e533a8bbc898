"""
Network information probe.

Collects interfaces, connections, DNS, public IP, and latency/throughput
measurements.
"""

from __future__ import annotations

import re
import socket
import time
from typing import Any, Callable

import psutil
import requests

from sysnap.probes.base import BaseProbe
from sysnap.records import (
    AdvancedNetworkInfo,
    ConnectionInfo,
    DNSConfig,
    InterfaceInfo,
    NetworkRecord,
    ProbeResult,
    RoutingEntry,
)

DEFAULT_PUBLIC_IP_URL = "https://api.ipify.org"
DEFAULT_PING_HOST = "8.8.8.8"

VPN_INTERFACE_PREFIXES = ("tun", "tap", "wg", "ppp")

_PING_AVG = re.compile(r"=\s*[\d.]+/([\d.]+)/")
_PING_LOSS = re.compile(r"([\d.]+)%\s+packet loss")


class NetworkProbe(BaseProbe):
    """Collects network information."""

    name = "network"
    description = "Interfaces, connections, DNS, public IP and link quality"
    record_type = NetworkRecord

    def __init__(
        self,
        public_ip_url: str = DEFAULT_PUBLIC_IP_URL,
        ping_host: str = DEFAULT_PING_HOST,
        ping_count: int = 4,
        sample_interval: float = 1.0,
        request_timeout: int = 10,
    ):
        super().__init__()
        self.public_ip_url = public_ip_url
        self.ping_host = ping_host
        self.ping_count = ping_count
        self.sample_interval = sample_interval
        self.request_timeout = request_timeout

    def fields(self) -> dict[str, Callable[[], Any]]:
        return {
            "interfaces": self._get_interfaces,
            "connections": self._get_connections,
            "dns_servers": self._get_dns_servers,
            "public_ip": self._get_public_ip,
            "advanced_info": self._get_advanced_info,
        }

    def _get_interfaces(self) -> tuple[InterfaceInfo, ...]:
        """Get network interface information."""
        addrs = psutil.net_if_addrs()
        stats = psutil.net_if_stats()
        io_counters = psutil.net_io_counters(pernic=True)

        interfaces = []
        for iface_name, addr_list in addrs.items():
            mac = None
            ips = []
            for addr in addr_list:
                if addr.family in (socket.AF_INET, socket.AF_INET6):
                    ips.append(addr.address)
                elif addr.family == psutil.AF_LINK:
                    mac = addr.address

            status = None
            speed = None
            if iface_name in stats:
                s = stats[iface_name]
                status = "up" if s.isup else "down"
                speed = s.speed

            counters = io_counters.get(iface_name)
            interfaces.append(
                InterfaceInfo(
                    name=iface_name,
                    mac_address=mac,
                    ip_addresses=tuple(ips),
                    status=status,
                    speed_mbps=speed,
                    bytes_sent=counters.bytes_sent if counters else None,
                    bytes_recv=counters.bytes_recv if counters else None,
                )
            )

        return tuple(interfaces)

    def _get_connections(self) -> tuple[ConnectionInfo, ...]:
        """Get TCP connections."""
        try:
            connections = psutil.net_connections(kind="tcp")
        except (psutil.AccessDenied, PermissionError):
            raise PermissionError("Permission denied - run as root for connection info") from None

        result = []
        for conn in connections:
            laddr = conn.laddr or None
            raddr = conn.raddr or None
            result.append(
                ConnectionInfo(
                    local_address=laddr.ip if laddr else None,
                    local_port=laddr.port if laddr else None,
                    remote_address=raddr.ip if raddr else None,
                    remote_port=raddr.port if raddr else None,
                    state=conn.status,
                    process=str(conn.pid) if conn.pid is not None else None,
                )
            )

        return tuple(result)

    def _read_resolv_conf(self) -> list[str]:
        lines = self.read_file_lines("/etc/resolv.conf")
        if not lines:
            raise FileNotFoundError("/etc/resolv.conf is missing or empty")
        return lines

    def _get_dns_servers(self) -> tuple[str, ...]:
        """Get nameservers from /etc/resolv.conf."""
        servers = []
        for line in self._read_resolv_conf():
            parts = line.split()
            if len(parts) >= 2 and parts[0] == "nameserver":
                servers.append(parts[1])
        return tuple(servers)

    def _get_public_ip(self) -> str:
        """Ask an external echo service for this host's public address."""
        response = requests.get(self.public_ip_url, timeout=self.request_timeout)
        response.raise_for_status()
        ip = response.text.strip()
        if not ip:
            raise ValueError(f"Empty response from {self.public_ip_url}")
        return ip

    def _get_advanced_info(self) -> ProbeResult:
        """Collect link quality measurements; each one may fail on its own."""
        speeds: dict[str, float] = {}

        def download() -> float:
            speeds.update(self._measure_throughput())
            return speeds["download"]

        def upload() -> float:
            if "upload" not in speeds:
                raise RuntimeError("Throughput sample unavailable")
            return speeds["upload"]

        return self.build_record(
            AdvancedNetworkInfo,
            {
                "latency_ms": self._measure_latency,
                "packet_loss_percent": self._measure_packet_loss,
                "download_speed_mbps": download,
                "upload_speed_mbps": upload,
                "routing_table": self._get_routing_table,
                "dns_configuration": self._get_dns_configuration,
                "vpn_status": self._get_vpn_status,
            },
            prefix="advanced_info.",
        )

    def _ping(self, count: int) -> str:
        return self.require_command(
            ["ping", "-c", str(count), self.ping_host],
            timeout=max(10, count * 5),
        )

    def _measure_latency(self) -> float:
        """Average round trip to the ping host, in milliseconds."""
        stdout = self._ping(self.ping_count)
        for line in stdout.splitlines():
            if "avg" in line:
                match = _PING_AVG.search(line)
                if match:
                    return float(match.group(1))
        raise ValueError("Could not parse average latency from ping output")

    def _measure_packet_loss(self) -> float:
        """Packet loss to the ping host, in percent."""
        count = self.ping_count * 2
        # ping exits 1 when no replies arrive; the summary line is still printed
        stdout, stderr, _ = self.run_command(
            ["ping", "-c", str(count), self.ping_host],
            timeout=max(10, count * 5),
        )
        match = _PING_LOSS.search(stdout)
        if not match and stderr:
            raise RuntimeError(f"ping failed: {stderr.strip()}")
        if not match:
            raise ValueError("Could not parse packet loss from ping output")
        return float(match.group(1))

    def _measure_throughput(self) -> dict[str, float]:
        """Sample total interface counters and convert to megabits per second."""
        start = psutil.net_io_counters()
        time.sleep(self.sample_interval)
        end = psutil.net_io_counters()

        def mbps(delta: int) -> float:
            return round(delta * 8 / self.sample_interval / 1024 / 1024, 3)

        return {
            "download": mbps(end.bytes_recv - start.bytes_recv),
            "upload": mbps(end.bytes_sent - start.bytes_sent),
        }

    def _get_routing_table(self) -> tuple[RoutingEntry, ...]:
        """Get the routing table from `ip route`, falling back to `route -n`."""
        stdout, _, rc = self.run_command(["ip", "route", "show"])
        if rc == 0:
            return self._parse_ip_route(stdout)

        return self._parse_route_n(self.require_command(["route", "-n"]))

    @staticmethod
    def _parse_ip_route(output: str) -> tuple[RoutingEntry, ...]:
        routes = []
        for line in output.strip().split("\n"):
            parts = line.split()
            if not parts:
                continue

            destination = "0.0.0.0/0" if parts[0] == "default" else parts[0]
            gateway = None
            device = None

            if "via" in parts:
                idx = parts.index("via")
                if idx + 1 < len(parts):
                    gateway = parts[idx + 1]

            if "dev" in parts:
                idx = parts.index("dev")
                if idx + 1 < len(parts):
                    device = parts[idx + 1]

            routes.append(RoutingEntry(destination=destination, gateway=gateway, interface=device))

        return tuple(routes)

    @staticmethod
    def _parse_route_n(output: str) -> tuple[RoutingEntry, ...]:
        routes = []
        # Two header lines, then: Destination Gateway Genmask Flags Metric Ref Use Iface
        for line in output.strip().split("\n")[2:]:
            parts = line.split()
            if len(parts) >= 8:
                routes.append(RoutingEntry(destination=parts[0], gateway=parts[1], interface=parts[7]))
        return tuple(routes)

    def _get_dns_configuration(self) -> DNSConfig:
        """Get nameservers and the local domain from /etc/resolv.conf."""
        servers = []
        domain = None
        for line in self._read_resolv_conf():
            parts = line.split()
            if len(parts) < 2:
                continue
            if parts[0] == "nameserver":
                servers.append(parts[1])
            elif parts[0] == "domain":
                domain = parts[1]
            elif parts[0] == "search" and domain is None:
                domain = parts[1]
        return DNSConfig(servers=tuple(servers), domain=domain)

    def _get_vpn_status(self) -> str:
        for iface in psutil.net_if_addrs():
            if iface.lower().startswith(VPN_INTERFACE_PREFIXES):
                return "active"
        return "inactive"
