"""VPN adapter and process detection for Windows.

Detects the VPN client's virtual adapter and process by inspecting network
interfaces and the process table through psutil.
"""

import ipaddress
import os
import re
from dataclasses import dataclass
from typing import Optional

import psutil

from ..utils.logging import get_logger

logger = get_logger("vpn.detector")

# Known VPN adapter name patterns on Windows
VPN_ADAPTER_PATTERNS = [
    r"TAP-Windows",
    r"TAP-Win32",
    r"Wintun",
    r"OpenVPN",
    r"WireGuard",
]


@dataclass
class AdapterInfo:
    """A network interface that matched a VPN pattern."""
    name: str
    is_up: bool = False
    ipv4: Optional[str] = None
    netmask: Optional[str] = None
    ipv6: Optional[str] = None

    @property
    def gateway_guess(self) -> Optional[str]:
        """First host of the adapter's IPv4 subnet (the usual tunnel gateway)."""
        if not self.ipv4 or not self.netmask:
            return None
        try:
            network = ipaddress.ip_network(f"{self.ipv4}/{self.netmask}", strict=False)
        except ValueError:
            return None
        if network.num_addresses < 4:
            return None
        first = next(network.hosts())
        return None if str(first) == self.ipv4 else str(first)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "is_up": self.is_up,
            "ipv4": self.ipv4,
            "ipv6": self.ipv6,
        }


class VPNDetector:
    """Finds the VPN adapter and client process."""

    def __init__(self, adapter_patterns: list[str] | None = None):
        self._patterns = [re.compile(p, re.IGNORECASE) for p in (adapter_patterns or VPN_ADAPTER_PATTERNS)]

    def detect_vpn_adapters(self) -> list[AdapterInfo]:
        """Detect VPN network adapters using psutil and name pattern matching."""
        vpn_adapters = []
        interfaces = psutil.net_if_addrs()
        stats = psutil.net_if_stats()

        for iface_name, addrs in interfaces.items():
            if not any(p.search(iface_name) for p in self._patterns):
                continue

            iface_stat = stats.get(iface_name)
            adapter = AdapterInfo(name=iface_name, is_up=iface_stat.isup if iface_stat else False)
            for addr in addrs:
                if addr.family.name == "AF_INET":
                    adapter.ipv4 = addr.address
                    adapter.netmask = getattr(addr, "netmask", None)
                elif addr.family.name == "AF_INET6":
                    adapter.ipv6 = addr.address
            vpn_adapters.append(adapter)

        return vpn_adapters

    def find_adapter(self) -> Optional[AdapterInfo]:
        """Best VPN adapter: up with an IPv4 address, else any up, else any."""
        adapters = self.detect_vpn_adapters()
        for adapter in adapters:
            if adapter.is_up and adapter.ipv4 and not adapter.ipv4.startswith("169.254."):
                return adapter
        for adapter in adapters:
            if adapter.is_up:
                return adapter
        return adapters[0] if adapters else None

    @staticmethod
    def find_processes(exe_path: str) -> list[psutil.Process]:
        """Running processes whose image name matches the executable."""
        target = os.path.basename(exe_path.replace("\\", "/")).lower()
        found = []
        for proc in psutil.process_iter(["pid", "name", "exe"]):
            try:
                pname = proc.info["name"].lower() if proc.info["name"] else ""
                if pname == target:
                    found.append(proc)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return found

    def is_process_running(self, exe_path: str) -> bool:
        return bool(self.find_processes(exe_path))
