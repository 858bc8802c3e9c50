"""DNS enforcement on active network adapters.

Pins static resolvers on every adapter that is up (VPN adapters are skipped
unless asked for), or resets them back to DHCP, then flushes the resolver
cache. Each adapter is handled independently; one failure does not stop
the others.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from ..utils.input_validators import validate_interface_name, validate_ip_address
from ..utils.logging import get_logger
from ..utils.shell import as_list, run_cmd, run_netsh, run_powershell_json

logger = get_logger("dns.enforcer")

LIST_ADAPTERS_PS = (
    "Get-NetAdapter | Where-Object { $_.Status -eq 'Up' } | "
    "Select-Object Name,InterfaceDescription,ifIndex | ConvertTo-Json -Compress"
)

SHOW_DNS_PS = (
    "Get-DnsClientServerAddress -AddressFamily IPv4 | "
    "Select-Object InterfaceAlias,InterfaceIndex,ServerAddresses | ConvertTo-Json -Compress"
)


@dataclass
class ActiveAdapter:
    name: str
    description: str = ""
    index: int = 0


@dataclass
class DnsReport:
    changed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    flushed: bool = False

    @property
    def ok(self) -> bool:
        return bool(self.changed) and not self.failed

    def to_dict(self) -> dict:
        return {
            "changed": self.changed,
            "failed": self.failed,
            "skipped": self.skipped,
            "flushed": self.flushed,
        }


def flush_dns_cache() -> bool:
    result = run_cmd(["ipconfig", "/flushdns"])
    if result.ok:
        logger.info("dns_cache_flushed")
    return result.ok


class DnsEnforcer:
    """Sets or resets IPv4 DNS servers on active adapters."""

    def __init__(
        self,
        servers: list[str],
        vpn_patterns: list[str] | None = None,
        include_vpn_adapters: bool = False,
    ):
        self._servers = [validate_ip_address(s) for s in servers]
        self._vpn_patterns = [re.compile(p, re.IGNORECASE) for p in (vpn_patterns or [])]
        self._include_vpn = include_vpn_adapters

    @property
    def servers(self) -> list[str]:
        return list(self._servers)

    def list_adapters(self) -> list[ActiveAdapter]:
        raw = run_powershell_json(LIST_ADAPTERS_PS)
        adapters = []
        for item in as_list(raw):
            if not isinstance(item, dict) or not item.get("Name"):
                continue
            adapters.append(ActiveAdapter(
                name=item["Name"],
                description=item.get("InterfaceDescription") or "",
                index=int(item.get("ifIndex") or 0),
            ))
        return adapters

    def _is_vpn(self, adapter: ActiveAdapter) -> bool:
        return any(p.search(adapter.name) or p.search(adapter.description) for p in self._vpn_patterns)

    def targets(self) -> tuple[list[ActiveAdapter], list[str]]:
        """Adapters to change, and names skipped (VPN or unsafe names)."""
        targets, skipped = [], []
        for adapter in self.list_adapters():
            if self._is_vpn(adapter) and not self._include_vpn:
                skipped.append(adapter.name)
                continue
            try:
                validate_interface_name(adapter.name)
            except ValueError as e:
                logger.warning("dns_adapter_name_rejected", adapter=adapter.name, error=str(e))
                skipped.append(adapter.name)
                continue
            targets.append(adapter)
        return targets, skipped

    def _set_static(self, name: str) -> bool:
        primary = run_netsh([
            "interface", "ipv4", "set", "dnsservers",
            f"name={name}",
            "source=static",
            f"address={self._servers[0]}",
            "register=primary",
            "validate=no",
        ])
        if not primary.ok:
            return False
        for i, server in enumerate(self._servers[1:], start=2):
            extra = run_netsh([
                "interface", "ipv4", "add", "dnsservers",
                f"name={name}",
                f"address={server}",
                f"index={i}",
                "validate=no",
            ])
            if not extra.ok:
                return False
        return True

    def _set_dhcp(self, name: str) -> bool:
        return run_netsh([
            "interface", "ipv4", "set", "dnsservers",
            f"name={name}",
            "source=dhcp",
        ]).ok

    def _apply(self, setter, event: str) -> DnsReport:
        targets, skipped = self.targets()
        report = DnsReport(skipped=skipped)
        for adapter in targets:
            if setter(adapter.name):
                report.changed.append(adapter.name)
            else:
                report.failed.append(adapter.name)
        report.flushed = flush_dns_cache()
        logger.info(event, **report.to_dict())
        return report

    def enforce(self) -> DnsReport:
        """Pin the configured servers on every target adapter."""
        if not self._servers:
            raise ValueError("No DNS servers configured")
        return self._apply(self._set_static, "dns_enforced")

    def reset(self) -> DnsReport:
        """Return every target adapter to DHCP-assigned DNS."""
        return self._apply(self._set_dhcp, "dns_reset")

    def show(self) -> dict[str, list[str]]:
        """Configured IPv4 DNS servers per interface alias."""
        raw = run_powershell_json(SHOW_DNS_PS)
        servers: dict[str, list[str]] = {}
        for item in as_list(raw):
            if isinstance(item, dict) and item.get("InterfaceAlias"):
                servers[item["InterfaceAlias"]] = as_list(item.get("ServerAddresses"))
        return servers

    def is_compliant(self, current: Optional[dict[str, list[str]]] = None) -> bool:
        """True when every target adapter uses exactly the configured servers.

        ``current`` is a previous :meth:`show` result; queried when omitted.
        """
        if current is None:
            current = self.show()
        targets, _ = self.targets()
        return bool(targets) and all(current.get(a.name) == self._servers for a in targets)
