"""Removal of duplicate and ghost virtual VPN adapters.

Every reinstall of a TAP-style driver can leave another adapter behind,
often non-present ("ghost") ones. Cleanup keeps at most one adapter that
matches the known description patterns, preferring one that is present and
healthy, and removes the rest with pnputil. Running it again is a no-op.
"""

import re
from dataclasses import dataclass, field

from ..utils.logging import get_logger
from ..utils.shell import as_list, run_cmd, run_powershell_json

logger = get_logger("vpn.adapter_cleanup")

LIST_ADAPTERS_PS = (
    "Get-PnpDevice -Class Net -ErrorAction SilentlyContinue | "
    "Select-Object InstanceId,FriendlyName,Status,Present | "
    "ConvertTo-Json -Compress"
)


@dataclass
class NetAdapter:
    """A network-class PnP device."""
    instance_id: str
    description: str
    status: str = "Unknown"
    present: bool = False

    @property
    def healthy(self) -> bool:
        return self.present and self.status.upper() == "OK"

    @classmethod
    def from_pnp(cls, raw: dict) -> "NetAdapter":
        return cls(
            instance_id=raw.get("InstanceId") or "",
            description=raw.get("FriendlyName") or "",
            status=raw.get("Status") or "Unknown",
            present=bool(raw.get("Present")),
        )


@dataclass
class CleanupReport:
    kept: list[NetAdapter] = field(default_factory=list)
    removed: list[NetAdapter] = field(default_factory=list)
    failed: list[NetAdapter] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "kept": [a.description for a in self.kept],
            "removed": [a.instance_id for a in self.removed],
            "failed": [a.instance_id for a in self.failed],
        }


class AdapterCleaner:
    """Keeps at most one adapter matching the VPN description patterns."""

    def __init__(self, description_patterns: list[str], keep: int = 1):
        if keep < 0:
            raise ValueError("keep must be >= 0")
        self._patterns = [re.compile(p, re.IGNORECASE) for p in description_patterns]
        self._keep = keep

    def list_adapters(self) -> list[NetAdapter]:
        raw = run_powershell_json(LIST_ADAPTERS_PS)
        return [NetAdapter.from_pnp(item) for item in as_list(raw) if isinstance(item, dict)]

    def matching(self, adapters: list[NetAdapter]) -> list[NetAdapter]:
        return [
            a for a in adapters
            if a.instance_id and any(p.search(a.description) for p in self._patterns)
        ]

    def plan(self, adapters: list[NetAdapter]) -> tuple[list[NetAdapter], list[NetAdapter]]:
        """Split matching adapters into (keep, remove). Healthy ones are kept first."""
        candidates = sorted(
            self.matching(adapters),
            key=lambda a: (not a.healthy, not a.present, a.instance_id),
        )
        return candidates[:self._keep], candidates[self._keep:]

    def remove_adapter(self, adapter: NetAdapter) -> bool:
        result = run_cmd(["pnputil", "/remove-device", adapter.instance_id], timeout=60)
        if result.ok:
            logger.info("adapter_removed", instance_id=adapter.instance_id, description=adapter.description)
        return result.ok

    def cleanup(self) -> CleanupReport:
        keep, remove = self.plan(self.list_adapters())
        report = CleanupReport(kept=keep)
        for adapter in remove:
            if self.remove_adapter(adapter):
                report.removed.append(adapter)
            else:
                report.failed.append(adapter)

        logger.info(
            "adapter_cleanup_complete",
            kept=len(report.kept),
            removed=len(report.removed),
            failed=len(report.failed),
        )
        return report
