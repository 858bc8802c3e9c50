"""Antivirus update checks.

Reads Microsoft Defender status through ``Get-MpComputerStatus`` and forces
a signature update when definitions are older than the allowed age. Other
registered antivirus products are listed from Windows Security Center.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..utils.logging import get_logger
from ..utils.shell import as_list, run_powershell, run_powershell_json

logger = get_logger("antivirus.defender")

DEFENDER_STATUS_PS = r"""
try {
    $s = Get-MpComputerStatus -ErrorAction Stop
    $age = (Get-Date) - $s.AntivirusSignatureLastUpdated
    @{
        Available = $true
        AntivirusEnabled = $s.AntivirusEnabled
        RealTimeProtectionEnabled = $s.RealTimeProtectionEnabled
        SignatureVersion = $s.AntivirusSignatureVersion
        SignatureLastUpdated = $s.AntivirusSignatureLastUpdated.ToString('o')
        SignatureAgeDays = [math]::Round($age.TotalDays, 2)
        EngineVersion = $s.AMEngineVersion
    } | ConvertTo-Json -Compress
} catch {
    @{ Available = $false; Error = $_.Exception.Message } | ConvertTo-Json -Compress
}
"""

UPDATE_SIGNATURES_PS = "Update-MpSignature -ErrorAction Stop"

SECURITY_CENTER_PS = (
    "Get-CimInstance -Namespace root/SecurityCenter2 -ClassName AntiVirusProduct "
    "-ErrorAction SilentlyContinue | Select-Object displayName,productState | "
    "ConvertTo-Json -Compress"
)

# productState bit flags reported by Security Center
PRODUCT_ENABLED = 0x1000
PRODUCT_OUT_OF_DATE = 0x10


@dataclass
class DefenderStatus:
    """Snapshot of Microsoft Defender's protection state."""
    available: bool = False
    antivirus_enabled: bool = False
    realtime_enabled: bool = False
    signature_version: Optional[str] = None
    signature_last_updated: Optional[str] = None
    signature_age_days: Optional[float] = None
    engine_version: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_json(cls, raw: Optional[dict]) -> "DefenderStatus":
        if not raw:
            return cls(error="no output from Get-MpComputerStatus")
        age = raw.get("SignatureAgeDays")
        return cls(
            available=bool(raw.get("Available")),
            antivirus_enabled=bool(raw.get("AntivirusEnabled")),
            realtime_enabled=bool(raw.get("RealTimeProtectionEnabled")),
            signature_version=raw.get("SignatureVersion"),
            signature_last_updated=raw.get("SignatureLastUpdated"),
            signature_age_days=float(age) if age is not None else None,
            engine_version=raw.get("EngineVersion"),
            error=raw.get("Error"),
        )

    def is_stale(self, max_age_days: float) -> bool:
        return self.signature_age_days is None or self.signature_age_days > max_age_days

    def to_dict(self) -> dict:
        return {
            "available": self.available,
            "antivirus_enabled": self.antivirus_enabled,
            "realtime_enabled": self.realtime_enabled,
            "signature_version": self.signature_version,
            "signature_age_days": self.signature_age_days,
            "engine_version": self.engine_version,
            "error": self.error,
        }


@dataclass
class AntivirusProduct:
    name: str
    state: int

    @property
    def enabled(self) -> bool:
        return bool(self.state & PRODUCT_ENABLED)

    @property
    def up_to_date(self) -> bool:
        return not self.state & PRODUCT_OUT_OF_DATE


@dataclass
class UpdateCheckResult:
    before: DefenderStatus
    after: Optional[DefenderStatus] = None
    update_attempted: bool = False
    update_succeeded: bool = False
    products: list[AntivirusProduct] = field(default_factory=list)

    @property
    def current(self) -> DefenderStatus:
        return self.after or self.before

    def to_dict(self) -> dict:
        return {
            "before": self.before.to_dict(),
            "after": self.after.to_dict() if self.after else None,
            "update_attempted": self.update_attempted,
            "update_succeeded": self.update_succeeded,
            "products": [
                {"name": p.name, "enabled": p.enabled, "up_to_date": p.up_to_date}
                for p in self.products
            ],
        }


class DefenderChecker:
    """Checks Defender signature freshness and updates when stale."""

    def __init__(self, max_signature_age_days: float = 3.0):
        self._max_age = max_signature_age_days

    def get_status(self) -> DefenderStatus:
        status = DefenderStatus.from_json(run_powershell_json(DEFENDER_STATUS_PS))
        logger.info("defender_status", **status.to_dict())
        return status

    def update_signatures(self) -> bool:
        result = run_powershell(UPDATE_SIGNATURES_PS, timeout=600)
        if result.ok:
            logger.info("defender_signatures_updated")
        else:
            logger.warning("defender_signature_update_failed", output=result.output.strip()[:300])
        return result.ok

    def list_products(self) -> list[AntivirusProduct]:
        """Antivirus products registered with Security Center (absent on servers)."""
        products = []
        for item in as_list(run_powershell_json(SECURITY_CENTER_PS)):
            if not isinstance(item, dict) or not item.get("displayName"):
                continue
            try:
                state = int(item.get("productState") or 0)
            except (TypeError, ValueError):
                state = 0
            products.append(AntivirusProduct(name=item["displayName"], state=state))
        return products

    def is_healthy(self, status: DefenderStatus) -> bool:
        return status.available and status.antivirus_enabled and not status.is_stale(self._max_age)

    def check(self, update: bool = True) -> UpdateCheckResult:
        """Check status; when stale and ``update`` is set, update and re-check."""
        result = UpdateCheckResult(before=self.get_status(), products=self.list_products())

        if result.before.available and result.before.is_stale(self._max_age) and update:
            logger.warning(
                "defender_signatures_stale",
                age_days=result.before.signature_age_days,
                max_age_days=self._max_age,
            )
            result.update_attempted = True
            result.update_succeeded = self.update_signatures()
            result.after = self.get_status()

        return result
