"""Endpoint hardening baseline and reset.

The baseline is a list of registry settings, each with a hardened value and
the Windows default. ``apply`` writes hardened values, ``reset`` puts the
defaults back (deleting values Windows does not ship with), ``check``
reports drift. Settings are handled one by one; a failure on one setting is
recorded and the rest still run.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from ..utils.logging import get_logger
from ..utils.shell import run_cmd, run_netsh
from .registry import delete_value, read_value, write_value

logger = get_logger("hardening.baseline")


@dataclass(frozen=True)
class RegistrySetting:
    """One hardened registry value."""
    id: str
    description: str
    hive: str
    key: str
    name: str
    value: Any
    kind: str = "DWORD"
    default: Optional[Any] = None  # None: value is absent on a stock install
    requires_reboot: bool = False


HARDENING_BASELINE = [
    RegistrySetting(
        id="smb1_server_disabled",
        description="Disable the SMBv1 server",
        hive="HKLM",
        key=r"SYSTEM\CurrentControlSet\Services\LanmanServer\Parameters",
        name="SMB1",
        value=0,
        requires_reboot=True,
    ),
    RegistrySetting(
        id="llmnr_disabled",
        description="Disable LLMNR multicast name resolution",
        hive="HKLM",
        key=r"SOFTWARE\Policies\Microsoft\Windows NT\DNSClient",
        name="EnableMulticast",
        value=0,
    ),
    RegistrySetting(
        id="uac_enabled",
        description="Keep User Account Control enabled",
        hive="HKLM",
        key=r"SOFTWARE\Microsoft\Windows\CurrentVersion\Policies\System",
        name="EnableLUA",
        value=1,
        default=1,
        requires_reboot=True,
    ),
    RegistrySetting(
        id="autorun_disabled",
        description="Disable AutoRun on all drive types",
        hive="HKLM",
        key=r"SOFTWARE\Microsoft\Windows\CurrentVersion\Policies\Explorer",
        name="NoDriveTypeAutoRun",
        value=255,
    ),
    RegistrySetting(
        id="rdp_nla_required",
        description="Require Network Level Authentication for RDP",
        hive="HKLM",
        key=r"SYSTEM\CurrentControlSet\Control\Terminal Server\WinStations\RDP-Tcp",
        name="UserAuthentication",
        value=1,
        default=1,
    ),
    RegistrySetting(
        id="wdigest_disabled",
        description="Stop WDigest from caching plaintext credentials",
        hive="HKLM",
        key=r"SYSTEM\CurrentControlSet\Control\SecurityProviders\WDigest",
        name="UseLogonCredential",
        value=0,
    ),
    RegistrySetting(
        id="lsa_protection",
        description="Run LSASS as a protected process",
        hive="HKLM",
        key=r"SYSTEM\CurrentControlSet\Control\Lsa",
        name="RunAsPPL",
        value=1,
        requires_reboot=True,
    ),
    RegistrySetting(
        id="restrict_anonymous",
        description="Restrict anonymous enumeration of shares and accounts",
        hive="HKLM",
        key=r"SYSTEM\CurrentControlSet\Control\Lsa",
        name="RestrictAnonymous",
        value=1,
        default=0,
    ),
]


@dataclass
class SettingOutcome:
    id: str
    ok: bool
    current: Any = None
    error: Optional[str] = None


@dataclass
class HardeningReport:
    outcomes: list[SettingOutcome] = field(default_factory=list)
    reboot_required: bool = False

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.outcomes)

    @property
    def failed(self) -> list[str]:
        return [o.id for o in self.outcomes if not o.ok]

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "failed": self.failed,
            "reboot_required": self.reboot_required,
            "settings": {o.id: o.ok for o in self.outcomes},
        }


class HardeningBaseline:
    """Applies, checks and resets a list of registry settings."""

    def __init__(self, settings: list[RegistrySetting] | None = None):
        self._settings = list(settings if settings is not None else HARDENING_BASELINE)

    @property
    def settings(self) -> list[RegistrySetting]:
        return list(self._settings)

    def check(self) -> HardeningReport:
        report = HardeningReport()
        for s in self._settings:
            try:
                current = read_value(s.hive, s.key, s.name)
                report.outcomes.append(SettingOutcome(s.id, ok=current == s.value, current=current))
            except Exception as e:
                report.outcomes.append(SettingOutcome(s.id, ok=False, error=str(e)))
        logger.info("hardening_checked", compliant=not report.failed, drifted=report.failed)
        return report

    def apply(self) -> HardeningReport:
        report = HardeningReport()
        for s in self._settings:
            try:
                current = read_value(s.hive, s.key, s.name)
                if current != s.value:
                    write_value(s.hive, s.key, s.name, s.value, s.kind)
                    report.reboot_required |= s.requires_reboot
                    logger.info("hardening_setting_applied", setting=s.id, previous=current, value=s.value)
                report.outcomes.append(SettingOutcome(s.id, ok=True, current=s.value))
            except Exception as e:
                logger.warning("hardening_setting_failed", setting=s.id, error=str(e))
                report.outcomes.append(SettingOutcome(s.id, ok=False, error=str(e)))
        logger.info("hardening_applied", failed=report.failed, reboot_required=report.reboot_required)
        return report

    def reset(self) -> HardeningReport:
        """Restore Windows defaults for every setting in the baseline."""
        report = HardeningReport()
        for s in self._settings:
            try:
                if s.default is None:
                    changed = delete_value(s.hive, s.key, s.name)
                else:
                    changed = read_value(s.hive, s.key, s.name) != s.default
                    if changed:
                        write_value(s.hive, s.key, s.name, s.default, s.kind)
                if changed:
                    report.reboot_required |= s.requires_reboot
                report.outcomes.append(SettingOutcome(s.id, ok=True, current=s.default))
            except Exception as e:
                logger.warning("hardening_reset_failed", setting=s.id, error=str(e))
                report.outcomes.append(SettingOutcome(s.id, ok=False, error=str(e)))
        logger.info("hardening_reset", failed=report.failed, reboot_required=report.reboot_required)
        return report


def reset_network_stack() -> bool:
    """Reset Winsock and TCP/IP and flush DNS. A reboot is required afterwards."""
    steps = [
        ("winsock_reset", lambda: run_netsh(["winsock", "reset"], timeout=60)),
        ("ip_reset", lambda: run_netsh(["int", "ip", "reset"], timeout=60)),
        ("dns_flush", lambda: run_cmd(["ipconfig", "/flushdns"])),
    ]
    ok = True
    for name, fn in steps:
        result = fn()
        if not result.ok:
            logger.warning("network_reset_step_failed", step=name, returncode=result.returncode)
            ok = False
    logger.info("network_stack_reset", ok=ok, reboot_required=True)
    return ok
