"""rmmkit configuration system using Pydantic Settings.

Every value that the RMM scripts used to keep as in-source variables is a
field here and can be overridden with an ``RMMKIT_``-prefixed environment
variable or a ``.env`` file next to the working directory.
"""

from __future__ import annotations

import ipaddress
import re
from pathlib import PureWindowsPath
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PREFIX_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class RmmConfig(BaseSettings):
    """Main configuration class. Loads from .env file and environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RMMKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    debug: bool = False
    log_dir: str = r"C:\ProgramData\rmmkit\logs"
    log_max_bytes: int = 5_000_000
    log_backup_count: int = 3

    # VPN client
    vpn_installer_url: str = "https://swupdate.openvpn.org/community/releases/OpenVPN-2.6.10-I001-amd64.msi"
    vpn_installer_sha256: Optional[str] = None
    vpn_install_timeout: int = 600
    vpn_exe_path: str = r"C:\Program Files\OpenVPN\bin\openvpn.exe"
    vpn_config_dir: str = r"C:\Program Files\OpenVPN\config"
    vpn_config_name: str = "client.ovpn"
    vpn_config_blob: Optional[str] = None  # raw .ovpn text or base64 of it
    vpn_config_overrides: dict[str, Optional[str]] = {}
    vpn_username: Optional[str] = None
    vpn_password: Optional[str] = None
    vpn_adapter_patterns: list[str] = [
        r"TAP-Windows",
        r"TAP-Win32",
        r"Wintun",
        r"OpenVPN",
        r"WireGuard",
    ]
    vpn_ping_target: Optional[str] = None  # None: ping the adapter gateway
    vpn_poll_interval: float = 2.0
    vpn_connect_timeout: float = 90.0

    # Kill switch
    kill_switch_rule_prefix: str = "RMM_KillSwitch"
    kill_switch_allow_lan: bool = False
    kill_switch_tunnel_subnet: Optional[str] = None
    kill_switch_extra_programs: list[str] = []

    # Startup task
    task_name: str = "RMM VPN KillSwitch"
    task_delay: Optional[str] = "0000:30"

    # DNS enforcement
    dns_servers: list[str] = ["1.1.1.1", "1.0.0.1"]
    dns_include_vpn_adapters: bool = False

    # Antivirus
    av_max_signature_age_days: float = 3.0

    # Adapter cleanup
    adapter_description_patterns: list[str] = [
        r"TAP-Windows Adapter V9",
        r"TAP-Win32",
        r"Wintun Userspace Tunnel",
        r"OpenVPN Data Channel Offload",
    ]

    @field_validator("kill_switch_rule_prefix")
    @classmethod
    def validate_rule_prefix(cls, v: str) -> str:
        if not _PREFIX_RE.match(v):
            raise ValueError("kill_switch_rule_prefix must be 1-64 chars of letters, digits, '_' or '-'")
        return v

    @field_validator("dns_servers")
    @classmethod
    def validate_dns_servers(cls, v: list[str]) -> list[str]:
        return [str(ipaddress.ip_address(s.strip())) for s in v]

    @field_validator("kill_switch_tunnel_subnet")
    @classmethod
    def validate_tunnel_subnet(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return str(ipaddress.ip_network(v.strip(), strict=False))

    @field_validator("vpn_poll_interval", "vpn_connect_timeout", "av_max_signature_age_days")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @property
    def vpn_config_path(self) -> PureWindowsPath:
        return PureWindowsPath(self.vpn_config_dir) / self.vpn_config_name

    @property
    def vpn_auth_path(self) -> PureWindowsPath:
        return PureWindowsPath(self.vpn_config_dir) / (PureWindowsPath(self.vpn_config_name).stem + "-auth.txt")


def get_config() -> RmmConfig:
    """Factory function to create config instance."""
    return RmmConfig()
