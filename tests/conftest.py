"""Shared test fixtures."""

from unittest.mock import MagicMock

import pytest

from rmmkit.config import RmmConfig


def _make_family(name: str):
    """Create a mock socket address family with a proper .name attribute."""
    family = MagicMock()
    family.name = name
    return family


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep RMMKIT_* variables from the developer's shell out of the tests."""
    import os

    for key in list(os.environ):
        if key.upper().startswith("RMMKIT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def config(tmp_path) -> RmmConfig:
    """Configuration pointing every path into a temp dir."""
    return RmmConfig(
        log_dir=str(tmp_path / "logs"),
        vpn_exe_path=str(tmp_path / "OpenVPN" / "bin" / "openvpn.exe"),
        vpn_config_dir=str(tmp_path / "OpenVPN" / "config"),
        vpn_config_blob="client\ndev tun\nremote vpn.example.com 1194\n",
        vpn_poll_interval=0.01,
        vpn_connect_timeout=0.05,
    )


@pytest.fixture
def mock_psutil_interfaces():
    """Mock psutil network interface data."""
    af_inet = _make_family("AF_INET")
    mock_addrs = {
        "Ethernet": [
            MagicMock(family=af_inet, address="192.168.1.100", netmask="255.255.255.0"),
        ],
        "TAP-Windows Adapter V9": [
            MagicMock(family=af_inet, address="10.8.0.2", netmask="255.255.255.0"),
        ],
        "Loopback Pseudo-Interface 1": [
            MagicMock(family=af_inet, address="127.0.0.1", netmask="255.0.0.0"),
        ],
    }
    mock_stats = {
        "Ethernet": MagicMock(isup=True, speed=1000, mtu=1500),
        "TAP-Windows Adapter V9": MagicMock(isup=True, speed=100, mtu=1400),
        "Loopback Pseudo-Interface 1": MagicMock(isup=True, speed=0, mtu=1500),
    }
    return mock_addrs, mock_stats


@pytest.fixture
def netsh_show_rules():
    """Mock `netsh advfirewall firewall show rule name=all` output."""
    return """
Rule Name:                            RMM_KillSwitch_Allow_VPN_Client
----------------------------------------------------------------------
Enabled:                              Yes
Direction:                            Out
Profiles:                             Domain,Private,Public
Action:                               Allow

Rule Name:                            Core Networking - DNS (UDP-Out)
----------------------------------------------------------------------
Enabled:                              Yes
Direction:                            Out
Action:                               Allow

Rule Name:                            RMM_KillSwitch_Allow_Stale_Old
----------------------------------------------------------------------
Enabled:                              Yes
Direction:                            Out
Action:                               Allow
Ok.
"""


@pytest.fixture
def netsh_firewall_policy():
    """Mock `netsh advfirewall show allprofiles firewallpolicy` output."""
    def _make(outbound: str = "BlockOutbound") -> str:
        blocks = []
        for profile in ("Domain", "Private", "Public"):
            blocks.append(
                f"{profile} Profile Settings:\n"
                "----------------------------------------------------------------------\n"
                f"Firewall Policy                       BlockInbound,{outbound}\n"
            )
        return "\n".join(blocks) + "Ok.\n"
    return _make


@pytest.fixture
def pnp_net_devices():
    """Mock Get-PnpDevice -Class Net JSON, decoded."""
    return [
        {"InstanceId": "ROOT\\NET\\0000", "FriendlyName": "TAP-Windows Adapter V9", "Status": "OK", "Present": True},
        {"InstanceId": "ROOT\\NET\\0001", "FriendlyName": "TAP-Windows Adapter V9 #2", "Status": "Unknown", "Present": False},
        {"InstanceId": "ROOT\\NET\\0002", "FriendlyName": "TAP-Windows Adapter V9 #3", "Status": "Error", "Present": True},
        {"InstanceId": "PCI\\VEN_8086&DEV_15B8\\3&11583659&0&FE", "FriendlyName": "Intel(R) Ethernet Connection I219-V", "Status": "OK", "Present": True},
    ]
