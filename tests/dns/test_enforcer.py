"""Tests for DNS enforcement."""

from unittest.mock import patch

import pytest

from rmmkit.dns.enforcer import DnsEnforcer, flush_dns_cache
from rmmkit.utils.shell import CommandResult

ADAPTERS = [
    {"Name": "Ethernet", "InterfaceDescription": "Intel(R) Ethernet Connection I219-V", "ifIndex": 12},
    {"Name": "Wi-Fi", "InterfaceDescription": "Intel(R) Wi-Fi 6 AX201 160MHz", "ifIndex": 7},
    {"Name": "Local Area Connection", "InterfaceDescription": "TAP-Windows Adapter V9", "ifIndex": 21},
]

VPN_PATTERNS = [r"TAP-Windows", r"Wintun"]


def _ok(stdout="Ok."):
    return CommandResult(returncode=0, stdout=stdout)


class TestDnsEnforcer:
    def setup_method(self):
        self.enforcer = DnsEnforcer(servers=["1.1.1.1", "1.0.0.1"], vpn_patterns=VPN_PATTERNS)

    def test_invalid_server_rejected(self):
        with pytest.raises(ValueError):
            DnsEnforcer(servers=["1.1.1.1; calc"])

    def test_enforce_without_servers(self):
        with pytest.raises(ValueError):
            DnsEnforcer(servers=[]).enforce()

    @patch("rmmkit.dns.enforcer.run_powershell_json", return_value=ADAPTERS)
    def test_targets_skip_vpn(self, mock_ps):
        targets, skipped = self.enforcer.targets()
        assert [a.name for a in targets] == ["Ethernet", "Wi-Fi"]
        assert skipped == ["Local Area Connection"]

    @patch("rmmkit.dns.enforcer.run_powershell_json", return_value=ADAPTERS)
    def test_targets_include_vpn(self, mock_ps):
        enforcer = DnsEnforcer(servers=["1.1.1.1"], vpn_patterns=VPN_PATTERNS, include_vpn_adapters=True)
        targets, skipped = enforcer.targets()
        assert len(targets) == 3
        assert skipped == []

    @patch("rmmkit.dns.enforcer.run_powershell_json")
    def test_unsafe_adapter_name_skipped(self, mock_ps):
        mock_ps.return_value = {"Name": "Ethernet & calc", "InterfaceDescription": "x", "ifIndex": 3}
        targets, skipped = self.enforcer.targets()
        assert targets == []
        assert skipped == ["Ethernet & calc"]

    @patch("rmmkit.dns.enforcer.run_cmd", return_value=_ok("Successfully flushed the DNS Resolver Cache."))
    @patch("rmmkit.dns.enforcer.run_netsh", return_value=_ok())
    @patch("rmmkit.dns.enforcer.run_powershell_json", return_value=ADAPTERS)
    def test_enforce_sets_primary_and_secondary(self, mock_ps, mock_netsh, mock_run):
        report = self.enforcer.enforce()

        assert report.ok is True
        assert report.changed == ["Ethernet", "Wi-Fi"]
        assert report.flushed is True
        commands = [c.args[0] for c in mock_netsh.call_args_list]
        assert commands[0] == [
            "interface", "ipv4", "set", "dnsservers", "name=Ethernet",
            "source=static", "address=1.1.1.1", "register=primary", "validate=no",
        ]
        assert commands[1] == [
            "interface", "ipv4", "add", "dnsservers", "name=Ethernet",
            "address=1.0.0.1", "index=2", "validate=no",
        ]
        mock_run.assert_called_once_with(["ipconfig", "/flushdns"])

    @patch("rmmkit.dns.enforcer.run_cmd", return_value=_ok())
    @patch("rmmkit.dns.enforcer.run_netsh")
    @patch("rmmkit.dns.enforcer.run_powershell_json", return_value=ADAPTERS)
    def test_one_adapter_failure_does_not_stop_others(self, mock_ps, mock_netsh, mock_run):
        def fake(args, timeout=15):
            if "name=Ethernet" in args:
                return CommandResult(returncode=1, stdout="The filename, directory name, or volume label syntax is incorrect.")
            return _ok()

        mock_netsh.side_effect = fake
        report = self.enforcer.enforce()
        assert report.failed == ["Ethernet"]
        assert report.changed == ["Wi-Fi"]
        assert report.ok is False

    @patch("rmmkit.dns.enforcer.run_cmd", return_value=_ok())
    @patch("rmmkit.dns.enforcer.run_netsh", return_value=_ok())
    @patch("rmmkit.dns.enforcer.run_powershell_json", return_value=[])
    def test_no_adapters_is_not_ok(self, mock_ps, mock_netsh, mock_run):
        report = self.enforcer.enforce()
        assert report.ok is False
        mock_netsh.assert_not_called()

    @patch("rmmkit.dns.enforcer.run_cmd", return_value=_ok())
    @patch("rmmkit.dns.enforcer.run_netsh", return_value=_ok())
    @patch("rmmkit.dns.enforcer.run_powershell_json", return_value=ADAPTERS)
    def test_reset_to_dhcp(self, mock_ps, mock_netsh, mock_run):
        report = self.enforcer.reset()
        assert report.changed == ["Ethernet", "Wi-Fi"]
        assert all("source=dhcp" in c.args[0] for c in mock_netsh.call_args_list)

    @patch("rmmkit.dns.enforcer.run_powershell_json")
    def test_show_and_compliance(self, mock_ps):
        current = [
            {"InterfaceAlias": "Ethernet", "InterfaceIndex": 12, "ServerAddresses": ["1.1.1.1", "1.0.0.1"]},
            {"InterfaceAlias": "Wi-Fi", "InterfaceIndex": 7, "ServerAddresses": "192.168.1.1"},
        ]

        def fake(script, timeout=60):
            return current if "Get-DnsClientServerAddress" in script else ADAPTERS

        mock_ps.side_effect = fake
        assert self.enforcer.show()["Wi-Fi"] == ["192.168.1.1"]
        assert self.enforcer.is_compliant() is False

        current[1]["ServerAddresses"] = ["1.1.1.1", "1.0.0.1"]
        assert self.enforcer.is_compliant() is True

    @patch("rmmkit.dns.enforcer.run_powershell_json", return_value=ADAPTERS)
    def test_compliance_from_previous_show(self, mock_ps):
        shown = {"Ethernet": ["1.1.1.1", "1.0.0.1"], "Wi-Fi": ["1.1.1.1", "1.0.0.1"]}
        assert self.enforcer.is_compliant(shown) is True
        # Only the adapter listing is queried
        assert mock_ps.call_count == 1


@patch("rmmkit.dns.enforcer.run_cmd", return_value=CommandResult(returncode=1))
def test_flush_failure(mock_run):
    assert flush_dns_cache() is False
