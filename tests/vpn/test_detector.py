"""Tests for VPN detection module."""

from unittest.mock import MagicMock, patch

from rmmkit.vpn.detector import AdapterInfo, VPNDetector


def _make_family(name: str):
    family = MagicMock()
    family.name = name
    return family


class TestVPNDetector:
    def setup_method(self):
        self.detector = VPNDetector()

    @patch("rmmkit.vpn.detector.psutil.net_if_stats")
    @patch("rmmkit.vpn.detector.psutil.net_if_addrs")
    def test_detect_tap_adapter(self, mock_addrs, mock_stats, mock_psutil_interfaces):
        addrs, stats = mock_psutil_interfaces
        mock_addrs.return_value = addrs
        mock_stats.return_value = stats

        adapters = self.detector.detect_vpn_adapters()
        assert len(adapters) == 1
        assert adapters[0].name == "TAP-Windows Adapter V9"
        assert adapters[0].ipv4 == "10.8.0.2"
        assert adapters[0].netmask == "255.255.255.0"
        assert adapters[0].is_up is True

    @patch("rmmkit.vpn.detector.psutil.net_if_stats")
    @patch("rmmkit.vpn.detector.psutil.net_if_addrs")
    def test_no_vpn_adapters(self, mock_addrs, mock_stats):
        af_inet = _make_family("AF_INET")
        mock_addrs.return_value = {
            "Ethernet": [MagicMock(family=af_inet, address="192.168.1.100", netmask="255.255.255.0")],
        }
        mock_stats.return_value = {"Ethernet": MagicMock(isup=True)}

        assert self.detector.detect_vpn_adapters() == []
        assert self.detector.find_adapter() is None

    @patch("rmmkit.vpn.detector.psutil.net_if_stats")
    @patch("rmmkit.vpn.detector.psutil.net_if_addrs")
    def test_find_adapter_prefers_routable_ip(self, mock_addrs, mock_stats):
        af_inet = _make_family("AF_INET")
        mock_addrs.return_value = {
            "Wintun Userspace Tunnel": [MagicMock(family=af_inet, address="169.254.12.3", netmask="255.255.0.0")],
            "TAP-Windows Adapter V9": [MagicMock(family=af_inet, address="10.8.0.6", netmask="255.255.255.0")],
        }
        mock_stats.return_value = {
            "Wintun Userspace Tunnel": MagicMock(isup=True),
            "TAP-Windows Adapter V9": MagicMock(isup=True),
        }

        adapter = self.detector.find_adapter()
        assert adapter.name == "TAP-Windows Adapter V9"

    @patch("rmmkit.vpn.detector.psutil.net_if_stats")
    @patch("rmmkit.vpn.detector.psutil.net_if_addrs")
    def test_find_adapter_down_without_ip(self, mock_addrs, mock_stats):
        mock_addrs.return_value = {"TAP-Windows Adapter V9": []}
        mock_stats.return_value = {"TAP-Windows Adapter V9": MagicMock(isup=False)}

        adapter = self.detector.find_adapter()
        assert adapter.name == "TAP-Windows Adapter V9"
        assert adapter.ipv4 is None

    @patch("rmmkit.vpn.detector.psutil.process_iter")
    def test_find_processes_matches_basename(self, mock_iter):
        openvpn = MagicMock(pid=4242)
        openvpn.info = {"pid": 4242, "name": "openvpn.exe", "exe": None}
        other = MagicMock(pid=1)
        other.info = {"pid": 1, "name": "svchost.exe", "exe": None}
        mock_iter.return_value = [openvpn, other]

        found = VPNDetector.find_processes(r"C:\Program Files\OpenVPN\bin\OpenVPN.exe")
        assert [p.pid for p in found] == [4242]

    @patch("rmmkit.vpn.detector.psutil.process_iter")
    def test_process_not_running(self, mock_iter):
        gone = MagicMock()
        gone.info = {"pid": 7, "name": None, "exe": None}
        mock_iter.return_value = [gone]

        assert self.detector.is_process_running(r"C:\Program Files\OpenVPN\bin\openvpn.exe") is False


class TestAdapterInfo:
    def test_gateway_guess_first_host(self):
        adapter = AdapterInfo(name="tap", is_up=True, ipv4="10.8.0.6", netmask="255.255.255.0")
        assert adapter.gateway_guess == "10.8.0.1"

    def test_gateway_guess_is_self(self):
        adapter = AdapterInfo(name="tap", is_up=True, ipv4="10.8.0.1", netmask="255.255.255.0")
        assert adapter.gateway_guess is None

    def test_gateway_guess_point_to_point(self):
        adapter = AdapterInfo(name="tap", is_up=True, ipv4="10.8.0.6", netmask="255.255.255.254")
        assert adapter.gateway_guess is None

    def test_gateway_guess_without_netmask(self):
        assert AdapterInfo(name="tap", ipv4="10.8.0.6").gateway_guess is None
