"""Tests for configuration loading."""

from pathlib import PureWindowsPath

import pytest
from pydantic import ValidationError

from rmmkit.config import RmmConfig, get_config


class TestRmmConfig:
    def test_defaults(self):
        config = get_config()
        assert config.kill_switch_rule_prefix == "RMM_KillSwitch"
        assert config.dns_servers == ["1.1.1.1", "1.0.0.1"]
        assert config.av_max_signature_age_days == 3.0
        assert str(config.vpn_config_path) == r"C:\Program Files\OpenVPN\config\client.ovpn"
        assert str(config.vpn_auth_path) == r"C:\Program Files\OpenVPN\config\client-auth.txt"

    def test_paths_use_windows_separators(self, monkeypatch):
        monkeypatch.setenv("RMMKIT_VPN_CONFIG_DIR", r"D:\VPN\config")
        monkeypatch.setenv("RMMKIT_VPN_CONFIG_NAME", "office.ovpn")

        config = RmmConfig()
        assert isinstance(config.vpn_config_path, PureWindowsPath)
        assert str(config.vpn_config_path) == r"D:\VPN\config\office.ovpn"
        assert str(config.vpn_auth_path) == r"D:\VPN\config\office-auth.txt"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("RMMKIT_DNS_SERVERS", '["9.9.9.9", "149.112.112.112"]')
        monkeypatch.setenv("RMMKIT_KILL_SWITCH_ALLOW_LAN", "true")
        monkeypatch.setenv("RMMKIT_VPN_CONFIG_OVERRIDES", '{"verb": "4", "auth-user-pass": null}')

        config = RmmConfig()
        assert config.dns_servers == ["9.9.9.9", "149.112.112.112"]
        assert config.kill_switch_allow_lan is True
        assert config.vpn_config_overrides == {"verb": "4", "auth-user-pass": None}

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("RMMKIT_TASK_NAME=Contoso VPN\n", encoding="utf-8")
        assert RmmConfig().task_name == "Contoso VPN"

    def test_invalid_dns_server(self):
        with pytest.raises(ValidationError):
            RmmConfig(dns_servers=["not-an-ip"])

    def test_invalid_rule_prefix(self):
        with pytest.raises(ValidationError):
            RmmConfig(kill_switch_rule_prefix="RMM KillSwitch")

    def test_tunnel_subnet_normalized(self):
        assert RmmConfig(kill_switch_tunnel_subnet="10.8.0.9/24").kill_switch_tunnel_subnet == "10.8.0.0/24"

    @pytest.mark.parametrize("field", ["vpn_poll_interval", "vpn_connect_timeout", "av_max_signature_age_days"])
    def test_non_positive_rejected(self, field):
        with pytest.raises(ValidationError):
            RmmConfig(**{field: 0})
